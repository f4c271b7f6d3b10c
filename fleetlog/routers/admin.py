"""Admin — user list, driver details with aggregated stats, user creation."""

from dataclasses import asdict

from fastapi import APIRouter, Depends
from fleetlog.dependencies import Services, get_services
from fleetlog.schemas.account import DriverDetailsOut, UserCreate, UserOut

router = APIRouter()


@router.get("/admin/users", response_model=list[UserOut], summary="Users visible to the admin")
async def list_users(services: Services = Depends(get_services)):
    return (await services.accounts.list_users()).unwrap()


@router.post("/admin/users", response_model=UserOut, summary="Create a driver or admin account")
async def create_user(body: UserCreate, services: Services = Depends(get_services)):
    result = await services.accounts.create_user(body.name, body.mobile_number, body.password, body.role)
    return result.unwrap()


@router.get("/admin/drivers/{user_id}", response_model=DriverDetailsOut,
            summary="Fuel + travel history and totals for one driver")
async def driver_details(user_id: str, services: Services = Depends(get_services)):
    details = await services.accounts.driver_details(user_id)
    if details.error is not None:
        raise details.error
    return DriverDetailsOut(
        user_id=details.user_id,
        fuel_records=[asdict(r) for r in details.fuel_records],
        travel_logs=[asdict(r) for r in details.travel_logs],
        summary=asdict(details.summary) if details.summary else None,
        partial_failure=details.partial_failure,
        warning=details.warning.message if details.warning else None,
    )
