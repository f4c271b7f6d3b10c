"""Login / logout / current identity."""

from fastapi import APIRouter, Depends
from fleetlog.dependencies import Services, get_services
from fleetlog.errors import AuthError
from fleetlog.schemas.account import LoginIn, ProfileOut, SessionOut

router = APIRouter()


@router.post("/session/login", response_model=SessionOut, summary="Log in with mobile number + password")
async def login(body: LoginIn, services: Services = Depends(get_services)):
    result = await services.accounts.login(body.mobile_number, body.password)
    return result.unwrap()


@router.post("/session/logout", summary="Clear the stored session")
def logout(services: Services = Depends(get_services)):
    services.accounts.logout()
    return {"status": "logged_out"}


@router.get("/session/me", response_model=SessionOut, summary="Current identity")
def me(services: Services = Depends(get_services)):
    session = services.session_store.current
    if session is None:
        raise AuthError()
    return session


@router.get("/session/profile", response_model=ProfileOut, summary="Profile with trip and fuel stats")
async def profile(services: Services = Depends(get_services)):
    p = (await services.accounts.profile()).unwrap()
    return ProfileOut(**vars(p), avg_cost_per_trip=services.accounts.avg_cost_per_trip(p))
