"""
Travel logs — merged Pending + Completed list, start a trip, complete a trip, drafts.
GET /travel-logs?filter=all|pending|completed  — partial_failure=true means one half failed.
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from fleetlog.dependencies import Services, get_services
from fleetlog.schemas.travel_log import (
    GalleryImageOut, TravelLogComplete, TravelLogDraft, TravelLogListOut, TravelLogOut, TravelLogStart,
)
from fleetlog.services.location import StaticLocationProvider
from fleetlog.services.record_adapter import collect_images

router = APIRouter()


def _device_location(coords):
    return StaticLocationProvider(coords.latitude, coords.longitude) if coords else None


@router.get("/travel-logs", response_model=TravelLogListOut, summary="Pending + completed travel logs")
async def list_travel_logs(filter: str = "all", refresh: bool = True,
                           services: Services = Depends(get_services)):
    manager = services.travel
    if refresh:
        view = await manager.load(filter)
        if view.error is not None:
            raise view.error
    else:
        manager.set_filter(filter)
        view = manager.view
    return TravelLogListOut(
        filter=manager.filter,
        records=[asdict(r) for r in view.records],
        partial_failure=view.partial_failure,
        warning=view.warning.message if view.warning else None,
    )


@router.get("/travel-logs/{record_id}/images", response_model=list[GalleryImageOut],
            summary="All photos attached to a travel log")
def travel_log_images(record_id: str, services: Services = Depends(get_services)):
    record = services.travel.find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Travel log not found — refresh the list")
    return collect_images(record)


@router.post("/travel-logs", response_model=TravelLogOut, summary="Start a trip")
async def start_travel_log(body: TravelLogStart, services: Services = Depends(get_services)):
    result = await services.travel.start(
        officer=body.officer,
        vehicle=body.vehicle,
        from_location=body.from_location,
        to_location=body.to_location,
        pre_meter_reading=body.pre_meter_reading,
        pre_meter_image=body.pre_meter_image,
        officer_designation=body.officer_designation,
        draft_id=body.draft_id,
        location_provider=_device_location(body.coordinates),
    )
    return result.unwrap()


@router.post("/travel-logs/drafts", response_model=TravelLogOut, summary="Save an unsent trip locally")
def save_draft(body: TravelLogDraft, services: Services = Depends(get_services)):
    return services.travel.save_draft(**body.model_dump())


@router.delete("/travel-logs/drafts/{draft_id}", summary="Discard a local draft")
def discard_draft(draft_id: str, services: Services = Depends(get_services)):
    services.drafts.discard(draft_id)
    return {"status": "discarded", "id": draft_id}


@router.patch("/travel-logs/{record_id}/complete", response_model=TravelLogOut, summary="Complete a trip")
async def complete_travel_log(record_id: str, body: TravelLogComplete,
                              services: Services = Depends(get_services)):
    manager = services.travel
    record = manager.find(record_id)
    if record is None:
        await manager.load()
        record = manager.find(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Travel log not found")

    result = await manager.complete(
        record,
        post_meter_reading=body.post_meter_reading,
        post_meter_image=body.post_meter_image,
        fuel_percent=body.fuel_percent,
        fuel_meter_image=body.fuel_meter_image,
        location_provider=_device_location(body.coordinates),
    )
    return result.unwrap()
