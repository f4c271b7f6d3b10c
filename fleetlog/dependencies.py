"""
Wires the services together once per process and hands them to routers.
The session store is the single owner of auth state; everything else gets it by reference.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import Request

from fleetlog.config import settings
from fleetlog.services.account_service import AccountService
from fleetlog.services.api_client import FleetApiClient
from fleetlog.services.fuel_service import FuelService
from fleetlog.services.kv_store import KeyValueStore
from fleetlog.services.session_store import SessionStore
from fleetlog.services.travel_log_service import DraftStore, TravelLogManager
from fleetlog.services.upload_relay import MediaUploadRelay


@dataclass
class Services:
    kv: KeyValueStore
    session_store: SessionStore
    api: FleetApiClient
    relay: MediaUploadRelay
    drafts: DraftStore
    travel: TravelLogManager
    fuel: FuelService
    accounts: AccountService

    async def aclose(self):
        await self.travel.close()
        await self.api.aclose()
        await self.relay.aclose()


def build_services(
    kv: Optional[KeyValueStore] = None,
    api_transport: Optional[httpx.AsyncBaseTransport] = None,
    upload_transport: Optional[httpx.AsyncBaseTransport] = None,
    api_base_url: str = settings.API_BASE_URL,
    upload_url: str = settings.BUCKET_UPLOAD_URL,
) -> Services:
    kv = kv or KeyValueStore()
    session_store = SessionStore(kv)
    session_store.load()
    api = FleetApiClient(session_store, base_url=api_base_url, transport=api_transport)
    relay = MediaUploadRelay(upload_url=upload_url, transport=upload_transport)
    drafts = DraftStore(kv)
    return Services(
        kv=kv,
        session_store=session_store,
        api=api,
        relay=relay,
        drafts=drafts,
        travel=TravelLogManager(api, relay, session_store, drafts=drafts),
        fuel=FuelService(api, relay, session_store),
        accounts=AccountService(api, session_store),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency — the process-wide service container."""
    return request.app.state.services
