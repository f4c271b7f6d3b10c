"""
Best-effort GPS acquisition.

Coordinates are optional metadata on every submission: permission denied,
unavailable and timeout all resolve to "no location" and never block the
record being sent.
"""

import asyncio
from typing import Optional, Protocol

from fleetlog.config import settings
from fleetlog.errors import LocationError
from fleetlog.services.record_adapter import Coordinates
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)


class LocationProvider(Protocol):
    async def get_current_position(self) -> Coordinates:
        """Current position, or LocationError(kind)."""
        ...


class StaticLocationProvider:
    """Serves a position the device already reported (e.g. sent along with a form)."""

    def __init__(self, latitude: float, longitude: float):
        self._coords = Coordinates(latitude, longitude)

    async def get_current_position(self) -> Coordinates:
        return self._coords


class NullLocationProvider:
    async def get_current_position(self) -> Coordinates:
        raise LocationError(LocationError.UNAVAILABLE, "No location provider on this device")


async def acquire_location(provider: Optional[LocationProvider],
                           timeout: float = settings.LOCATION_TIMEOUT_SECONDS) -> Optional[Coordinates]:
    if provider is None:
        return None
    try:
        return await asyncio.wait_for(provider.get_current_position(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"📍 Location timed out after {timeout}s — submitting without coordinates")
    except LocationError as e:
        logger.warning(f"📍 Location {e.kind} — submitting without coordinates")
    except Exception as e:
        logger.warning(f"📍 Location provider failed ({e.__class__.__name__}) — submitting without coordinates",
                       exc_info=True)
    return None
