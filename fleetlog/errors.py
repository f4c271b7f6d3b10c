"""
Error taxonomy shared by every service, plus the Result wrapper returned at
the public boundary of each operation.

    AuthError          missing/expired session — session is cleared, re-login required
    ValidationError    bad local input — never reaches the network
    UploadError        photo bucket gave back no usable URL
    NetworkError       transport failure or non-2xx (non-401) response
    PartialFetchError  one of two concurrent list fetches failed, the other succeeded
"""

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class FleetLogError(Exception):
    """Base class. `message` is always safe to show to the user verbatim."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(FleetLogError):
    def __init__(self, message: str = "Not authenticated. Please login again."):
        super().__init__(message)


class ValidationError(FleetLogError):
    pass


class UploadError(FleetLogError):
    def __init__(self, message: str = "Image upload failed"):
        super().__init__(message)


class NetworkError(FleetLogError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PartialFetchError(FleetLogError):
    def __init__(self, message: str, failed: str):
        super().__init__(message)
        self.failed = failed        # which half failed: pending | completed | fuel | travel


class LocationError(Exception):
    """Raised by location providers. Never leaves services.location."""

    PERMISSION_DENIED = "permission_denied"
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"

    def __init__(self, kind: str, message: str = ""):
        super().__init__(message or kind)
        self.kind = kind


@dataclass
class Result(Generic[T]):
    value: Optional[T] = None
    error: Optional[FleetLogError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: FleetLogError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """The value, or raise the stored error (used where exceptions are the boundary, e.g. routers)."""
        if self.error is not None:
            raise self.error
        return self.value
