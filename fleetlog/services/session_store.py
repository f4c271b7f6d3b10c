"""
Session store — single owner of the auth token and login user.

Every network-issuing component receives the store by reference and takes an
immutable snapshot per operation. Only login(), logout() and a 401 response
(via invalidate()) ever change it.
"""

from dataclasses import dataclass
from typing import Optional

from fleetlog.errors import AuthError
from fleetlog.services.kv_store import KeyValueStore
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_KEY = "userToken"
USER_KEY = "userData"
USER_ID_KEY = "userId"
SESSION_KEYS = [TOKEN_KEY, USER_KEY, USER_ID_KEY]

DRIVER = "driver"
ADMIN = "admin"


@dataclass(frozen=True)
class AuthSession:
    token: str
    user_id: str
    name: str
    role: str                   # driver | admin

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def _user_id_of(user: dict) -> str:
    return str(user.get("_id") or user.get("userId") or user.get("id") or "")


class SessionStore:
    def __init__(self, kv: KeyValueStore):
        self._kv = kv
        self._session: Optional[AuthSession] = None
        self._user: dict = {}

    @property
    def current(self) -> Optional[AuthSession]:
        return self._session

    @property
    def user(self) -> dict:
        """Raw login user as returned by /auth/login (used for profile fallbacks)."""
        return dict(self._user)

    def load(self) -> Optional[AuthSession]:
        """Restore the persisted session at startup. Returns None if nobody is logged in."""
        token = self._kv.get(TOKEN_KEY)
        user = self._kv.get(USER_KEY) or {}
        user_id = self._kv.get(USER_ID_KEY) or _user_id_of(user)
        if not token or not user_id:
            self._session = None
            return None
        self._user = user
        self._session = AuthSession(
            token=token,
            user_id=str(user_id),
            name=user.get("name") or "",
            role=(user.get("role") or DRIVER).lower(),
        )
        logger.info(f"🔑 Session restored for user {self._session.user_id} ({self._session.role})")
        return self._session

    def login(self, token: str, user: dict) -> AuthSession:
        user = user or {}
        user_id = _user_id_of(user)
        if not token or not user_id:
            raise AuthError("Login response did not include a token and user.")
        self._kv.set(TOKEN_KEY, token)
        self._kv.set(USER_KEY, user)
        self._kv.set(USER_ID_KEY, user_id)
        self._user = user
        self._session = AuthSession(
            token=token,
            user_id=user_id,
            name=user.get("name") or "",
            role=(user.get("role") or DRIVER).lower(),
        )
        logger.info(f"✅ Logged in as {self._session.name or user_id} ({self._session.role})")
        return self._session

    def snapshot(self) -> AuthSession:
        """The current session, or AuthError if there is none. Checked before every call."""
        if self._session is None:
            raise AuthError()
        return self._session

    def invalidate(self, reason: str = "logout") -> None:
        """Clear the session in memory and on disk."""
        had_session = self._session is not None
        self._session = None
        self._user = {}
        self._kv.multi_remove(SESSION_KEYS)
        if had_session:
            logger.warning(f"🔒 Session cleared ({reason})")

    def logout(self) -> None:
        self.invalidate("logout")
