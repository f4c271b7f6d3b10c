"""
Local key-value persistence on top of the cache_entries table.

Values are JSON-encoded. Read at startup, written on login/logout and
whenever a travel draft is saved or discarded.
"""

import json
from datetime import datetime
from typing import Any, Optional

from fleetlog.database import SessionLocal
from fleetlog.models.cache_entry import CacheEntry
from fleetlog.utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def get(self, key: str, default: Any = None) -> Any:
        db = self._session_factory()
        try:
            entry = db.get(CacheEntry, key)
            if entry is None:
                return default
            try:
                return json.loads(entry.value)
            except json.JSONDecodeError:
                logger.warning(f"[CACHE] Corrupt value under {key!r} — ignored")
                return default
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        db = self._session_factory()
        try:
            entry = db.get(CacheEntry, key)
            payload = json.dumps(value, default=str)
            if entry is None:
                db.add(CacheEntry(key=key, value=payload, updated_at=datetime.utcnow()))
            else:
                entry.value = payload
                entry.updated_at = datetime.utcnow()
            db.commit()
        finally:
            db.close()

    def remove(self, key: str) -> None:
        self.multi_remove([key])

    def multi_remove(self, keys: list[str]) -> None:
        db = self._session_factory()
        try:
            db.query(CacheEntry).filter(CacheEntry.key.in_(list(keys))).delete(synchronize_session=False)
            db.commit()
        finally:
            db.close()
