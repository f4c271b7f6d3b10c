"""
Key-value cache table — one row per stored key, value kept as JSON text.
Used by the session store (userToken / userData / userId) and the travel draft cache.
"""

from sqlalchemy import Column, String, DateTime, Text
from fleetlog.database import Base


class CacheEntry(Base):
    __tablename__ = "cache_entries"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<CacheEntry {self.key} updated={self.updated_at}>"
