# Fleet Log: local cache models
# Import all models here for SQLAlchemy discovery

from fleetlog.models.cache_entry import CacheEntry     # noqa
