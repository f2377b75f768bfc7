"""Staleness tracking for the form cache."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from gfc.cache.store import FormStore
from gfc.core.constants import MetadataKeys
from gfc.models.record import CacheRecord, utc_now

logger = logging.getLogger(__name__)


def _as_timedelta(max_age: timedelta | float) -> timedelta:
    return max_age if isinstance(max_age, timedelta) else timedelta(seconds=max_age)


class StalenessTracker:
    """Decides whether the cache needs a refresh, and which kind.

    Args:
        store: Initialized form store holding records and sync metadata
        clock: Returns the current aware UTC time
    """

    def __init__(self, store: FormStore, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self.clock = clock

    def is_stale(self, max_age: timedelta | float) -> bool:
        """Check if the cache is empty or its freshest record is older than ``max_age`` (seconds)."""
        latest = self.store.get_latest_sync_time()
        if latest is None:
            logger.debug("Cache is empty, treating as stale")
            return True
        return self.clock() - latest > _as_timedelta(max_age)

    def is_record_stale(self, record: CacheRecord, max_age: timedelta | float) -> bool:
        """Check if a single record is older than ``max_age`` (seconds)."""
        return self.clock() - record.last_synced > _as_timedelta(max_age)

    def needs_full_sync(self, interval_hours: float) -> bool:
        """Check if no full sync was ever recorded or the last one is older than the interval."""
        last_full_sync = self.get_last_full_sync()
        if last_full_sync is None:
            return True
        return self.clock() - last_full_sync > timedelta(hours=interval_hours)

    def record_last_full_sync(self, when: datetime | None = None) -> datetime:
        """Persist the time of a completed full sync."""
        timestamp = when or self.clock()
        self.store.set_timestamp_metadata(MetadataKeys.LAST_FULL_SYNC, timestamp)
        logger.debug(f"Recorded last full sync at {timestamp.isoformat()}")
        return timestamp

    def get_last_full_sync(self) -> datetime | None:
        """Time of the last completed full sync, if any."""
        return self.store.get_timestamp_metadata(MetadataKeys.LAST_FULL_SYNC)

    def record_last_sync(self, when: datetime | None = None) -> datetime:
        """Persist the time of any completed sync."""
        timestamp = when or self.clock()
        self.store.set_timestamp_metadata(MetadataKeys.LAST_SYNC, timestamp)
        return timestamp
