"""Snapshot cache for the synced note set."""

import json
import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from shared.db_operations import DatabaseOperations
from shared.exceptions import StoreUnavailable
from shared.models import CacheSnapshot, Note, SyncStatus, utc_now

logger = logging.getLogger(__name__)

CACHE_KEY = "notes-data"
FRESHNESS_WINDOW = timedelta(hours=1)

_NOTE_DATETIME_FIELDS = ("due", "created_time", "updated_time")


class SnapshotCache:
    """
    Keeps the last synced note set and status as one JSON document.

    The cache is best effort: read and write failures are logged and
    behave like a miss.
    """

    def __init__(
        self,
        db_ops: DatabaseOperations,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = utc_now
    ):
        self.db_ops = db_ops
        self.freshness_window = freshness_window
        self.clock = clock

    def get(self) -> Optional[CacheSnapshot]:
        """Return the cached snapshot, or None when absent or unreadable."""
        try:
            entry = self.db_ops.get_cache_entry(CACHE_KEY)
        except StoreUnavailable as e:
            logger.warning(f"Cache read failed: {e}")
            return None

        if entry is None:
            return None

        payload, stored_at = entry
        try:
            return _snapshot_from_dict(json.loads(payload), stored_at)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Discarding unreadable cache snapshot: {e}")
            return None

    def put(self, snapshot: CacheSnapshot):
        """Overwrite the cached snapshot."""
        payload = json.dumps(_snapshot_to_dict(snapshot))
        try:
            self.db_ops.put_cache_entry(CACHE_KEY, payload, snapshot.timestamp)
            logger.info(f"Cached snapshot of {len(snapshot.notes)} notes")
        except StoreUnavailable as e:
            logger.warning(f"Cache write failed: {e}")

    def is_fresh(self, snapshot: Optional[CacheSnapshot] = None) -> bool:
        """Whether the snapshot (or the stored one) is younger than the window."""
        if snapshot is None:
            snapshot = self.get()
        if snapshot is None:
            return False
        return self.clock() - snapshot.timestamp < self.freshness_window


def _encode_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _decode_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _snapshot_to_dict(snapshot: CacheSnapshot) -> Dict[str, Any]:
    notes = []
    for note in snapshot.notes:
        data = asdict(note)
        for name in _NOTE_DATETIME_FIELDS:
            data[name] = _encode_datetime(data[name])
        notes.append(data)

    status = asdict(snapshot.sync_status)
    status["last_sync_time"] = _encode_datetime(status["last_sync_time"])

    return {
        "notes": notes,
        "sync_status": status,
        "timestamp": _encode_datetime(snapshot.timestamp),
    }


def _snapshot_from_dict(data: Dict[str, Any], stored_at: datetime) -> CacheSnapshot:
    notes = []
    for item in data["notes"]:
        for name in _NOTE_DATETIME_FIELDS:
            item[name] = _decode_datetime(item.get(name))
        notes.append(Note(**item))

    status = dict(data["sync_status"])
    status["last_sync_time"] = _decode_datetime(status.get("last_sync_time"))

    timestamp = _decode_datetime(data.get("timestamp")) or stored_at
    return CacheSnapshot(notes=notes, sync_status=SyncStatus(**status), timestamp=timestamp)
