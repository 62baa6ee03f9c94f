"""Shared data models for the Joplin S3 notes sync."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    """Current time as a naive UTC datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class ObjectListing:
    """One entry of a bucket listing."""
    key: str
    size_bytes: int


@dataclass
class RawObject:
    """Bytes fetched for one object key."""
    key: str
    body: bytes
    size_bytes: int


@dataclass
class ParsedSections:
    """Human-authored body and the raw metadata lines that follow it."""
    body: str
    metadata_lines: List[str]


@dataclass
class ParsedObject:
    """An object after its dialect has split and parsed it."""
    key: str
    size_bytes: int
    sections: ParsedSections
    metadata: Dict[str, Any]


@dataclass
class Note:
    """A normalized note. ``id`` is None until the note store assigns one."""
    joplin_id: str
    title: str
    body: str
    s3_key: str
    author: Optional[str] = None
    source: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    altitude: Optional[str] = None
    completed: Optional[bool] = None
    due: Optional[datetime] = None
    created_time: Optional[datetime] = None
    updated_time: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    id: Optional[int] = None


@dataclass
class SyncStatus:
    """Aggregate statistics of the last sync."""
    last_sync_time: Optional[datetime] = None
    total_notes: int = 0
    storage_used: str = "0 MB"
    is_connected: bool = False


@dataclass
class CacheSnapshot:
    """The full note set and status as of ``timestamp``."""
    notes: List[Note]
    sync_status: SyncStatus
    timestamp: datetime


@dataclass
class SyncResult:
    """Outcome of a successful sync pass."""
    processed_count: int
    storage_used_label: str
    skipped: Dict[str, int] = field(default_factory=dict)


@dataclass
class TagCount:
    """Number of notes carrying a tag."""
    name: str
    count: int
