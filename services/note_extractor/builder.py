"""Maps parsed export objects onto normalized Note records."""

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from services.note_extractor.dialects import MetadataDialect
from shared.models import Note, ParsedObject

logger = logging.getLogger(__name__)

NOTE_EXTENSION = ".md"

_HEADING_PREFIX = re.compile(r"^#+\s*")


def joplin_id_from_key(key: str) -> str:
    """The last path segment of an object key, without the ``.md`` extension."""
    key = key.rsplit("/", 1)[-1]
    if key.endswith(NOTE_EXTENSION):
        key = key[:-len(NOTE_EXTENSION)]
    return key


def derive_title(body: str, joplin_id: str) -> str:
    """
    Title of a colon-dialect note: its first body line.

    A Markdown heading marker is dropped. Falls back to the Joplin id when
    nothing is left.
    """
    if not body:
        return joplin_id
    first_line = body.split("\n", 1)[0].strip()
    title = _HEADING_PREFIX.sub("", first_line).strip()
    return title or joplin_id


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_iso_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed); None if unparsable."""
    if not value:
        return None
    try:
        return _to_naive_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        logger.debug(f"Ignoring unparsable timestamp {value!r}")
        return None


def parse_epoch_millis(value: Optional[str]) -> Optional[datetime]:
    """Parse an epoch-millisecond string. Absent, ``"0"`` or garbage gives None."""
    if not value or value == "0":
        return None
    try:
        millis = int(value)
    except ValueError:
        logger.debug(f"Ignoring unparsable epoch value {value!r}")
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        logger.debug(f"Ignoring out of range epoch value {value!r}")
        return None


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """Turn a YAML scalar (datetime, date or ISO string) into a timestamp."""
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return parse_iso_timestamp(value)
    return None


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_yes(value: Any) -> bool:
    # PyYAML already turns an unquoted ``yes`` into True
    if value is True:
        return True
    return isinstance(value, str) and value.strip().lower() == "yes"


class NoteRecordBuilder:
    """Builds Note records (without ids) for the active dialect."""

    def __init__(self, dialect: MetadataDialect):
        self.dialect = dialect

    def joplin_id(self, key: str) -> str:
        return joplin_id_from_key(key)

    def build(self, parsed: ParsedObject) -> Note:
        """
        Map a parsed object that passed classification onto a Note.

        Args:
            parsed: Object split and parsed by the active dialect

        Returns:
            Note ready for insertion
        """
        joplin_id = self.joplin_id(parsed.key)
        metadata = parsed.metadata
        body = parsed.sections.body

        if self.dialect.name == "frontmatter":
            fields = self._front_matter_fields(metadata, joplin_id)
        else:
            fields = self._colon_fields(metadata, body, joplin_id)

        return Note(
            joplin_id=joplin_id,
            body=body,
            s3_key=parsed.key,
            author=_optional_str(metadata.get("author")),
            source=_optional_str(metadata.get("source")),
            latitude=_optional_str(metadata.get("latitude")),
            longitude=_optional_str(metadata.get("longitude")),
            altitude=_optional_str(metadata.get("altitude")),
            **fields
        )

    @staticmethod
    def _colon_fields(metadata: Dict[str, str], body: str, joplin_id: str) -> Dict[str, Any]:
        return {
            "title": derive_title(body, joplin_id),
            "completed": True if metadata.get("todo_completed") == "1" else None,
            "due": parse_epoch_millis(metadata.get("todo_due")),
            "created_time": parse_iso_timestamp(metadata.get("created_time")),
            "updated_time": parse_iso_timestamp(metadata.get("updated_time")),
            # Tags live in separate tag-link items in this format
            "tags": [],
        }

    @staticmethod
    def _front_matter_fields(metadata: Dict[str, Any], joplin_id: str) -> Dict[str, Any]:
        completed = _is_yes(metadata.get("completed?")) or metadata.get("completed") is True
        return {
            "title": _optional_str(metadata.get("title")) or joplin_id,
            "completed": True if completed else None,
            "due": coerce_timestamp(metadata.get("due")),
            "created_time": coerce_timestamp(metadata.get("created")),
            "updated_time": coerce_timestamp(metadata.get("updated")),
            "tags": _tag_list(metadata.get("tags")),
        }


def _tag_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(tag) for tag in value]
