"""Decides which parsed export objects become notes."""

import logging
from enum import Enum
from typing import Optional

from services.note_extractor.batch import ExtractionBatch
from services.note_extractor.builder import derive_title
from services.note_extractor.dialects import MetadataDialect
from shared.models import ParsedObject

logger = logging.getLogger(__name__)

NOTE_TYPE = "1"


class RejectReason(str, Enum):
    """Why an object did not become a note."""
    REVISION = "revision"
    NOT_A_NOTE = "not_a_note"
    OUTSIDE_FOLDER = "outside_folder"
    EMPTY_BODY = "empty_body"
    DUPLICATE_TITLE = "duplicate_title"
    DUPLICATE_ID = "duplicate_id"
    MALFORMED = "malformed"
    FETCH_FAILED = "fetch_failed"


class NoteClassifier:
    """
    Applies the inclusion rules in order; the first failing rule rejects.

    1. revision snapshots (checked on raw text, before parsing)
    2. ``type_`` must be the note type
    3. ``parent_id`` must match the configured folder, if any
    4. the body must not be blank
    5. optionally, the derived title must not be taken yet in this pass

    Rules the dialect has no data for are skipped.
    """

    def __init__(
        self,
        dialect: MetadataDialect,
        parent_folder_id: Optional[str] = None,
        dedupe_titles: bool = False
    ):
        self.dialect = dialect
        self.parent_folder_id = parent_folder_id
        self.dedupe_titles = dedupe_titles

    def is_revision(self, text: str) -> bool:
        return self.dialect.detects_revisions and self.dialect.is_revision(text)

    def classify(
        self,
        parsed: ParsedObject,
        joplin_id: str,
        batch: ExtractionBatch
    ) -> Optional[RejectReason]:
        """
        Check a parsed object against rules 2-5.

        Args:
            parsed: Object parsed by the active dialect
            joplin_id: Natural key derived from the object key
            batch: Notes accepted earlier in this pass

        Returns:
            The reason for rejection, or None if the object is a note
        """
        metadata = parsed.metadata

        if self.dialect.checks_note_type and metadata.get("type_") != NOTE_TYPE:
            logger.info(f"Skipping {parsed.key}: type {metadata.get('type_')} (not a note)")
            return RejectReason.NOT_A_NOTE

        if (
            self.parent_folder_id
            and self.dialect.supports_parent_filter
            and metadata.get("parent_id") != self.parent_folder_id
        ):
            logger.info(f"Skipping {parsed.key}: outside folder {self.parent_folder_id}")
            return RejectReason.OUTSIDE_FOLDER

        if self.dialect.requires_body and not parsed.sections.body.strip():
            logger.info(f"Skipping {parsed.key}: no body content")
            return RejectReason.EMPTY_BODY

        if self.dedupe_titles and self.dialect.supports_title_dedupe:
            title = derive_title(parsed.sections.body, joplin_id)
            if title in batch.titles:
                logger.info(f"Skipping {parsed.key}: duplicate title {title!r}")
                return RejectReason.DUPLICATE_TITLE

        if joplin_id in batch.joplin_ids:
            logger.warning(f"Skipping {parsed.key}: joplin id {joplin_id} already seen")
            return RejectReason.DUPLICATE_ID

        return None
