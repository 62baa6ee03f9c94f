"""Note extraction logic for Joplin export objects."""

import logging
from typing import Iterable, Optional

from services.note_extractor.batch import ExtractionBatch
from services.note_extractor.builder import NoteRecordBuilder
from services.note_extractor.classifier import NoteClassifier, RejectReason
from services.note_extractor.dialects import MetadataDialect, get_dialect
from shared.config import SyncConfig
from shared.exceptions import MalformedMetadata
from shared.models import Note, RawObject

logger = logging.getLogger(__name__)


class NoteExtractor:
    """Turns fetched export objects into notes: split, parse, classify, build."""

    def __init__(
        self,
        dialect: MetadataDialect,
        classifier: NoteClassifier,
        builder: NoteRecordBuilder
    ):
        """
        Initialize the note extractor.

        Args:
            dialect: Active metadata dialect
            classifier: Inclusion rules for the dialect
            builder: Maps accepted objects onto notes
        """
        self.dialect = dialect
        self.classifier = classifier
        self.builder = builder

    @classmethod
    def from_config(cls, config: SyncConfig) -> "NoteExtractor":
        """Wire an extractor from the sync configuration."""
        dialect = get_dialect(config.dialect)
        return cls(
            dialect=dialect,
            classifier=NoteClassifier(
                dialect,
                parent_folder_id=config.parent_folder_id,
                dedupe_titles=config.dedupe_titles
            ),
            builder=NoteRecordBuilder(dialect)
        )

    def extract_notes(self, objects: Iterable[RawObject]) -> ExtractionBatch:
        """
        Extract notes from objects in the given order.

        Order matters: with the duplicate-title guard on, the first object
        carrying a title wins.

        Args:
            objects: Fetched objects, in listing order

        Returns:
            ExtractionBatch with the accepted notes and skip counts
        """
        batch = ExtractionBatch()
        for raw in objects:
            try:
                self.extract_one(raw, batch)
            except Exception as e:
                logger.error(f"Failed to extract {raw.key}: {e}", exc_info=True)
                # Continue with the remaining objects
                batch.skip(RejectReason.MALFORMED.value)

        logger.info(
            f"Extracted {len(batch.notes)} notes, skipped {sum(batch.skipped.values())} "
            f"objects ({dict(batch.skipped)})"
        )
        return batch

    def extract_one(self, raw: RawObject, batch: ExtractionBatch) -> Optional[Note]:
        """
        Run one object through the pipeline and record the outcome in the batch.

        A malformed object is logged and skipped; it never fails the batch.

        Returns:
            The accepted Note, or None if the object was skipped
        """
        batch.scanned_bytes += raw.size_bytes
        text = raw.body.decode("utf-8", errors="replace")

        if self.classifier.is_revision(text):
            logger.info(f"Skipping revision file: {raw.key}")
            batch.skip(RejectReason.REVISION.value)
            return None

        try:
            parsed = self.dialect.parse(raw.key, text, raw.size_bytes)
        except MalformedMetadata as e:
            logger.warning(f"Skipping {raw.key}: {e}")
            batch.skip(RejectReason.MALFORMED.value)
            return None

        joplin_id = self.builder.joplin_id(raw.key)
        reason = self.classifier.classify(parsed, joplin_id, batch)
        if reason is not None:
            batch.skip(reason.value)
            return None

        note = self.builder.build(parsed)
        batch.accept(note, raw.size_bytes)
        return note
