"""Database operations for the Joplin S3 notes sync.

Covers the note store (replace-all plus read queries), the singleton sync
status and the raw rows behind the snapshot cache.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from shared.config import get_database_url
from shared.db_models import Base, CacheEntry, NoteRow, SyncStatusRow
from shared.exceptions import StoreUnavailable
from shared.models import Note, SyncStatus

logger = logging.getLogger(__name__)

SYNC_STATUS_ID = 1


class DatabaseOperations:
    """Handles all database operations for the notes sync."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or get_database_url()
        self.engine = create_engine(self.database_url, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def _store_errors(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Database error while trying to {action}: {e}", exc_info=True)
            raise StoreUnavailable(f"Failed to {action}: {e}") from e

    # Note Operations

    def replace_all_notes(self, notes: Iterable[Note]) -> List[Note]:
        """
        Replace the whole note set in a single transaction.

        Every existing note is deleted and the given notes are inserted with
        freshly assigned ids. On failure the previous set is kept.

        Args:
            notes: Notes to store; ``id`` values on them are ignored

        Returns:
            The stored notes, with their new ids

        Raises:
            StoreUnavailable: If the database rejects the replacement
        """
        with self._store_errors("replace notes"), self.get_session() as session:
            try:
                session.execute(delete(NoteRow))
                rows = [self._to_row(note) for note in notes]
                session.add_all(rows)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
            return [self._to_note(row) for row in rows]

    def get_all_notes(self) -> List[Note]:
        """
        Get all notes, most recently updated first.

        Notes without an update time come last.
        """
        with self._store_errors("read notes"), self.get_session() as session:
            stmt = select(NoteRow).order_by(
                NoteRow.updated_time.desc().nulls_last(),
                NoteRow.id.asc()
            )
            result = session.execute(stmt)
            return [self._to_note(row) for row in result.scalars().all()]

    def count_notes(self) -> int:
        """Number of stored notes."""
        with self._store_errors("count notes"), self.get_session() as session:
            return session.execute(
                select(func.count()).select_from(NoteRow)
            ).scalar() or 0

    def search_notes(self, query: str) -> List[Note]:
        """
        Case-insensitive substring search over title, body and tags.

        Args:
            query: Text to look for

        Returns:
            Matching notes in the same order as get_all_notes
        """
        needle = query.lower()
        return [
            note for note in self.get_all_notes()
            if needle in note.title.lower()
            or needle in note.body.lower()
            or any(needle in tag.lower() for tag in note.tags)
        ]

    def get_notes_by_tags(self, tags: List[str]) -> List[Note]:
        """
        Get notes carrying at least one of the given tags.

        Args:
            tags: Tag names to match exactly

        Returns:
            Matching notes in the same order as get_all_notes
        """
        wanted = set(tags)
        if not wanted:
            return []
        return [note for note in self.get_all_notes() if wanted.intersection(note.tags)]

    def get_note_by_id(self, note_id: int) -> Optional[Note]:
        """Get a note by its surrogate id, or None."""
        with self._store_errors("read note"), self.get_session() as session:
            row = session.get(NoteRow, note_id)
            return self._to_note(row) if row else None

    def get_note_by_joplin_id(self, joplin_id: str) -> Optional[Note]:
        """Get a note by its Joplin id, or None."""
        with self._store_errors("read note"), self.get_session() as session:
            stmt = select(NoteRow).where(NoteRow.joplin_id == joplin_id)
            row = session.execute(stmt).scalar_one_or_none()
            return self._to_note(row) if row else None

    # Sync Status Operations

    def get_sync_status(self) -> Optional[SyncStatus]:
        """Get the sync status, or None if no sync ever touched it."""
        with self._store_errors("read sync status"), self.get_session() as session:
            row = session.get(SyncStatusRow, SYNC_STATUS_ID)
            return self._to_status(row) if row else None

    def merge_sync_status(
        self,
        last_sync_time: Optional[datetime] = None,
        total_notes: Optional[int] = None,
        storage_used: Optional[str] = None,
        is_connected: Optional[bool] = None
    ) -> SyncStatus:
        """
        Update the sync status with the given fields.

        Fields left as None keep their previous value.

        Returns:
            The merged SyncStatus
        """
        with self._store_errors("update sync status"), self.get_session() as session:
            row = session.get(SyncStatusRow, SYNC_STATUS_ID)
            if row is None:
                row = SyncStatusRow(
                    id=SYNC_STATUS_ID,
                    last_sync_time=None,
                    total_notes=0,
                    storage_used="0 MB",
                    is_connected=False
                )
                session.add(row)

            if last_sync_time is not None:
                row.last_sync_time = last_sync_time
            if total_notes is not None:
                row.total_notes = total_notes
            if storage_used is not None:
                row.storage_used = storage_used
            if is_connected is not None:
                row.is_connected = is_connected

            session.commit()
            return self._to_status(row)

    # Cache Operations

    def get_cache_entry(self, cache_key: str) -> Optional[Tuple[str, datetime]]:
        """Get the raw payload and store time of a cache entry."""
        with self._store_errors("read cache"), self.get_session() as session:
            entry = session.get(CacheEntry, cache_key)
            if entry is None:
                return None
            return entry.payload, entry.stored_at

    def put_cache_entry(self, cache_key: str, payload: str, stored_at: datetime):
        """Insert or overwrite a cache entry."""
        with self._store_errors("write cache"), self.get_session() as session:
            session.merge(CacheEntry(cache_key=cache_key, payload=payload, stored_at=stored_at))
            session.commit()

    # Row conversion

    @staticmethod
    def _to_row(note: Note) -> NoteRow:
        return NoteRow(
            joplin_id=note.joplin_id,
            title=note.title,
            body=note.body,
            author=note.author,
            source=note.source,
            latitude=note.latitude,
            longitude=note.longitude,
            altitude=note.altitude,
            completed=note.completed,
            due=note.due,
            created_time=note.created_time,
            updated_time=note.updated_time,
            s3_key=note.s3_key,
            tags=list(note.tags)
        )

    @staticmethod
    def _to_note(row: NoteRow) -> Note:
        return Note(
            id=row.id,
            joplin_id=row.joplin_id,
            title=row.title,
            body=row.body,
            author=row.author,
            source=row.source,
            latitude=row.latitude,
            longitude=row.longitude,
            altitude=row.altitude,
            completed=row.completed,
            due=row.due,
            created_time=row.created_time,
            updated_time=row.updated_time,
            s3_key=row.s3_key,
            tags=list(row.tags or [])
        )

    @staticmethod
    def _to_status(row: SyncStatusRow) -> SyncStatus:
        return SyncStatus(
            last_sync_time=row.last_sync_time,
            total_notes=row.total_notes,
            storage_used=row.storage_used,
            is_connected=row.is_connected
        )
