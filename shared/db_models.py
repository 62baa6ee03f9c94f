"""SQLAlchemy database models for the Joplin S3 notes sync."""

from sqlalchemy import (
    Column, String, Integer, Boolean, Text, DateTime, JSON, Index
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()


class NoteRow(Base):
    """Model for notes table."""
    __tablename__ = 'notes'

    # AUTOINCREMENT keeps SQLite from handing out ids again after the
    # table is emptied by a replace-all.
    id = Column(Integer, primary_key=True, autoincrement=True)
    joplin_id = Column(String(255), nullable=False, unique=True)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    author = Column(Text, nullable=True)
    source = Column(Text, nullable=True)
    latitude = Column(String(64), nullable=True)
    longitude = Column(String(64), nullable=True)
    altitude = Column(String(64), nullable=True)
    completed = Column(Boolean, nullable=True)
    due = Column(DateTime, nullable=True)
    created_time = Column(DateTime, nullable=True)
    updated_time = Column(DateTime, nullable=True)
    s3_key = Column(Text, nullable=False)
    tags = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        Index('idx_notes_updated_time', 'updated_time'),
        {'sqlite_autoincrement': True},
    )


class SyncStatusRow(Base):
    """Model for sync_status table (a single row, id 1)."""
    __tablename__ = 'sync_status'

    id = Column(Integer, primary_key=True)
    last_sync_time = Column(DateTime, nullable=True)
    total_notes = Column(Integer, nullable=False, default=0)
    storage_used = Column(String(64), nullable=False, default="0 MB")
    is_connected = Column(Boolean, nullable=False, default=False)


class CacheEntry(Base):
    """Model for notes_cache table."""
    __tablename__ = 'notes_cache'

    cache_key = Column(String(255), primary_key=True)
    payload = Column(Text, nullable=False)
    stored_at = Column(DateTime, nullable=False)
