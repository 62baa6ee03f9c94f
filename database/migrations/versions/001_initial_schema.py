"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create notes table
    op.execute("""
        CREATE TABLE IF NOT EXISTS notes (
            id SERIAL PRIMARY KEY,
            joplin_id VARCHAR(255) NOT NULL UNIQUE,
            title TEXT NOT NULL,
            body TEXT NOT NULL,
            author TEXT,
            source TEXT,
            latitude VARCHAR(64),
            longitude VARCHAR(64),
            altitude VARCHAR(64),
            completed BOOLEAN,
            due TIMESTAMP,
            created_time TIMESTAMP,
            updated_time TIMESTAMP,
            s3_key TEXT NOT NULL,
            tags JSON NOT NULL DEFAULT '[]'
        )
    """)

    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notes_updated_time
        ON notes(updated_time DESC NULLS LAST)
    """)

    # Create sync_status table
    op.execute("""
        CREATE TABLE IF NOT EXISTS sync_status (
            id INTEGER PRIMARY KEY,
            last_sync_time TIMESTAMP,
            total_notes INTEGER NOT NULL DEFAULT 0,
            storage_used VARCHAR(64) NOT NULL DEFAULT '0 MB',
            is_connected BOOLEAN NOT NULL DEFAULT FALSE
        )
    """)

    # Create notes_cache table
    op.execute("""
        CREATE TABLE IF NOT EXISTS notes_cache (
            cache_key VARCHAR(255) PRIMARY KEY,
            payload TEXT NOT NULL,
            stored_at TIMESTAMP NOT NULL
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notes_cache")
    op.execute("DROP TABLE IF EXISTS sync_status")
    op.execute("DROP TABLE IF EXISTS notes")
