"""Notes Sync Service - FastAPI application."""

import asyncio
import logging
import os
import sys
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.note_extractor.extractor import NoteExtractor
from services.note_extractor.s3_client import S3Client, build_s3_client
from services.sync_service.reconciler import SyncReconciler
from shared.cache import SnapshotCache
from shared.config import get_aws_config, get_sync_config
from shared.db_operations import DatabaseOperations
from shared.exceptions import ConfigMissing, SyncAborted, SyncInProgress

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

# Global instances
db_ops: Optional[DatabaseOperations] = None
s3_client: Optional[S3Client] = None
reconciler: Optional[SyncReconciler] = None


async def periodic_sync(interval_seconds: float, stop: asyncio.Event):
    """Run a sync every ``interval_seconds`` until ``stop`` is set.

    A pass that is already running when ``stop`` is set runs to completion.
    """
    while not stop.is_set():
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            return
        except asyncio.TimeoutError:
            pass

        try:
            result = await reconciler.run_sync()
            logger.info(f"Scheduled sync stored {result.processed_count} notes")
        except SyncInProgress:
            logger.info("Scheduled sync skipped, another sync is running")
        except SyncAborted as e:
            logger.error(f"Scheduled sync failed: {e.reason}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    global db_ops, s3_client, reconciler

    logger.info("Notes Sync Service starting up...")

    db_ops = DatabaseOperations()
    db_ops.create_tables()
    logger.info("Database connection initialized")

    sync_config = get_sync_config()

    config_error = None
    try:
        s3_client = build_s3_client(get_aws_config())
        logger.info(f"S3 client initialized for bucket {s3_client.bucket_name}")
    except ConfigMissing as e:
        config_error = e.message
        logger.warning(f"S3 not configured, syncs will fail until it is: {e.message}")

    reconciler = SyncReconciler(
        object_store=s3_client,
        db_ops=db_ops,
        cache=SnapshotCache(db_ops),
        extractor=NoteExtractor.from_config(sync_config),
        config=sync_config,
        config_error=config_error
    )
    logger.info(f"Sync reconciler initialized (dialect={sync_config.dialect})")

    scheduler = None
    stop_scheduler = asyncio.Event()
    if sync_config.interval_seconds:
        scheduler = asyncio.create_task(
            periodic_sync(sync_config.interval_seconds, stop_scheduler)
        )
        logger.info(f"Scheduled sync every {sync_config.interval_seconds} seconds")

    yield

    if scheduler is not None:
        stop_scheduler.set()
        await scheduler
    logger.info("Notes Sync Service shutting down...")


# Create FastAPI application
app = FastAPI(
    title="Notes Sync Service",
    description="Syncs a Joplin export stored in S3 into a searchable note set",
    version="0.1.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error handling middleware
@app.middleware("http")
async def error_handling_middleware(request: Request, call_next):
    """Global error handling middleware."""
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc)
            }
        )


# Request/Response models
class NoteResponse(BaseModel):
    """Response model for a note."""
    id: int
    joplin_id: str
    title: str
    body: str
    author: Optional[str] = None
    source: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    altitude: Optional[str] = None
    completed: Optional[bool] = None
    due: Optional[datetime] = None
    created_time: Optional[datetime] = None
    updated_time: Optional[datetime] = None
    s3_key: str
    tags: List[str] = []


class SyncResponse(BaseModel):
    """Response model for a finished sync."""
    message: str
    notes_count: int
    storage_used: str
    skipped: Dict[str, int] = {}


class SyncStatusResponse(BaseModel):
    """Response model for sync status."""
    last_sync_time: Optional[datetime] = None
    total_notes: int = 0
    storage_used: str = "0 MB"
    is_connected: bool = False


class TagResponse(BaseModel):
    """Response model for a tag count."""
    name: str
    count: int


class StorageTestResponse(BaseModel):
    """Response model for the storage connection test."""
    success: bool
    message: str


# Health check endpoint
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint."""
    db_healthy = False
    try:
        db_ops.count_notes()
        db_healthy = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")

    overall_status = "healthy" if (db_healthy and s3_client is not None) else "degraded"

    return {
        "status": overall_status,
        "service": "notes_sync_service",
        "version": "0.1.0",
        "dependencies": {
            "database": "up" if db_healthy else "down",
            "object_store": "configured" if s3_client is not None else "not configured"
        }
    }


@app.get("/", status_code=status.HTTP_200_OK)
async def root():
    """Root endpoint."""
    return {
        "service": "Notes Sync Service",
        "version": "0.1.0",
        "status": "running"
    }


@app.post("/api/notes/sync", response_model=SyncResponse, status_code=status.HTTP_200_OK)
async def sync_notes():
    """
    Run a full sync and wait for it to finish.

    Returns:
        SyncResponse with the number of stored notes and storage used

    Raises:
        HTTPException: 409 if a sync is already running, 500 if the sync aborted
    """
    logger.info("Received sync request")

    try:
        result = await reconciler.run_sync()
    except SyncInProgress as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.reason)
    except SyncAborted as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.reason)

    return SyncResponse(
        message="Sync completed successfully",
        notes_count=result.processed_count,
        storage_used=result.storage_used_label,
        skipped=result.skipped
    )


@app.get("/api/notes", response_model=List[NoteResponse], status_code=status.HTTP_200_OK)
async def list_notes(
    search: Optional[str] = None,
    tags: Optional[List[str]] = Query(default=None)
):
    """
    List notes, newest first.

    Args:
        search: Case-insensitive text to match in title, body or tags
        tags: Return notes carrying any of these tags (ignored when searching)
    """
    await reconciler.ensure_warm()

    if search:
        notes = db_ops.search_notes(search)
    elif tags:
        notes = db_ops.get_notes_by_tags(tags)
    else:
        notes = db_ops.get_all_notes()

    return [NoteResponse(**asdict(note)) for note in notes]


@app.get("/api/notes/{note_id}", response_model=NoteResponse, status_code=status.HTTP_200_OK)
async def get_note(note_id: int):
    """
    Get a single note by id.

    Raises:
        HTTPException: 404 if the note does not exist
    """
    await reconciler.ensure_warm()

    note = db_ops.get_note_by_id(note_id)
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note {note_id} not found"
        )

    return NoteResponse(**asdict(note))


@app.get("/api/sync-status", response_model=SyncStatusResponse, status_code=status.HTTP_200_OK)
async def get_sync_status():
    """Get the status of the last sync."""
    sync_status = db_ops.get_sync_status()
    if sync_status is None:
        return SyncStatusResponse()
    return SyncStatusResponse(**asdict(sync_status))


@app.get("/api/tags", response_model=List[TagResponse], status_code=status.HTTP_200_OK)
async def list_tags():
    """Get every tag with the number of notes carrying it."""
    await reconciler.ensure_warm()
    return [TagResponse(name=tag.name, count=tag.count) for tag in reconciler.list_tags()]


@app.get("/api/storage/test", response_model=StorageTestResponse, status_code=status.HTTP_200_OK)
async def test_storage():
    """Check that the configured bucket is reachable."""
    if s3_client is None:
        return StorageTestResponse(success=False, message="No S3 configuration found")

    if await s3_client.test_connection():
        return StorageTestResponse(success=True, message="S3 connection successful")
    return StorageTestResponse(success=False, message="S3 connection failed")


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("SYNC_SERVICE_PORT", 8005))
    uvicorn.run(app, host="0.0.0.0", port=port)
