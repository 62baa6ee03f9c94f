"""Sync reconciliation: rebuild the note set from the bucket."""

import asyncio
import logging
from dataclasses import asdict
from typing import List, Optional

from services.note_extractor.builder import NOTE_EXTENSION
from services.note_extractor.classifier import RejectReason
from services.note_extractor.extractor import NoteExtractor
from services.note_extractor.s3_client import S3Client
from services.sync_service.notifications import NotificationService
from services.sync_service.tags import tag_counts
from shared.cache import SnapshotCache
from shared.config import SyncConfig
from shared.db_operations import DatabaseOperations
from shared.exceptions import (
    NotFound, StoreUnavailable, SyncAborted, SyncInProgress, TransientIO
)
from shared.models import (
    CacheSnapshot, ObjectListing, RawObject, SyncResult, SyncStatus, TagCount, utc_now
)

logger = logging.getLogger(__name__)


def format_storage(size_bytes: int) -> str:
    """Human readable storage figure, in megabytes with two decimals."""
    return f"{size_bytes / 1024 / 1024:.2f} MB"


class SyncReconciler:
    """Replaces the stored note set with a fresh full scan of the bucket."""

    def __init__(
        self,
        object_store: Optional[S3Client],
        db_ops: DatabaseOperations,
        cache: SnapshotCache,
        extractor: NoteExtractor,
        config: SyncConfig,
        notification_service: Optional[NotificationService] = None,
        config_error: Optional[str] = None
    ):
        """
        Initialize the sync reconciler.

        Args:
            object_store: Client for the export bucket; None when storage is not configured
            db_ops: Note and status store
            cache: Snapshot cache refreshed after each sync
            extractor: Turns fetched objects into notes
            config: Sync settings
            notification_service: Notified when a sync aborts
            config_error: Why object_store is missing, reported on sync
        """
        self.object_store = object_store
        self.db_ops = db_ops
        self.cache = cache
        self.extractor = extractor
        self.config = config
        self.notification_service = notification_service or NotificationService()
        self.config_error = config_error
        self._lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    async def run_sync(self) -> SyncResult:
        """
        Run one full sync pass.

        Steps:
        1. List the bucket (failure aborts the pass)
        2. Fetch every ``.md`` object with bounded concurrency (failures skip the object)
        3. Split, parse, classify and build notes in listing order
        4. Replace the whole note set (failure aborts the pass)
        5. Update sync status and write the cache snapshot

        Returns:
            SyncResult with the number of stored notes and the storage label

        Raises:
            SyncInProgress: If another pass is running
            SyncAborted: If the pass failed; the previous note set is kept
        """
        if self._lock.locked():
            logger.warning("Sync requested while another sync is running")
            raise SyncInProgress()

        async with self._lock:
            return await self._run_pass()

    async def ensure_warm(self) -> bool:
        """
        Make sure reads have notes to serve after a cold start.

        When the note store is empty, restore it from a fresh cache snapshot,
        or failing that run a full sync.

        Returns:
            True if notes were loaded or synced, False if nothing happened
        """
        if self._lock.locked() or self.db_ops.count_notes() > 0:
            return False

        async with self._lock:
            if self.db_ops.count_notes() > 0:
                return False

            snapshot = self.cache.get()
            if snapshot is not None and self.cache.is_fresh(snapshot):
                self._hydrate(snapshot)
                return True

            logger.info("Note store empty and no fresh cache, running auto-sync")
            try:
                await self._run_pass()
            except SyncAborted as e:
                logger.warning(f"Auto-sync failed: {e.reason}")
                return False
            return True

    def list_tags(self) -> List[TagCount]:
        """Tag counts across the stored notes."""
        return tag_counts(self.db_ops.get_all_notes())

    async def _run_pass(self) -> SyncResult:
        logger.info("Starting sync")

        if self.object_store is None:
            await self._abort(self.config_error or "No S3 configuration found", stage="configuration")

        try:
            listings = await self.object_store.list_objects(self.config.key_prefix)
        except TransientIO as e:
            await self._abort(e.message, stage="listing", cause=e)

        note_listings = [item for item in listings if item.key.endswith(NOTE_EXTENSION)]
        logger.info(f"Found {len(note_listings)} markdown files out of {len(listings)} objects")

        raw_objects = await self._fetch_all(note_listings)
        fetched = [raw for raw in raw_objects if raw is not None]

        batch = self.extractor.extract_notes(fetched)
        failed_fetches = len(raw_objects) - len(fetched)
        if failed_fetches:
            batch.skipped[RejectReason.FETCH_FAILED.value] += failed_fetches

        if self.config.storage_accounting == "scanned":
            storage_used = format_storage(batch.scanned_bytes)
        else:
            storage_used = format_storage(batch.accepted_bytes)

        now = utc_now()
        try:
            stored = self.db_ops.replace_all_notes(batch.notes)
        except StoreUnavailable as e:
            await self._abort(e.message, stage="replacing", cause=e)

        # The note set is committed; status write failures are only logged
        status = SyncStatus(
            last_sync_time=now,
            total_notes=len(stored),
            storage_used=storage_used,
            is_connected=True
        )
        try:
            status = self.db_ops.merge_sync_status(**asdict(status))
        except StoreUnavailable as e:
            logger.error(f"Notes replaced but sync status was not recorded: {e}")

        self.cache.put(CacheSnapshot(notes=stored, sync_status=status, timestamp=now))

        logger.info(f"Sync completed: {len(stored)} notes stored, {storage_used}")
        return SyncResult(
            processed_count=len(stored),
            storage_used_label=storage_used,
            skipped=dict(batch.skipped)
        )

    async def _fetch_all(self, listings: List[ObjectListing]) -> List[Optional[RawObject]]:
        """Fetch objects concurrently; the result keeps listing order."""
        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def fetch(listing: ObjectListing) -> Optional[RawObject]:
            async with semaphore:
                try:
                    return await self.object_store.get_object(listing.key)
                except (TransientIO, NotFound) as e:
                    logger.warning(f"Skipping {listing.key}: {e}")
                    return None

        return await asyncio.gather(*(fetch(listing) for listing in listings))

    def _hydrate(self, snapshot: CacheSnapshot):
        stored = self.db_ops.replace_all_notes(snapshot.notes)
        status = snapshot.sync_status
        self.db_ops.merge_sync_status(
            last_sync_time=status.last_sync_time,
            total_notes=status.total_notes,
            storage_used=status.storage_used,
            is_connected=status.is_connected
        )
        logger.info(f"Restored {len(stored)} notes from cache snapshot of {snapshot.timestamp}")

    async def _abort(self, reason: str, stage: str, cause: Optional[Exception] = None):
        logger.error(f"Sync aborted during {stage}: {reason}")

        try:
            self.db_ops.merge_sync_status(is_connected=False)
        except StoreUnavailable as e:
            logger.error(f"Could not mark sync status disconnected: {e}")

        await self.notification_service.send_sync_failure_notification(
            reason=reason,
            context={"stage": stage}
        )

        raise SyncAborted(reason, {"stage": stage}) from cause
