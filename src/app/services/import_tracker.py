# src/app/services/import_tracker.py
"""
Background multi-item imports with pollable progress.

Each import runs as one asyncio task that walks the items of an
ImportSource, recovers per item, and publishes a snapshot of the job to
the store after every step. Callers only ever poll.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence
from uuid import uuid4

from bs4 import BeautifulSoup

from src.app.domain.errors import ImportCapacityError, ImportJobNotFoundError, InsufficientDataError
from src.app.domain.models import (
    CanonicalRecipe,
    ImportItem,
    ImportJob,
    ImportStatus,
    ImportSummary,
    Platform,
)
from src.app.infra.scrapers.base import NoteStoreClient
from src.app.infra.store.base import KeyValueStore
from src.app.infra.store.memory import InMemoryStore
from src.app.services.extraction_dispatcher import ExtractionDispatcher
from src.app.services.recipe_normalizer import to_canonical_recipe
from src.services.apple_notes import ExportedNote
from src.services.recipe_text import parse_recipe_text

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_HOURS = 24
DEFAULT_MAX_ERRORS = 50
DEFAULT_MAX_ACTIVE = 10
DEFAULT_SWEEP_INTERVAL_SECONDS = 600


# =============================================================================
# Sources
# =============================================================================

class ImportSource(ABC):
    """Something that can enumerate items and turn each one into a recipe."""

    @abstractmethod
    async def list_items(self) -> Sequence[ImportItem]:
        pass

    @abstractmethod
    async def process_item(self, item: ImportItem) -> Any:
        """Process one item; raise to record it as a failure."""
        pass


class UrlImportSource(ImportSource):
    def __init__(self, dispatcher: ExtractionDispatcher, urls: Sequence[str], options: Optional[dict] = None):
        self.dispatcher = dispatcher
        self.urls = list(urls)
        self.options = options

    async def list_items(self) -> Sequence[ImportItem]:
        return [ImportItem(label=url.strip(), payload=url.strip()) for url in self.urls if url and url.strip()]

    async def process_item(self, item: ImportItem) -> CanonicalRecipe:
        return await self.dispatcher.extract(item.payload, options=self.options)


def note_text(content: str) -> str:
    """Plain text of a note body (ENML/HTML or already plain)."""
    if "<" not in content:
        return content
    soup = BeautifulSoup(content, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    return soup.get_text("\n")


class NoteImportSource(ImportSource):
    """Imports recipes from a note store notebook (or all notebooks)."""

    def __init__(
        self,
        client: NoteStoreClient,
        notebook_id: Optional[str] = None,
        max_notes: int = 100,
        platform: Platform = Platform.EVERNOTE,
    ):
        self.client = client
        self.notebook_id = notebook_id
        self.max_notes = max_notes
        self.platform = platform

    async def list_items(self) -> Sequence[ImportItem]:
        notes = await self.client.list_notes(self.notebook_id, self.max_notes)
        return [ImportItem(label=note.title or note.id, payload=note.id) for note in notes[: self.max_notes]]

    async def process_item(self, item: ImportItem) -> CanonicalRecipe:
        note = await self.client.get_note(item.payload)
        parsed = parse_recipe_text(note_text(note.content), fallback_title=note.title)
        if parsed.is_empty:
            raise InsufficientDataError(f"No recipe found in note: {note.title or note.id}", platform=self.platform.value)

        return to_canonical_recipe(
            {
                "title": parsed.title,
                "ingredients": parsed.ingredients,
                "instructions": parsed.instructions,
                "cookingTime": parsed.cooking_time,
                "servings": parsed.servings,
                "tags": list(note.tags) + parsed.tags,
                "noteId": note.id,
                "notebookId": note.notebook_id,
                "resourceIds": list(note.resource_ids),
            },
            note.source_url or f"{self.platform.value}:{note.id}",
            self.platform,
        )


class AppleNotesImportSource(ImportSource):
    """Imports recipes from the notes of a parsed Apple Notes export."""

    platform = Platform.APPLE_NOTES

    def __init__(self, notes: Sequence[ExportedNote], folder: Optional[str] = None):
        self.notes = list(notes)
        self.folder = folder

    async def list_items(self) -> Sequence[ImportItem]:
        return [
            ImportItem(label=note.title, payload=note)
            for note in self.notes
            if self.folder is None or note.folder == self.folder
        ]

    async def process_item(self, item: ImportItem) -> CanonicalRecipe:
        note: ExportedNote = item.payload
        if note.is_locked:
            raise InsufficientDataError(f"Note is locked: {note.title}", platform=self.platform.value)
        parsed = parse_recipe_text(note_text(note.content), fallback_title=note.title)
        if parsed.is_empty:
            raise InsufficientDataError(f"No recipe found in note: {note.title}", platform=self.platform.value)

        return to_canonical_recipe(
            {
                "title": parsed.title,
                "ingredients": parsed.ingredients,
                "instructions": parsed.instructions,
                "cookingTime": parsed.cooking_time,
                "servings": parsed.servings,
                "tags": list(dict.fromkeys(note.tags + parsed.tags)),
                "noteId": note.id,
                "folder": note.folder,
                "created": note.created,
                "modified": note.modified,
                "isPinned": note.is_pinned,
            },
            f"{self.platform.value}:{note.id}",
            self.platform,
        )


# =============================================================================
# Tracker
# =============================================================================

class ImportTracker:
    """
    Owns import jobs from creation until the retention sweep evicts them.

    Status moves pending -> running -> completed | failed | cancelled and
    never backwards. While running, success_count + failure_count always
    equals processed_items.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore[ImportJob]] = None,
        retention_hours: float = DEFAULT_RETENTION_HOURS,
        max_errors: int = DEFAULT_MAX_ERRORS,
        max_active: int = DEFAULT_MAX_ACTIVE,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._store: KeyValueStore[ImportJob] = store if store is not None else InMemoryStore()
        self.retention = timedelta(hours=retention_hours)
        self.max_errors = max_errors
        self.max_active = max_active
        self.sweep_interval_seconds = sweep_interval_seconds
        self._now = now
        self._lock = threading.Lock()
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}
        self._sweeper: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for task in self._tasks.values() if not task.done())

    def create_import(self, source: ImportSource) -> str:
        """
        Register a pending job and schedule its driver on the running loop.

        Raises:
            ImportCapacityError: If max_active imports are already running
        """
        with self._lock:
            active = sum(1 for task in self._tasks.values() if not task.done())
            if active >= self.max_active:
                raise ImportCapacityError(active, self.max_active)

            job_id = uuid4().hex
            self._store.set(job_id, ImportJob(id=job_id, status=ImportStatus.PENDING, started_at=self._now()))
            cancel_event = asyncio.Event()
            self._cancel_events[job_id] = cancel_event
            task = asyncio.create_task(self._drive(job_id, source, cancel_event), name=f"import-{job_id}")
            self._tasks[job_id] = task

        task.add_done_callback(lambda _: self._forget(job_id))
        logger.info("Import created: job_id=%s, source=%s", job_id, type(source).__name__)
        return job_id

    def get_status(self, job_id: str) -> ImportJob:
        """
        Raises:
            ImportJobNotFoundError: Unknown or already evicted job
        """
        job = self._store.get(job_id)
        if job is None:
            raise ImportJobNotFoundError(job_id)
        return job

    def cancel(self, job_id: str) -> bool:
        """
        Ask a job to stop before its next item.

        Returns:
            False if the job had already finished

        Raises:
            ImportJobNotFoundError: Unknown or already evicted job
        """
        job = self.get_status(job_id)
        if job.is_complete:
            return False
        with self._lock:
            event = self._cancel_events.get(job_id)
        if event is None:
            return False
        event.set()
        logger.info("Import cancellation requested: job_id=%s", job_id)
        return True

    def sweep(self) -> int:
        """Evict jobs older than the retention window, whatever their status."""
        cutoff = self._now() - self.retention
        evicted: list[str] = []

        def _expired(job_id: str, job: ImportJob) -> bool:
            if job.started_at < cutoff:
                evicted.append(job_id)
                return True
            return False

        count = self._store.sweep(_expired)
        with self._lock:
            for job_id in evicted:
                event = self._cancel_events.get(job_id)
                if event is not None:
                    event.set()
        if count:
            logger.info("Import sweep evicted %d job(s)", count)
        return count

    async def start_sweeper(self) -> None:
        if self._sweeper and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="import-sweeper")

    async def stop_sweeper(self) -> None:
        if not self._sweeper:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        finally:
            self._sweeper = None

    async def shutdown(self) -> None:
        """Stop the sweeper and cancel every running driver."""
        await self.stop_sweeper()
        with self._lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def _forget(self, job_id: str) -> None:
        with self._lock:
            self._tasks.pop(job_id, None)
            self._cancel_events.pop(job_id, None)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception:
                logger.exception("Import sweep failed")

    def _publish(self, job: ImportJob) -> None:
        # evicted jobs are not resurrected
        if job.id not in self._store:
            return
        self._store.set(job.id, dataclasses.replace(job, errors=list(job.errors)))

    def _append_error(self, job: ImportJob, message: str) -> None:
        if len(job.errors) < self.max_errors:
            job.errors.append(message)

    def _finish(self, job: ImportJob, status: ImportStatus) -> None:
        job.status = status
        job.completed_at = self._now()
        job.current_item_label = None
        if status == ImportStatus.COMPLETED:
            job.estimated_ms_remaining = 0
            job.summary = ImportSummary(
                total_recipes=job.success_count,
                success_rate=round(job.success_count / job.total_items * 100) if job.total_items else 0,
                total_errors=job.failure_count,
            )
        self._publish(job)
        logger.info(
            "Import finished: job_id=%s, status=%s, processed=%d/%d, failures=%d",
            job.id, status.value, job.processed_items, job.total_items, job.failure_count,
        )

    async def _drive(self, job_id: str, source: ImportSource, cancel_event: asyncio.Event) -> None:
        stored = self._store.get(job_id)
        if stored is None:
            return
        job = dataclasses.replace(stored, errors=list(stored.errors))

        try:
            if cancel_event.is_set():
                self._finish(job, ImportStatus.CANCELLED)
                return

            job.status = ImportStatus.RUNNING
            self._publish(job)

            items = list(await source.list_items())
            job.total_items = len(items)
            self._publish(job)

            started = time.monotonic()
            for index, item in enumerate(items):
                if cancel_event.is_set():
                    self._finish(job, ImportStatus.CANCELLED)
                    return

                job.current_item_label = item.label
                job.processed_items = index
                self._publish(job)

                try:
                    await source.process_item(item)
                    job.success_count += 1
                except Exception as error:
                    job.failure_count += 1
                    self._append_error(job, f"{item.label}: {error}")
                    logger.warning("Import item failed: job_id=%s, item=%s, error=%s", job_id, item.label, error)

                job.processed_items = index + 1
                average_ms = (time.monotonic() - started) * 1000 / job.processed_items
                job.estimated_ms_remaining = int(average_ms * (job.total_items - job.processed_items))
                self._publish(job)

            self._finish(job, ImportStatus.COMPLETED)
        except asyncio.CancelledError:
            self._finish(job, ImportStatus.CANCELLED)
            raise
        except Exception as error:
            logger.exception("Import failed: job_id=%s", job_id)
            self._append_error(job, str(error) or type(error).__name__)
            self._finish(job, ImportStatus.FAILED)
