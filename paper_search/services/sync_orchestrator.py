"""Background synchronization of MongoDB publication statistics into the papers index.

One run at a time per process. A run walks the statistics collection in ascending ``_id``
order, one page per batch, and persists the checkpoint after every page so that a stopped or
crashed run resumes after the last indexed page. Cancellation is honoured between batches.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from paper_search.clients.embeddings_client import EmbeddingsClient
from paper_search.clients.search_engine import SearchEngineGateway
from paper_search.clients.source_store import MongoSourceStore
from paper_search.core.errors import SyncFatalError
from paper_search.core.logging import clear_run_context, log_event, set_run_context
from paper_search.models.papers import IndexedPaper
from paper_search.models.results import SyncCommandResult
from paper_search.services.bulk_indexer import BulkIndexer
from paper_search.services.checkpoint import CheckpointStore, SyncCheckpoint
from paper_search.services.document_mapper import MappedPaper, attach_embedding, map_page
from paper_search.services.index_admin import IndexAdmin

logger = logging.getLogger(__name__)


@dataclass
class SyncStatus:
    checkpoint: SyncCheckpoint
    is_running: bool
    run_id: str | None = None


@dataclass
class BatchReport:
    retrieved: int
    mapped: int
    indexed: int
    item_errors: int
    last_id: str | None


class SyncOrchestrator:
    def __init__(
        self,
        *,
        source_store: MongoSourceStore,
        gateway: SearchEngineGateway,
        embeddings: EmbeddingsClient,
        checkpoint_store: CheckpointStore | None = None,
        index_admin: IndexAdmin | None = None,
        index_name: str | None = None,
        batch_size: int | None = None,
        batch_delay_seconds: float | None = None,
        error_backoff_seconds: float | None = None,
        max_critical_errors: int | None = None,
        max_consecutive_failures: int | None = None,
    ):
        from paper_search.core.config import settings

        self.source_store = source_store
        self.embeddings = embeddings
        self.checkpoint_store = checkpoint_store or CheckpointStore(settings.SYNC_CHECKPOINT_FILE)
        self.index_admin = index_admin or IndexAdmin(gateway)
        self.bulk_indexer = BulkIndexer(gateway)
        self.index_name = index_name or self.index_admin.index_name
        self.batch_size = batch_size or settings.SYNC_BATCH_SIZE
        self.batch_delay_seconds = settings.SYNC_BATCH_DELAY_SECONDS if batch_delay_seconds is None else batch_delay_seconds
        self.error_backoff_seconds = settings.SYNC_ERROR_BACKOFF_SECONDS if error_backoff_seconds is None else error_backoff_seconds
        self.max_critical_errors = max_critical_errors or settings.SYNC_MAX_CRITICAL_ERRORS
        self.max_consecutive_failures = (
            settings.SYNC_MAX_CONSECUTIVE_FAILURES if max_consecutive_failures is None else max_consecutive_failures
        )

        self._guard = asyncio.Lock()
        self._task: asyncio.Task[SyncCheckpoint] | None = None
        self._stop_requested: asyncio.Event | None = None
        self._run_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> SyncCommandResult:
        async with self._guard:
            if self.is_running:
                return SyncCommandResult(status="already_running", message="Sync is already running", run_id=self._run_id)
            self._run_id = str(uuid.uuid4())
            self._stop_requested = asyncio.Event()
            self._task = asyncio.create_task(self._run(self._run_id, self._stop_requested), name=f"paper-sync-{self._run_id}")
            return SyncCommandResult(status="started", message="Sync started", run_id=self._run_id)

    async def stop(self) -> SyncCommandResult:
        async with self._guard:
            if not self.is_running or self._task is None or self._stop_requested is None:
                return SyncCommandResult(status="not_running", message="Sync is not running")
            task = self._task
            run_id = self._run_id
            self._stop_requested.set()
            logger.info("sync_stop_requested", extra={"run_id": run_id})
            await asyncio.shield(task)
            return SyncCommandResult(status="stopped", message="Sync stopped", run_id=run_id)

    async def wait(self) -> SyncCheckpoint | None:
        task = self._task
        if task is None:
            return None
        return await asyncio.shield(task)

    def status(self) -> SyncStatus:
        running = self.is_running
        checkpoint = self.checkpoint_store.load()
        checkpoint.is_running = running
        return SyncStatus(checkpoint=checkpoint, is_running=running, run_id=self._run_id if running else None)

    def recover(self) -> SyncCheckpoint:
        return self.checkpoint_store.recover()

    async def _sleep(self, seconds: float, stop_requested: asyncio.Event) -> None:
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(stop_requested.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run(self, run_id: str, stop_requested: asyncio.Event) -> SyncCheckpoint:
        set_run_context(run_id)
        started = time.perf_counter()
        checkpoint = self.checkpoint_store.load()
        checkpoint.is_running = True
        checkpoint.started_at = datetime.now(timezone.utc)
        self.checkpoint_store.save(checkpoint)
        log_event(
            "sync.run.started",
            payload={"resume_after": checkpoint.last_id, "batch_size": self.batch_size, "index": self.index_name},
            plane="control",
        )

        outcome = "completed"
        batches = 0
        try:
            await self._ensure_index()
            consecutive_failures = 0
            while not stop_requested.is_set():
                try:
                    report = await self._process_batch(checkpoint)
                except SyncFatalError:
                    raise
                except Exception as exc:  # noqa: BLE001
                    consecutive_failures += 1
                    checkpoint.add_critical_error(f"batch after {checkpoint.last_id!r} failed: {exc}", limit=self.max_critical_errors)
                    self.checkpoint_store.save(checkpoint)
                    log_event(
                        "sync.batch.failed",
                        level=logging.ERROR,
                        payload={
                            "after_key": checkpoint.last_id,
                            "error": str(exc),
                            "error_type": type(exc).__name__,
                            "consecutive_failures": consecutive_failures,
                        },
                        plane="control",
                    )
                    if self.max_consecutive_failures and consecutive_failures >= self.max_consecutive_failures:
                        raise SyncFatalError(f"{consecutive_failures} consecutive batch failures, giving up") from exc
                    await self._sleep(self.error_backoff_seconds, stop_requested)
                    continue

                consecutive_failures = 0
                if report is None:
                    break
                batches += 1
                await self._sleep(self.batch_delay_seconds, stop_requested)
            if stop_requested.is_set():
                outcome = "cancelled"
        except Exception as exc:  # noqa: BLE001
            outcome = "failed"
            checkpoint.add_critical_error(f"sync run aborted: {exc}", limit=self.max_critical_errors)
            logger.exception("sync_run_aborted", extra={"run_id": run_id})
        finally:
            checkpoint.is_running = False
            self.checkpoint_store.save(checkpoint)
            log_event(
                "sync.run.finished",
                level=logging.ERROR if outcome == "failed" else logging.INFO,
                payload={
                    "outcome": outcome,
                    "batches": batches,
                    "last_id": checkpoint.last_id,
                    "total_retrieved": checkpoint.total_retrieved,
                    "total_indexed": checkpoint.total_indexed,
                    "duration_ms": int((time.perf_counter() - started) * 1000),
                },
                plane="control",
            )
            clear_run_context()
        return checkpoint

    async def _ensure_index(self) -> None:
        result = await asyncio.to_thread(self.index_admin.create_papers_index)
        if not result.success:
            raise SyncFatalError(f"Papers index '{result.index_name}' is unavailable: {result.error or result.message}")

    async def _embed(self, mapped: list[MappedPaper]) -> list[IndexedPaper]:
        texts = [item.contextual_text for item in mapped]
        try:
            vectors = await self.embeddings.embed_texts(texts)
            if len(vectors) != len(mapped):
                raise ValueError(f"expected {len(mapped)} embeddings, got {len(vectors)}")
        except Exception as exc:  # noqa: BLE001
            logger.warning("sync_embeddings_failed_zero_fallback", extra={"papers": len(mapped), "error": str(exc)})
            vectors = [self.embeddings.zero_vector() for _ in mapped]
        return [attach_embedding(item, vector) for item, vector in zip(mapped, vectors)]

    async def _process_batch(self, checkpoint: SyncCheckpoint) -> BatchReport | None:
        """Fetch, map, embed and index one page. ``None`` means the source is exhausted."""
        started = time.perf_counter()
        stats = await asyncio.to_thread(self.source_store.fetch_page, checkpoint.last_id, self.batch_size)
        if not stats:
            logger.info("sync_source_exhausted", extra={"last_id": checkpoint.last_id})
            return None

        references = await asyncio.to_thread(self.source_store.fetch_references_by_keys, [s.key for s in stats])
        page = map_page(stats, references)
        papers = await self._embed(page.mapped) if page.mapped else []
        result = await asyncio.to_thread(self.bulk_indexer.index_batch, self.index_name, papers)

        checkpoint.advance(stats[-1].key, retrieved=len(stats), indexed=result.indexed)
        self.checkpoint_store.save(checkpoint)

        report = BatchReport(
            retrieved=len(stats),
            mapped=len(page.mapped),
            indexed=result.indexed,
            item_errors=len(result.errors),
            last_id=checkpoint.last_id,
        )
        log_event(
            "sync.batch.completed",
            payload={
                "retrieved": report.retrieved,
                "mapped": report.mapped,
                "indexed": report.indexed,
                "item_errors": report.item_errors,
                "missing_references": len(page.missing_reference),
                "excluded": len(page.excluded),
                "mapping_failures": len(page.failed),
                "last_id": report.last_id,
                "total_indexed": checkpoint.total_indexed,
                "duration_ms": int((time.perf_counter() - started) * 1000),
            },
            plane="control",
        )
        return report
