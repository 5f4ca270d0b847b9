"""
Per-video index state machine.

    PENDING --> PROCESSING --> INDEXED
                     |
                     +-------> FAILED --(ensure_missing / force)--> PROCESSING

``ensure_video_index`` never raises for a failed fetch or ingest: the
error is written to the record and returned in the result dict. The
in-flight set keeps two callers in this process from indexing the same
video at once.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from replybot.config.settings import IndexingSettings, IngestionSettings, get_settings
from replybot.errors import ConfigurationError, ExternalServiceError
from replybot.ingestion.pipeline import IngestionPipeline
from replybot.ingestion.summary import summarize_chunks
from replybot.storage.comment_store import CommentStore
from replybot.storage.models import IndexStatus, VideoIndex
from replybot.storage.video_index_store import VideoIndexStore
from replybot.transcripts.resolver import TranscriptResolver
from replybot.transcripts.sources import FetchOutcome

logger = logging.getLogger(__name__)


class VideoIndexOrchestrator:
    """Drives transcript fetch and ingestion for each video and records the outcome."""

    def __init__(
        self,
        resolver: TranscriptResolver,
        pipeline: IngestionPipeline,
        index_store: Optional[VideoIndexStore] = None,
        comment_store: Optional[CommentStore] = None,
        metadata_client=None,
        settings: Optional[IndexingSettings] = None,
        ingestion_settings: Optional[IngestionSettings] = None,
    ) -> None:
        all_settings = get_settings()
        self._resolver = resolver
        self._pipeline = pipeline
        self._index_store = index_store or VideoIndexStore()
        self._comment_store = comment_store or CommentStore()
        self._metadata_client = metadata_client
        self._settings = settings or all_settings.indexing
        self._ingestion_settings = ingestion_settings or all_settings.ingestion

        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    # ----- single video -----

    def ensure_video_index(self, video_id: str, force_reindex: bool = False) -> dict[str, Any]:
        """
        Make sure *video_id* is indexed.

        An INDEXED record is returned as-is unless *force_reindex* is set.
        Anything else is (re)processed. The returned dict always carries
        ``videoId``, ``status``, ``skipped``, ``error`` and the record.
        """
        existing = self._index_store.get(video_id)
        if existing is not None and existing.status == IndexStatus.INDEXED.value and not force_reindex:
            return self._result(existing, skipped="already_indexed")

        with self._lock:
            if video_id in self._in_flight:
                logger.info("Video %s is already being indexed, skipping", video_id)
                return self._result(existing, video_id=video_id, skipped="in_progress")
            self._in_flight.add(video_id)

        try:
            return self._process(video_id, existing, force_reindex)
        finally:
            with self._lock:
                self._in_flight.discard(video_id)

    def _process(
        self,
        video_id: str,
        existing: Optional[VideoIndex],
        force_reindex: bool,
    ) -> dict[str, Any]:
        # Chunks left behind by a failed or interrupted run are not trusted
        replace_chunks = force_reindex or (
            existing is not None
            and existing.status in (IndexStatus.FAILED.value, IndexStatus.PROCESSING.value)
        )

        self._index_store.mark_processing(video_id)

        try:
            title = self._refresh_title(video_id, existing)
            fetched = self._resolver.resolve(video_id)
            if fetched.outcome is FetchOutcome.UNAVAILABLE:
                record = self._index_store.mark_failed(
                    video_id, "No transcript available from any source"
                )
                return self._result(record, error=record.error_message)
            if fetched.outcome is FetchOutcome.ERROR:
                record = self._index_store.mark_failed(
                    video_id, f"Transcript fetch failed ({fetched.source}): {fetched.error}"
                )
                return self._result(record, error=record.error_message)

            ingested = self._pipeline.ingest(
                fetched.text,
                {"videoId": video_id, "title": title, "source": fetched.source},
                force_reindex=replace_chunks,
            )
        except ConfigurationError as exc:
            self._index_store.mark_failed(video_id, f"ConfigurationError: {exc}")
            raise
        except Exception as exc:
            logger.warning("Indexing %s failed: %s", video_id, exc, exc_info=not isinstance(exc, ExternalServiceError))
            record = self._index_store.mark_failed(video_id, f"{type(exc).__name__}: {exc}")
            return self._result(record, error=record.error_message)

        if ingested.chunks and len(ingested.failures) >= len(ingested.chunks):
            record = self._index_store.mark_failed(
                video_id, f"Embedding failed for all {len(ingested.chunks)} chunks"
            )
            return self._result(record, error=record.error_message, failures=ingested.failures)

        summary = summarize_chunks(ingested.chunks, top_n=self._ingestion_settings.summary_keywords)
        summary["source"] = fetched.source
        summary["failedChunks"] = len(ingested.failures)

        record = self._index_store.mark_indexed(
            video_id,
            source=fetched.source,
            chunks_json=json.dumps(ingested.chunks, ensure_ascii=False),
            summary_json=json.dumps(summary, ensure_ascii=False),
            error_message=(
                f"{len(ingested.failures)} chunk embeddings failed" if ingested.failures else None
            ),
        )
        return self._result(
            record,
            chunks_written=ingested.chunks_written,
            failures=ingested.failures,
        )

    def _refresh_title(self, video_id: str, existing: Optional[VideoIndex]) -> str:
        title = existing.title if existing is not None else ""
        if self._metadata_client is None:
            return title
        try:
            meta = self._metadata_client.fetch_video_meta(video_id)
        except ExternalServiceError as exc:
            logger.warning("Could not fetch metadata for %s: %s", video_id, exc)
            return title
        if meta and meta.get("title"):
            title = meta["title"]
            self._index_store.set_title(video_id, title)
        return title

    @staticmethod
    def _result(
        record: Optional[VideoIndex],
        video_id: Optional[str] = None,
        skipped: Optional[str] = None,
        error: Optional[str] = None,
        chunks_written: int = 0,
        failures: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        return {
            "videoId": record.video_id if record is not None else video_id,
            "status": record.status if record is not None else None,
            "skipped": skipped,
            "error": error,
            "chunksWritten": chunks_written,
            "failures": failures or [],
            "index": record.to_dict() if record is not None else None,
        }

    # ----- batch -----

    def videos_needing_index(self) -> list[str]:
        """
        Videos referenced by comments with no index record, plus records
        still PENDING or FAILED. PROCESSING and INDEXED videos are excluded.
        """
        records = {r.video_id: r for r in self._index_store.get_by_status(
            [IndexStatus.PENDING.value, IndexStatus.FAILED.value]
        )}
        candidates = list(records)
        for video_id in self._comment_store.video_ids():
            if video_id in records:
                continue
            if self._index_store.get(video_id) is None:
                candidates.append(video_id)
        return candidates

    def ensure_missing(self) -> dict[str, Any]:
        """
        Index every video that needs it, ``max_concurrency`` at a time.

        One video's failure never stops the batch. Returns counts of
        succeeded, failed and skipped videos plus each per-video result.
        """
        self.recover_stale()
        video_ids = self.videos_needing_index()
        logger.info("ensure_missing: %d videos need indexing", len(video_ids))

        results: list[dict[str, Any]] = []
        if video_ids:
            workers = max(1, min(self._settings.max_concurrency, len(video_ids)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ensure-index") as pool:
                results = list(pool.map(self._ensure_one, video_ids))

        summary = {
            "total": len(results),
            "succeeded": sum(1 for r in results if not r["error"] and not r["skipped"]),
            "failed": sum(1 for r in results if r["error"]),
            "skipped": sum(1 for r in results if r["skipped"] and not r["error"]),
            "results": results,
        }
        logger.info(
            "ensure_missing finished: %d succeeded, %d failed, %d skipped",
            summary["succeeded"], summary["failed"], summary["skipped"],
        )
        return summary

    def _ensure_one(self, video_id: str) -> dict[str, Any]:
        try:
            return self.ensure_video_index(video_id)
        except ConfigurationError:
            raise
        except Exception as exc:
            # Storage-level failure; the record may not reflect it
            logger.exception("ensure_video_index crashed for %s", video_id)
            return {
                "videoId": video_id,
                "status": None,
                "skipped": None,
                "error": f"{type(exc).__name__}: {exc}",
                "chunksWritten": 0,
                "failures": [],
                "index": None,
            }

    def recover_stale(self) -> int:
        """Fail records left in PROCESSING by a crashed run so they are retried."""
        return self._index_store.recover_stale_processing(self._settings.stale_processing_seconds)
