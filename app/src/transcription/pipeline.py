"""
Chunked transcription pipeline.

Downloads a remote audio file in byte-range chunks, transcribes each
chunk in order, streams progress to an ``EventSink`` and stores the
finished transcript in the ``TranscriptCache``.

    cache hit ──> Status("Loaded from cache") ─> Completed
    cache miss ─> probe size ─> chunk i: download, transcribe, append
              ─> persist ─> Completed

Any fatal error ends the job with a single Failed event and nothing is
persisted. The sink is closed exactly once on every exit path.
"""

import logging
import time
from typing import Callable, Optional, Type

from commons import generate_job_id, with_retry
from configs.config import get_config
from src.database.transcript_repository import TranscriptCache
from src.transcription.backends import TranscriptionBackend
from src.transcription.channel import EventSink
from src.transcription.chunking import compute_chunk_ranges
from src.transcription.errors import (
    BackendError,
    CacheUnavailable,
    ChannelClosedEarly,
    ChunkFetchError,
    ChunkTranscriptionError,
    PreconditionError,
    RangeUnavailable,
    SizeUnknownError,
    TranscriptionError,
)
from src.transcription.export import TranscriptExporter
from src.transcription.models import ByteRange, JobState, ProgressEvent, TranscriptionJob
from src.transcription.range_fetcher import HttpRangeFetcher

logger = logging.getLogger(__name__)
cfg = get_config()


class ChunkedTranscriptionPipeline:
    """Orchestrates fetcher, backend and cache for one job at a time."""

    def __init__(
        self,
        fetcher: HttpRangeFetcher,
        backend: TranscriptionBackend,
        cache: Optional[TranscriptCache] = None,
        exporter: Optional[TranscriptExporter] = None,
        chunk_size_bytes: int = cfg.CHUNK_SIZE_BYTES,
        chunk_retry_attempts: int = cfg.CHUNK_RETRY_ATTEMPTS,
        retry_delay: float = cfg.CHUNK_RETRY_DELAY_SECONDS,
        require_cache_key: bool = not cfg.CACHE_KEY_OPTIONAL,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_size_bytes <= 0:
            raise ValueError("chunk_size_bytes must be positive")
        self.fetcher = fetcher
        self.backend = backend
        self.cache = cache
        self.exporter = exporter
        self.chunk_size_bytes = chunk_size_bytes
        self.chunk_retry_attempts = max(0, chunk_retry_attempts)
        self.retry_delay = retry_delay
        self.require_cache_key = require_cache_key
        self._sleep = sleep

    # ── Entry point ──────────────────────────────────────────────────────

    def run(
        self,
        sink: EventSink,
        resource_url: str,
        display_title: Optional[str] = None,
        cache_key: Optional[str] = None,
        podcast_id: Optional[str] = None,
    ) -> TranscriptionJob:
        """
        Run one transcription job to a terminal state, pushing events to
        ``sink``. Raises PreconditionError before any I/O when the input is
        unusable; every later failure becomes a Failed event.
        """
        if not resource_url:
            sink.close()
            raise PreconditionError("Audio URL required")
        if self.require_cache_key and not cache_key:
            sink.close()
            raise PreconditionError("Episode GUID required")

        job = TranscriptionJob(
            job_id=generate_job_id(),
            resource_url=resource_url,
            chunk_size_bytes=self.chunk_size_bytes,
            display_title=display_title,
            cache_key=cache_key,
            podcast_id=podcast_id,
        )
        logger.info(
            "Job %s started for %s (cache key: %s)",
            job.job_id, resource_url, cache_key or "none",
        )

        try:
            self._execute(job, sink)
        except ChannelClosedEarly:
            job.state = JobState.CANCELLED
            logger.info(
                "Job %s stopped after %d/%d chunks: consumer disconnected",
                job.job_id, job.current_chunk, len(job.chunks),
            )
        except TranscriptionError as exc:
            self._fail(job, sink, str(exc))
        except Exception as exc:
            logger.error("Job %s crashed: %s", job.job_id, exc, exc_info=True)
            self._fail(job, sink, str(exc))
        finally:
            sink.close()
        return job

    # ── Steps ────────────────────────────────────────────────────────────

    def _execute(self, job: TranscriptionJob, sink: EventSink) -> None:
        if self._load_from_cache(job, sink):
            return

        job.state = JobState.PROBING
        total_size = self.fetcher.probe_size(job.resource_url)
        if not total_size:
            raise SizeUnknownError()
        job.total_size_bytes = total_size

        job.state = JobState.CHUNKING
        job.chunks = compute_chunk_ranges(total_size, job.chunk_size_bytes)
        logger.info(
            "Job %s: %d bytes in %d chunks",
            job.job_id, total_size, len(job.chunks),
        )

        for chunk in job.chunks:
            self._ensure_active(sink)
            job.state = JobState.PER_CHUNK
            text = self._process_chunk(job, chunk, sink)
            job.append_chunk_text(text)
            sink.emit(ProgressEvent.status("Streaming...", job.accumulated_text))

        self._ensure_active(sink)
        job.state = JobState.PERSISTING
        self._persist(job)

        job.state = JobState.COMPLETED
        sink.emit(ProgressEvent.completed(job.accumulated_text))
        logger.info(
            "Job %s completed: %d chunks, %d chars",
            job.job_id, len(job.chunks), len(job.accumulated_text),
        )

    def _load_from_cache(self, job: TranscriptionJob, sink: EventSink) -> bool:
        """Serve the job from the cache. Returns True on a hit."""
        if not job.cache_key or self.cache is None:
            return False

        job.state = JobState.CHECKING_CACHE
        try:
            cached = self.cache.get(job.cache_key)
        except CacheUnavailable as exc:
            logger.warning(
                "Job %s: cache read failed, transcribing instead: %s",
                job.job_id, exc,
            )
            return False

        if cached is None:
            return False

        job.accumulated_text = cached
        sink.emit(ProgressEvent.status("Loaded from cache", cached))
        job.state = JobState.COMPLETED
        sink.emit(ProgressEvent.completed(cached))
        logger.info("Job %s served from cache (%s)", job.job_id, job.cache_key)
        return True

    def _process_chunk(self, job: TranscriptionJob, chunk: ByteRange, sink: EventSink) -> str:
        index = chunk.index
        sink.emit(ProgressEvent.status(f"Downloading chunk {index + 1}...", job.accumulated_text))
        try:
            audio = self._attempt(
                lambda: self.fetcher.fetch_range(job.resource_url, chunk.start, chunk.end),
                RangeUnavailable,
            )
        except RangeUnavailable as exc:
            logger.error("Job %s: chunk %d download failed: %s", job.job_id, index, exc)
            raise ChunkFetchError(index) from exc
        if len(audio) != chunk.length:
            logger.warning(
                "Job %s: chunk %d returned %d of %d bytes",
                job.job_id, index, len(audio), chunk.length,
            )

        sink.emit(ProgressEvent.status(f"Transcribing chunk {index + 1}...", job.accumulated_text))
        try:
            text = self._attempt(lambda: self.backend.transcribe(audio, index), BackendError)
        except BackendError as exc:
            logger.error("Job %s: chunk %d transcription failed: %s", job.job_id, index, exc)
            raise ChunkTranscriptionError(index, exc) from exc

        logger.debug(
            "Job %s: chunk %d/%d done (%d bytes -> %d chars)",
            job.job_id, index + 1, len(job.chunks), len(audio), len(text),
        )
        return text

    def _persist(self, job: TranscriptionJob) -> None:
        if not job.accumulated_text:
            return

        if job.cache_key and self.cache is not None:
            try:
                self.cache.put(job.cache_key, job.accumulated_text, job.episode_metadata())
            except CacheUnavailable as exc:
                logger.error("Job %s: failed to cache transcript: %s", job.job_id, exc)

        if job.display_title and self.exporter is not None:
            self.exporter.export(job.display_title, job.accumulated_text)

    def close(self) -> None:
        """Release the fetcher and backend HTTP resources."""
        self.fetcher.close()
        self.backend.close()

    # ── Helpers ──────────────────────────────────────────────────────────

    def _attempt(self, fn: Callable, retry_on: Type[Exception]):
        return with_retry(
            fn,
            max_attempts=self.chunk_retry_attempts + 1,
            delay=self.retry_delay,
            retry_on=(retry_on,),
            sleep=self._sleep,
        )

    @staticmethod
    def _ensure_active(sink: EventSink) -> None:
        if sink.cancelled:
            raise ChannelClosedEarly()

    @staticmethod
    def _fail(job: TranscriptionJob, sink: EventSink, message: str) -> None:
        job.state = JobState.FAILED
        job.error = message
        logger.error("Job %s failed: %s", job.job_id, message)
        sink.emit(ProgressEvent.failed(message))
