"""
Transcription API routes.

Endpoints:
    POST   /api/transcribe                 : stream a transcription as SSE
    GET    /api/transcripts/{episode_guid} : read a cached transcript
    DELETE /api/transcripts/{episode_guid} : drop a cached transcript (admin)
"""

import logging
import queue
import threading
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from commons import limiter
from security import require_admin_key, validate_audio_url, validate_episode_guid
from src.database.transcript_repository import TranscriptCache
from src.routes.dependencies import get_pipeline, get_transcript_cache
from src.transcription.channel import QueueEventChannel
from src.transcription.errors import CacheUnavailable, PreconditionError
from src.transcription.pipeline import ChunkedTranscriptionPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["transcription"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}
# How often the stream wakes up while a chunk is in flight
POLL_INTERVAL_SECONDS = 1.0


class TranscribeRequest(BaseModel):
    audioUrl: Optional[str] = Field(default=None, description="Episode enclosure URL")
    title: Optional[str] = Field(default=None, max_length=500)
    episodeGuid: Optional[str] = None
    podcastId: Optional[str] = Field(default=None, max_length=200)


# ── Stream plumbing ──────────────────────────────────────────────────────


def _run_job(
    pipeline: ChunkedTranscriptionPipeline,
    channel: QueueEventChannel,
    body: TranscribeRequest,
) -> None:
    """Worker-thread body: run the pipeline to a terminal state."""
    try:
        pipeline.run(
            channel,
            body.audioUrl,
            display_title=body.title,
            cache_key=body.episodeGuid,
            podcast_id=body.podcastId,
        )
    except PreconditionError as exc:
        logger.warning("Transcription rejected: %s", exc)
    finally:
        channel.close()
        pipeline.close()


async def _event_stream(channel: QueueEventChannel) -> AsyncIterator[str]:
    """Relay channel events as SSE records until the channel closes."""
    try:
        while True:
            try:
                event = await run_in_threadpool(channel.get, POLL_INTERVAL_SECONDS)
            except queue.Empty:
                continue
            if event is None:
                break
            yield event.to_sse()
    finally:
        # Reached early only when the client went away
        if not channel.closed:
            channel.cancel()


# ── Transcribe ───────────────────────────────────────────────────────────


@router.post("/transcribe")
@limiter.limit("10/minute")
async def transcribe_endpoint(
    request: Request,
    body: TranscribeRequest,
    pipeline: ChunkedTranscriptionPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    """Transcribe an episode, streaming progress as server-sent events."""
    try:
        validate_audio_url(body.audioUrl or "")
        if body.episodeGuid:
            validate_episode_guid(body.episodeGuid)
        elif pipeline.require_cache_key:
            raise HTTPException(status_code=400, detail="Episode GUID required")
    except HTTPException:
        pipeline.close()
        raise

    logger.info(
        "Transcription requested for %s (episode: %s)",
        body.audioUrl, body.episodeGuid or "none",
    )

    channel = QueueEventChannel()
    worker = threading.Thread(
        target=_run_job,
        args=(pipeline, channel, body),
        name="transcription-job",
        daemon=True,
    )
    worker.start()

    return StreamingResponse(
        _event_stream(channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ── Cached transcripts ───────────────────────────────────────────────────


@router.get("/transcripts/{episode_guid:path}")
@limiter.limit("60/minute")
def get_transcript(
    request: Request,
    episode_guid: str,
    cache: TranscriptCache = Depends(get_transcript_cache),
) -> dict:
    """Return the cached transcript for an episode."""
    validate_episode_guid(episode_guid)
    try:
        text = cache.get(episode_guid)
    except CacheUnavailable as exc:
        logger.error("Transcript lookup for %s failed: %s", episode_guid, exc)
        raise HTTPException(status_code=503, detail="Transcript cache unavailable")

    if text is None:
        raise HTTPException(status_code=404, detail="Transcript not found")
    return {"episodeGuid": episode_guid, "text": text}


@router.delete("/transcripts/{episode_guid:path}")
@limiter.limit("10/minute")
def delete_transcript(
    request: Request,
    episode_guid: str,
    _=Depends(require_admin_key),
    cache: TranscriptCache = Depends(get_transcript_cache),
) -> dict:
    """Invalidate a cached transcript so the next request re-transcribes."""
    validate_episode_guid(episode_guid)
    try:
        deleted = cache.delete(episode_guid)
    except CacheUnavailable as exc:
        logger.error("Transcript delete for %s failed: %s", episode_guid, exc)
        raise HTTPException(status_code=503, detail="Transcript cache unavailable")

    if not deleted:
        raise HTTPException(status_code=404, detail="Transcript not found")
    logger.info("Transcript for %s invalidated", episode_guid)
    return {"message": "Transcript deleted", "episodeGuid": episode_guid}
