"""
FastAPI dependency providers.

Routes never build collaborators themselves; tests swap these out via
``app.dependency_overrides``.
"""

import logging
from typing import Iterator, Optional

from fastapi import Depends

from configs.config import get_config
from src.ai.service import AIService
from src.database.analysis_repository import AnalysisRepository
from src.database.connection import get_db
from src.database.transcript_repository import TranscriptCache
from src.podcasts.service import PodcastService
from src.transcription.backends import build_backend
from src.transcription.export import TranscriptExporter
from src.transcription.pipeline import ChunkedTranscriptionPipeline
from src.transcription.range_fetcher import HttpRangeFetcher

logger = logging.getLogger(__name__)
cfg = get_config()

_ai_service: Optional[AIService] = None


def get_transcript_cache() -> TranscriptCache:
    return TranscriptCache(get_db)


def get_pipeline(
    cache: TranscriptCache = Depends(get_transcript_cache),
) -> ChunkedTranscriptionPipeline:
    """Build a pipeline for one request; the route closes it when done."""
    exporter = TranscriptExporter(cfg.TRANSCRIPT_EXPORT_DIR) if cfg.EXPORT_TRANSCRIPTS else None
    return ChunkedTranscriptionPipeline(
        fetcher=HttpRangeFetcher(),
        backend=build_backend(),
        cache=cache,
        exporter=exporter,
    )


def get_analysis_repository() -> Optional[AnalysisRepository]:
    """Return the AI-artifact cache, or None while MongoDB is unreachable."""
    try:
        return AnalysisRepository(get_db())
    except Exception as exc:
        logger.warning("AI cache disabled, database unavailable: %s", exc)
        return None


def get_ai_service() -> AIService:
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service


def get_podcast_service() -> Iterator[PodcastService]:
    podcasts = PodcastService()
    try:
        yield podcasts
    finally:
        podcasts.close()
