"""
AI artifact routes derived from a transcript.

Endpoints:
    POST /api/summarize : structured summary, cached per episode
    POST /api/mindmap   : markdown mindmap, cached per episode
    POST /api/chat      : answer questions about a transcript
"""

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from commons import limiter
from security import safe_error_response, validate_episode_guid
from src.ai.service import AIService, AIServiceError
from src.database.analysis_repository import AnalysisRepository
from src.routes.dependencies import get_ai_service, get_analysis_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["ai"])


class TranscriptRequest(BaseModel):
    transcript: Optional[str] = None
    episodeGuid: Optional[str] = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    transcript: Optional[str] = None
    episodeGuid: Optional[str] = None


def _cached_analysis(
    analysis_type: str,
    body: TranscriptRequest,
    generate,
    repo: Optional[AnalysisRepository],
) -> str:
    """Serve from the per-episode cache, otherwise generate and store."""
    if not body.transcript:
        raise HTTPException(status_code=400, detail="Transcript required")
    if body.episodeGuid:
        validate_episode_guid(body.episodeGuid)

    if body.episodeGuid and repo is not None:
        cached = repo.get_analysis(body.episodeGuid, analysis_type)
        if cached:
            logger.info("%s for %s served from cache", analysis_type, body.episodeGuid)
            return cached

    try:
        content = generate(body.transcript)
    except AIServiceError as exc:
        logger.error("%s generation failed: %s", analysis_type, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        safe_error_response(exc, context=f"{analysis_type} generation", status_code=502)

    if body.episodeGuid and repo is not None:
        try:
            repo.save_analysis(body.episodeGuid, analysis_type, content)
        except PyMongoError as exc:
            logger.warning("Could not cache %s for %s: %s", analysis_type, body.episodeGuid, exc)
    return content


@router.post("/summarize")
@limiter.limit("20/minute")
def summarize(
    request: Request,
    body: TranscriptRequest,
    ai: AIService = Depends(get_ai_service),
    repo: Optional[AnalysisRepository] = Depends(get_analysis_repository),
) -> dict:
    """Return a structured summary of the transcript."""
    return {"summary": _cached_analysis("summary", body, ai.summarize, repo)}


@router.post("/mindmap")
@limiter.limit("20/minute")
def mindmap(
    request: Request,
    body: TranscriptRequest,
    ai: AIService = Depends(get_ai_service),
    repo: Optional[AnalysisRepository] = Depends(get_analysis_repository),
) -> dict:
    """Return a markdown mindmap of the transcript."""
    return {"mindmap": _cached_analysis("mindmap", body, ai.generate_mindmap, repo)}


@router.post("/chat")
@limiter.limit("30/minute")
def chat(
    request: Request,
    body: ChatRequest,
    ai: AIService = Depends(get_ai_service),
    repo: Optional[AnalysisRepository] = Depends(get_analysis_repository),
) -> dict:
    """Answer the latest message and persist the conversation per episode."""
    if body.episodeGuid:
        validate_episode_guid(body.episodeGuid)

    messages = [m.model_dump() for m in body.messages]
    try:
        reply = ai.chat(messages, body.transcript or "")
    except AIServiceError as exc:
        logger.error("Chat failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as exc:
        safe_error_response(exc, context="chat", status_code=502)

    if body.episodeGuid and repo is not None:
        history = messages + [{"role": "assistant", "content": reply}]
        try:
            repo.save_chat(body.episodeGuid, history)
        except PyMongoError as exc:
            logger.warning("Could not save chat for %s: %s", body.episodeGuid, exc)
    return {"reply": reply}


@router.get("/chat/{episode_guid:path}")
@limiter.limit("60/minute")
def chat_history(
    request: Request,
    episode_guid: str,
    repo: Optional[AnalysisRepository] = Depends(get_analysis_repository),
) -> dict:
    """Return the stored conversation for an episode."""
    validate_episode_guid(episode_guid)
    messages = repo.get_chat(episode_guid) if repo is not None else None
    return {"messages": messages or []}
