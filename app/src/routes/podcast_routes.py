"""
Podcast discovery routes.

Endpoints:
    GET /api/search?term= : iTunes podcast search
    GET /api/trending     : top podcasts chart
    GET /api/rss?url=     : episodes of an RSS feed
"""

import logging

import requests
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from commons import limiter
from security import validate_http_url
from src.podcasts.service import FeedError, PodcastService
from src.routes.dependencies import get_podcast_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["podcasts"])


@router.get("/search")
@limiter.limit("30/minute")
def search_podcasts(
    request: Request,
    term: str = Query(default="", max_length=200),
    podcasts: PodcastService = Depends(get_podcast_service),
) -> dict:
    """Search podcasts by keyword."""
    if not term:
        return {"results": []}
    try:
        results = podcasts.search(term)
    except requests.RequestException as exc:
        logger.error("Search for %r failed: %s", term, exc)
        raise HTTPException(status_code=502, detail="Podcast search failed")
    return {"resultCount": len(results), "results": results}


@router.get("/trending")
@limiter.limit("30/minute")
def trending_podcasts(
    request: Request,
    podcasts: PodcastService = Depends(get_podcast_service),
) -> dict:
    """List the current top podcasts. An unreachable chart yields no results."""
    try:
        return {"results": podcasts.trending()}
    except (requests.RequestException, ValueError) as exc:
        logger.error("Trending lookup failed: %s", exc)
        return {"results": []}


@router.get("/rss")
@limiter.limit("30/minute")
def get_feed(
    request: Request,
    url: str = Query(default=""),
    podcasts: PodcastService = Depends(get_podcast_service),
) -> dict:
    """Fetch and parse an RSS feed into episodes."""
    if not url:
        raise HTTPException(status_code=400, detail="URL required")
    validate_http_url(url, label="Feed URL")
    try:
        return podcasts.get_episodes(url)
    except FeedError as exc:
        logger.error("RSS parse error for %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=f"Failed to parse RSS: {exc}")
