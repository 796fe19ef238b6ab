"""
Podcast discovery: iTunes search, trending chart and RSS feed parsing.

A thin HTTP + XML client. Feeds are parsed with defusedxml and mapped to
plain dicts ready to return from the API.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional
from xml.etree.ElementTree import Element

import requests
from defusedxml.ElementTree import ParseError, fromstring

from configs.config import get_config
from src.transcription.range_fetcher import build_http_session

logger = logging.getLogger(__name__)
cfg = get_config()

ITUNES_NS = "{http://www.itunes.com/dtds/podcast-1.0.dtd}"
CONTENT_NS = "{http://purl.org/rss/1.0/modules/content/}"

RSS_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"


class FeedError(Exception):
    """The feed could not be fetched or parsed."""


def _text(element: Optional[Element], tag: str) -> str:
    if element is None:
        return ""
    child = element.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()


def _parse_item(item: Element) -> Dict:
    guid = _text(item, "guid")
    link = _text(item, "link")
    content = _text(item, f"{CONTENT_NS}encoded") or _text(item, "description")

    enclosure = None
    enc = item.find("enclosure")
    if enc is not None and enc.get("url"):
        enclosure = {
            "url": enc.get("url"),
            "type": enc.get("type"),
            "length": enc.get("length"),
        }

    return {
        "title": _text(item, "title"),
        "guid": guid or link,
        "pubDate": _text(item, "pubDate"),
        "link": link,
        "content": content,
        "enclosure": enclosure,
    }


def parse_feed(xml_bytes: bytes) -> Dict:
    """Parse RSS XML into ``{"items": [...], "feed": {...}}``."""
    try:
        root = fromstring(xml_bytes)
    except ParseError as exc:
        raise FeedError(f"Invalid feed XML: {exc}") from exc

    channel = root.find("channel")
    if channel is None:
        raise FeedError("Feed has no <channel> element")

    image = _text(channel.find("image"), "url")
    if not image:
        itunes_image = channel.find(f"{ITUNES_NS}image")
        if itunes_image is not None:
            image = itunes_image.get("href", "")

    items = [_parse_item(item) for item in channel.findall("item")]
    logger.info("Parsed %d episodes from feed %r", len(items), _text(channel, "title"))
    return {
        "items": items,
        "feed": {
            "title": _text(channel, "title"),
            "description": _text(channel, "description"),
            "link": _text(channel, "link"),
            "image": image,
        },
    }


class PodcastService:
    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._session = session or build_http_session()

    def search(self, term: str, limit: int = cfg.SEARCH_RESULT_LIMIT) -> List[Dict]:
        """Search the iTunes directory for podcasts matching ``term``."""
        if not term:
            return []
        logger.info("Searching podcasts: %s", term)
        resp = self._session.get(
            cfg.ITUNES_SEARCH_URL,
            params={"media": "podcast", "term": term, "limit": limit},
            timeout=cfg.RSS_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        return resp.json().get("results", [])

    def get_episodes(self, feed_url: str) -> Dict:
        """Fetch and parse an RSS feed."""
        logger.info("Fetching RSS feed: %s", feed_url)
        try:
            resp = self._session.get(
                feed_url,
                headers={"Accept": RSS_ACCEPT, "Accept-Language": "en-US,en;q=0.9"},
                timeout=cfg.RSS_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise FeedError(f"Failed to fetch RSS: {exc}") from exc

        if not resp.ok:
            logger.error("RSS fetch %s returned %d: %s", feed_url, resp.status_code, resp.text[:200])
            raise FeedError(f"Failed to fetch RSS: {resp.status_code}")

        return parse_feed(resp.content)

    # ── Trending ─────────────────────────────────────────────────────────

    def trending(self, limit: int = cfg.TRENDING_LIMIT) -> List[Dict]:
        """
        Top podcasts from the iTunes chart, each enriched by a lookup call.

        Chart order is kept. Entries whose lookup fails are left out; a
        failure to load the chart itself propagates.
        """
        resp = self._session.get(
            cfg.ITUNES_TOP_PODCASTS_URL.format(limit=limit),
            timeout=cfg.RSS_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()

        entries = (resp.json().get("feed") or {}).get("entry") or []
        # The chart collapses a single entry into an object
        if isinstance(entries, dict):
            entries = [entries]
        podcast_ids = [pid for pid in map(_chart_entry_id, entries) if pid]

        with ThreadPoolExecutor(max_workers=cfg.TRENDING_LOOKUP_WORKERS) as executor:
            details = list(executor.map(self._lookup, podcast_ids))
        results = [d for d in details if d]
        logger.info("Trending: %d of %d chart entries resolved", len(results), len(podcast_ids))
        return results

    def _lookup(self, podcast_id: str) -> Optional[Dict]:
        try:
            resp = self._session.get(
                cfg.ITUNES_LOOKUP_URL,
                params={"id": podcast_id, "entity": "podcast"},
                timeout=cfg.RSS_TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
            found = resp.json().get("results") or []
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Lookup for podcast %s failed: %s", podcast_id, exc)
            return None
        if not found:
            return None

        podcast = found[0]
        return {
            "collectionId": podcast.get("collectionId"),
            "collectionName": podcast.get("collectionName"),
            "artistName": podcast.get("artistName"),
            "artworkUrl600": podcast.get("artworkUrl600"),
            "feedUrl": podcast.get("feedUrl"),
            "genres": podcast.get("genres") or [],
            "primaryGenreName": podcast.get("primaryGenreName"),
        }

    def close(self) -> None:
        self._session.close()


def _chart_entry_id(entry: Dict) -> Optional[str]:
    try:
        return entry["id"]["attributes"]["im:id"]
    except (KeyError, TypeError):
        logger.debug("Skipping chart entry without an id")
        return None
