"""
Transcript cache backed by MongoDB.

One document per episode in the transcripts collection, written with
whole-document upserts (last write wins). Episode metadata is upserted
into the episodes collection on a best-effort basis.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from configs.config import get_config
from src.transcription.errors import CacheUnavailable
from src.transcription.models import EpisodeMetadata

logger = logging.getLogger(__name__)

cfg = get_config()


class TranscriptCache:
    """
    Key-value store of finished transcripts keyed by episode GUID.

    ``db_provider`` is called for every operation so that a database that
    is down at startup only turns into ``CacheUnavailable`` at use time.
    """

    def __init__(self, db_provider: Callable[[], Database]) -> None:
        self._db_provider = db_provider

    def _database(self) -> Database:
        try:
            return self._db_provider()
        except Exception as exc:
            raise CacheUnavailable(f"database unavailable: {exc}") from exc

    # ── Read ─────────────────────────────────────────────────────────────

    def get(self, episode_guid: str) -> Optional[str]:
        """Return the cached transcript, None on a miss."""
        db = self._database()
        try:
            doc = db[cfg.TRANSCRIPTS_COLLECTION].find_one(
                {"episode_guid": episode_guid}, {"text": 1}
            )
        except PyMongoError as exc:
            raise CacheUnavailable(f"transcript read failed: {exc}") from exc

        if doc and doc.get("text"):
            logger.debug("Transcript cache hit for %s", episode_guid)
            return doc["text"]
        logger.debug("Transcript cache miss for %s", episode_guid)
        return None

    # ── Write ────────────────────────────────────────────────────────────

    def put(
        self,
        episode_guid: str,
        text: str,
        metadata: Optional[EpisodeMetadata] = None,
    ) -> None:
        """Upsert the transcript, and the episode record when given."""
        db = self._database()
        now = datetime.now(timezone.utc)

        if metadata is not None:
            try:
                db[cfg.EPISODES_COLLECTION].update_one(
                    {"guid": episode_guid},
                    {
                        "$set": {
                            "podcast_id": metadata.podcast_id,
                            "title": metadata.title,
                            "enclosure_url": metadata.enclosure_url,
                        },
                        "$setOnInsert": {"created_at": now},
                    },
                    upsert=True,
                )
            except PyMongoError as exc:
                logger.warning("Episode upsert for %s failed: %s", episode_guid, exc)

        try:
            db[cfg.TRANSCRIPTS_COLLECTION].update_one(
                {"episode_guid": episode_guid},
                {
                    "$set": {"text": text, "updated_at": now},
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
            )
        except PyMongoError as exc:
            raise CacheUnavailable(f"transcript write failed: {exc}") from exc
        logger.info("Transcript for %s cached (%d chars)", episode_guid, len(text))

    # ── Delete ───────────────────────────────────────────────────────────

    def delete(self, episode_guid: str) -> bool:
        """Remove a cached transcript. Returns True if one existed."""
        db = self._database()
        try:
            result = db[cfg.TRANSCRIPTS_COLLECTION].delete_one({"episode_guid": episode_guid})
        except PyMongoError as exc:
            raise CacheUnavailable(f"transcript delete failed: {exc}") from exc
        if result.deleted_count > 0:
            logger.info("Transcript for %s removed from cache", episode_guid)
            return True
        logger.warning("Transcript delete for %s failed: no match", episode_guid)
        return False
