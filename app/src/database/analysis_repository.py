"""
Cached AI artifacts per episode: summary, mindmap and chat history.

Lookups return None when nothing is cached or the database is down;
writes log and re-raise so the caller decides whether that matters.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from configs.config import get_config

logger = logging.getLogger(__name__)
cfg = get_config()

ANALYSIS_TYPES = frozenset({"summary", "mindmap"})


class AnalysisRepository:
    """Repository for the ai_analyses and chat_messages collections."""

    def __init__(self, db: Database, model_used: str = cfg.GEMINI_MODEL_NAME):
        self._analyses: Collection = db[cfg.AI_ANALYSES_COLLECTION]
        self._chat: Collection = db[cfg.CHAT_MESSAGES_COLLECTION]
        self.model_used = model_used

    # ── Summary / mindmap ────────────────────────────────────────────────

    def get_analysis(self, episode_guid: str, analysis_type: str) -> Optional[str]:
        if analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis type: {analysis_type}")
        try:
            doc = self._analyses.find_one(
                {"episode_guid": episode_guid, "analysis_type": analysis_type}
            )
        except PyMongoError as exc:
            logger.error(
                "Error reading %s for %s: %s", analysis_type, episode_guid, exc, exc_info=True
            )
            return None
        return doc.get("content") if doc else None

    def save_analysis(self, episode_guid: str, analysis_type: str, content: str) -> None:
        if analysis_type not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis type: {analysis_type}")
        try:
            self._analyses.update_one(
                {"episode_guid": episode_guid, "analysis_type": analysis_type},
                {
                    "$set": {
                        "content": content,
                        "model_used": self.model_used,
                        "updated_at": datetime.now(timezone.utc),
                    }
                },
                upsert=True,
            )
            logger.debug("Cached %s for %s", analysis_type, episode_guid)
        except PyMongoError as exc:
            logger.error(
                "Failed to save %s for %s: %s", analysis_type, episode_guid, exc, exc_info=True
            )
            raise

    # ── Chat ─────────────────────────────────────────────────────────────

    def get_chat(self, episode_guid: str) -> Optional[List[Dict[str, str]]]:
        try:
            docs = self._chat.find(
                {"episode_guid": episode_guid}, {"_id": 0, "role": 1, "content": 1}
            ).sort([("created_at", 1), ("seq", 1)])
            messages = [{"role": d["role"], "content": d["content"]} for d in docs]
        except PyMongoError as exc:
            logger.error("Error reading chat for %s: %s", episode_guid, exc, exc_info=True)
            return None
        return messages or None

    def save_chat(self, episode_guid: str, messages: List[Dict[str, str]]) -> None:
        """Replace the stored conversation for an episode."""
        now = datetime.now(timezone.utc)
        try:
            self._chat.delete_many({"episode_guid": episode_guid})
            if messages:
                self._chat.insert_many(
                    [
                        {
                            "episode_guid": episode_guid,
                            "role": m["role"],
                            "content": m["content"],
                            "created_at": now,
                            # created_at ties within one save
                            "seq": i,
                        }
                        for i, m in enumerate(messages)
                    ]
                )
            logger.debug("Saved %d chat messages for %s", len(messages), episode_guid)
        except PyMongoError as exc:
            logger.error("Failed to save chat for %s: %s", episode_guid, exc, exc_info=True)
            raise
