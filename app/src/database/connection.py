"""
MongoDB connection management.

Provides a singleton DatabaseManager and a convenience ``get_db()`` helper.
All collection indexes are configured on first connection.
"""

import logging
import threading
from typing import Optional

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure

from configs.config import get_config

logger = logging.getLogger(__name__)

cfg = get_config()


class DatabaseManager:
    """Thread-safe singleton that owns the MongoClient."""

    _instance: Optional["DatabaseManager"] = None
    _client: Optional[MongoClient] = None
    _db: Optional[Database] = None
    _lock = threading.Lock()

    def __new__(cls) -> "DatabaseManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
        return cls._instance

    # ── Connection ───────────────────────────────────────────────────────

    def connect(self) -> None:
        """Establish the MongoDB connection and create indexes."""
        try:
            client = MongoClient(cfg.MONGODB_URL, serverSelectionTimeoutMS=5000)
            client.admin.command("ping")
            self._client = client
            self._db = client[cfg.DATABASE_NAME]
            logger.info("Connected to MongoDB database %s", cfg.DATABASE_NAME)

            self._ensure_indexes()
            logger.info("Database indexes created / verified")
        except ConnectionFailure as exc:
            logger.error("Failed to connect to MongoDB: %s", exc)
            raise

    def get_db(self) -> Database:
        """Return the database handle, connecting on first use."""
        with self._lock:
            if self._db is None:
                self.connect()
            return self._db

    def close(self) -> None:
        """Gracefully close the connection."""
        with self._lock:
            if self._client:
                self._client.close()
                self._client = None
                self._db = None
                logger.info("MongoDB connection closed")

    # ── Index helpers ────────────────────────────────────────────────────

    def _ensure_indexes(self) -> None:
        """Create all required indexes for the application."""
        db = self._db

        # One transcript per episode; writes are upserts on this key
        db[cfg.TRANSCRIPTS_COLLECTION].create_index("episode_guid", unique=True)

        db[cfg.EPISODES_COLLECTION].create_index("guid", unique=True)
        db[cfg.EPISODES_COLLECTION].create_index("podcast_id")

        db[cfg.AI_ANALYSES_COLLECTION].create_index(
            [("episode_guid", ASCENDING), ("analysis_type", ASCENDING)],
            unique=True,
        )

        db[cfg.CHAT_MESSAGES_COLLECTION].create_index(
            [("episode_guid", ASCENDING), ("created_at", ASCENDING)]
        )


# ── Convenience function ─────────────────────────────────────────────────


def get_db() -> Database:
    """Shortcut to obtain the database handle."""
    return DatabaseManager().get_db()
