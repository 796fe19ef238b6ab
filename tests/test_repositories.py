from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from configs.config import get_config
from src.database.analysis_repository import AnalysisRepository
from src.database.transcript_repository import TranscriptCache
from src.transcription.errors import CacheUnavailable
from src.transcription.models import EpisodeMetadata

cfg = get_config()


@pytest.fixture
def collections():
    return {
        cfg.TRANSCRIPTS_COLLECTION: MagicMock(),
        cfg.EPISODES_COLLECTION: MagicMock(),
        cfg.AI_ANALYSES_COLLECTION: MagicMock(),
        cfg.CHAT_MESSAGES_COLLECTION: MagicMock(),
    }


@pytest.fixture
def db(collections):
    database = MagicMock()
    database.__getitem__.side_effect = collections.__getitem__
    return database


class TestTranscriptCache:
    def test_hit(self, db, collections):
        collections[cfg.TRANSCRIPTS_COLLECTION].find_one.return_value = {"text": "cached words"}

        assert TranscriptCache(lambda: db).get("ep-1") == "cached words"
        collections[cfg.TRANSCRIPTS_COLLECTION].find_one.assert_called_once_with(
            {"episode_guid": "ep-1"}, {"text": 1}
        )

    @pytest.mark.parametrize("doc", [None, {}, {"text": ""}])
    def test_miss(self, db, collections, doc):
        collections[cfg.TRANSCRIPTS_COLLECTION].find_one.return_value = doc

        assert TranscriptCache(lambda: db).get("ep-1") is None

    def test_read_error_is_cache_unavailable(self, db, collections):
        collections[cfg.TRANSCRIPTS_COLLECTION].find_one.side_effect = PyMongoError("down")

        with pytest.raises(CacheUnavailable):
            TranscriptCache(lambda: db).get("ep-1")

    def test_unreachable_database_is_cache_unavailable(self):
        def provider():
            raise ServerSelectionTimeoutError("no servers")

        with pytest.raises(CacheUnavailable, match="database unavailable"):
            TranscriptCache(provider).get("ep-1")

    def test_put_upserts_transcript_and_episode(self, db, collections):
        metadata = EpisodeMetadata(title="Ep 1", podcast_id="pod42", enclosure_url="https://x/ep.mp3")

        TranscriptCache(lambda: db).put("pod42-ep1", "words", metadata)

        filt, update = collections[cfg.TRANSCRIPTS_COLLECTION].update_one.call_args.args
        assert filt == {"episode_guid": "pod42-ep1"}
        assert update["$set"]["text"] == "words"
        assert "created_at" in update["$setOnInsert"]
        assert collections[cfg.TRANSCRIPTS_COLLECTION].update_one.call_args.kwargs["upsert"] is True

        filt, update = collections[cfg.EPISODES_COLLECTION].update_one.call_args.args
        assert filt == {"guid": "pod42-ep1"}
        assert update["$set"] == {"podcast_id": "pod42", "title": "Ep 1", "enclosure_url": "https://x/ep.mp3"}

    def test_episode_upsert_failure_does_not_block_transcript(self, db, collections):
        collections[cfg.EPISODES_COLLECTION].update_one.side_effect = PyMongoError("dup")

        TranscriptCache(lambda: db).put("ep-1", "words", EpisodeMetadata())

        collections[cfg.TRANSCRIPTS_COLLECTION].update_one.assert_called_once()

    def test_put_without_metadata_skips_episodes(self, db, collections):
        TranscriptCache(lambda: db).put("ep-1", "words")

        collections[cfg.EPISODES_COLLECTION].update_one.assert_not_called()

    def test_write_error_is_cache_unavailable(self, db, collections):
        collections[cfg.TRANSCRIPTS_COLLECTION].update_one.side_effect = PyMongoError("down")

        with pytest.raises(CacheUnavailable):
            TranscriptCache(lambda: db).put("ep-1", "words")

    @pytest.mark.parametrize("count, expected", [(1, True), (0, False)])
    def test_delete(self, db, collections, count, expected):
        collections[cfg.TRANSCRIPTS_COLLECTION].delete_one.return_value = MagicMock(deleted_count=count)

        assert TranscriptCache(lambda: db).delete("ep-1") is expected


class TestAnalysisRepository:
    def test_get_analysis(self, db, collections):
        collections[cfg.AI_ANALYSES_COLLECTION].find_one.return_value = {"content": "# Summary"}

        assert AnalysisRepository(db).get_analysis("ep-1", "summary") == "# Summary"

    def test_get_analysis_error_is_a_miss(self, db, collections):
        collections[cfg.AI_ANALYSES_COLLECTION].find_one.side_effect = PyMongoError("down")

        assert AnalysisRepository(db).get_analysis("ep-1", "mindmap") is None

    def test_unknown_analysis_type(self, db):
        with pytest.raises(ValueError):
            AnalysisRepository(db).get_analysis("ep-1", "haiku")

    def test_save_analysis_upserts(self, db, collections):
        AnalysisRepository(db, model_used="gemini-test").save_analysis("ep-1", "summary", "text")

        filt, update = collections[cfg.AI_ANALYSES_COLLECTION].update_one.call_args.args
        assert filt == {"episode_guid": "ep-1", "analysis_type": "summary"}
        assert update["$set"]["content"] == "text"
        assert update["$set"]["model_used"] == "gemini-test"

    def test_save_analysis_reraises(self, db, collections):
        collections[cfg.AI_ANALYSES_COLLECTION].update_one.side_effect = PyMongoError("down")

        with pytest.raises(PyMongoError):
            AnalysisRepository(db).save_analysis("ep-1", "summary", "text")

    def test_save_chat_replaces_history_in_order(self, db, collections):
        chat = collections[cfg.CHAT_MESSAGES_COLLECTION]
        messages = [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]

        AnalysisRepository(db).save_chat("ep-1", messages)

        chat.delete_many.assert_called_once_with({"episode_guid": "ep-1"})
        docs = chat.insert_many.call_args.args[0]
        assert [(d["role"], d["content"], d["seq"]) for d in docs] == [("user", "hi", 0), ("assistant", "hello", 1)]

    def test_get_chat(self, db, collections):
        cursor = collections[cfg.CHAT_MESSAGES_COLLECTION].find.return_value
        cursor.sort.return_value = [{"role": "user", "content": "hi"}]

        assert AnalysisRepository(db).get_chat("ep-1") == [{"role": "user", "content": "hi"}]
        cursor.sort.assert_called_once_with([("created_at", 1), ("seq", 1)])

    def test_get_chat_empty(self, db, collections):
        collections[cfg.CHAT_MESSAGES_COLLECTION].find.return_value.sort.return_value = []

        assert AnalysisRepository(db).get_chat("ep-1") is None
