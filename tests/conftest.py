"""Pytest configuration and fixtures for the transcription service tests."""

import os
import sys
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Configuration is read at import time, so it has to be in place first
_LOG_DIR = tempfile.mkdtemp(prefix="podcast-transcriber-logs-")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_FILE_APP", os.path.join(_LOG_DIR, "app.log"))
os.environ.setdefault("LOG_FILE_ERRORS", os.path.join(_LOG_DIR, "errors.log"))
os.environ.setdefault("EXPORT_TRANSCRIPTS", "false")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")

APP_DIR = Path(__file__).resolve().parent.parent / "app"
sys.path.insert(0, str(APP_DIR))

from src.transcription.channel import EventSink  # noqa: E402
from src.transcription.errors import BackendError, CacheUnavailable, RangeUnavailable  # noqa: E402
from src.transcription.pipeline import ChunkedTranscriptionPipeline  # noqa: E402

MiB = 1024 * 1024


class FakeFetcher:
    """Serves zero-filled byte ranges of a resource of ``size`` bytes."""

    def __init__(
        self,
        size: Optional[int],
        fail_on: Optional[set] = None,
        fail_times: int = 0,
        chunk_size: int = 5 * 1024 * 1024,
    ):
        self.size = size
        self.chunk_size = chunk_size
        self.fail_on = fail_on or set()
        self.fail_times = fail_times
        self.probe_calls: List[str] = []
        self.fetch_calls: List[tuple] = []
        self.closed = False

    def probe_size(self, url: str) -> Optional[int]:
        self.probe_calls.append(url)
        return self.size

    def fetch_range(self, url: str, start_byte: int, end_byte_inclusive: int) -> bytes:
        self.fetch_calls.append((start_byte, end_byte_inclusive))
        if start_byte // self.chunk_size in self.fail_on:
            raise RangeUnavailable(url, "HTTP 503")
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RangeUnavailable(url, "connection reset")
        return bytes(end_byte_inclusive - start_byte + 1)

    def close(self) -> None:
        self.closed = True


class FakeBackend:
    """Returns scripted text per sequence hint, optionally after a delay."""

    name = "fake"

    def __init__(
        self,
        texts: Dict[int, str],
        fail_on: Optional[set] = None,
        latencies: Optional[Dict[int, float]] = None,
        on_call=None,
    ):
        self.texts = texts
        self.fail_on = fail_on or set()
        self.latencies = latencies or {}
        self.on_call = on_call
        self.calls: List[tuple] = []
        self.closed = False

    def transcribe(self, audio_bytes: bytes, sequence_hint: int) -> str:
        self.calls.append((len(audio_bytes), sequence_hint))
        if self.on_call is not None:
            self.on_call(sequence_hint)
        time.sleep(self.latencies.get(sequence_hint, 0))
        if sequence_hint in self.fail_on:
            raise BackendError(500, "upstream exploded")
        return self.texts.get(sequence_hint, "")

    def close(self) -> None:
        self.closed = True


class InMemoryCache:
    """Dict-backed stand-in for TranscriptCache that records every call."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, fail_get: bool = False, fail_put: bool = False):
        self.store = dict(initial or {})
        self.fail_get = fail_get
        self.fail_put = fail_put
        self.calls: List[tuple] = []
        self.metadata: Dict[str, object] = {}

    def get(self, episode_guid: str) -> Optional[str]:
        self.calls.append(("get", episode_guid))
        if self.fail_get:
            raise CacheUnavailable("database unavailable")
        return self.store.get(episode_guid)

    def put(self, episode_guid: str, text: str, metadata=None) -> None:
        self.calls.append(("put", episode_guid))
        if self.fail_put:
            raise CacheUnavailable("transcript write failed")
        self.store[episode_guid] = text
        self.metadata[episode_guid] = metadata

    def delete(self, episode_guid: str) -> bool:
        self.calls.append(("delete", episode_guid))
        return self.store.pop(episode_guid, None) is not None

    @property
    def put_calls(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == "put"]


class RecordingSink(EventSink):
    """Collects delivered events and counts close() calls."""

    def __init__(self):
        super().__init__()
        self.events = []
        self.close_calls = 0

    def _deliver(self, event) -> None:
        self.events.append(event)

    def _on_close(self) -> None:
        self.close_calls += 1

    @property
    def wire(self) -> List[dict]:
        return [e.to_wire() for e in self.events]


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def make_pipeline():
    """Factory building a pipeline with fast, deterministic settings."""

    def _make(fetcher, backend, cache=None, **kwargs):
        kwargs.setdefault("chunk_size_bytes", 5 * MiB)
        kwargs.setdefault("sleep", lambda _seconds: None)
        return ChunkedTranscriptionPipeline(fetcher=fetcher, backend=backend, cache=cache, **kwargs)

    return _make


@pytest.fixture
def app():
    """The FastAPI app with rate limiting off and overrides reset afterwards."""
    from commons import limiter
    from main import app as fastapi_app

    limiter.enabled = False
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
