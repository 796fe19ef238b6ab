from unittest.mock import MagicMock

import pytest
import requests

from src.transcription.backends import SiliconFlowBackend, build_backend
from src.transcription.errors import BackendError


def make_backend(session, api_key="sk-test"):
    return SiliconFlowBackend(
        api_key=api_key,
        model="TeleAI/TeleSpeechASR",
        api_base="https://api.example.com/v1/",
        timeout=5,
        session=session,
    )


def make_response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = status_code < 400
    resp.text = text
    if isinstance(payload, Exception):
        resp.json.side_effect = payload
    else:
        resp.json.return_value = payload
    return resp


class TestSiliconFlowBackend:
    def test_uploads_chunk_as_multipart(self):
        session = MagicMock()
        session.post.return_value = make_response(payload={"text": "hello there"})

        text = make_backend(session).transcribe(b"\x00\x01", 3)

        assert text == "hello there"
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.example.com/v1/audio/transcriptions"
        assert kwargs["headers"] == {"Authorization": "Bearer sk-test"}
        assert kwargs["files"] == {"file": ("chunk_3.mp3", b"\x00\x01", "audio/mpeg")}
        assert kwargs["data"] == {"model": "TeleAI/TeleSpeechASR"}

    def test_missing_text_field_is_empty(self):
        session = MagicMock()
        session.post.return_value = make_response(payload={})

        assert make_backend(session).transcribe(b"x", 0) == ""

    def test_error_status_carries_code_and_body(self):
        session = MagicMock()
        session.post.return_value = make_response(500, text="upstream exploded")

        with pytest.raises(BackendError) as excinfo:
            make_backend(session).transcribe(b"x", 0)

        assert excinfo.value.status_code == 500
        assert str(excinfo.value) == "500 upstream exploded"

    def test_invalid_json(self):
        session = MagicMock()
        session.post.return_value = make_response(payload=ValueError("not json"))

        with pytest.raises(BackendError, match="invalid JSON"):
            make_backend(session).transcribe(b"x", 0)

    def test_network_error(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("reset")

        with pytest.raises(BackendError, match="request failed"):
            make_backend(session).transcribe(b"x", 0)

    def test_missing_api_key_never_calls_out(self):
        session = MagicMock()

        with pytest.raises(BackendError, match="SILICONFLOW_API_KEY"):
            make_backend(session, api_key="").transcribe(b"x", 0)
        session.post.assert_not_called()


class TestBuildBackend:
    def test_siliconflow_by_name(self):
        assert isinstance(build_backend("SiliconFlow"), SiliconFlowBackend)

    def test_unknown_name(self):
        with pytest.raises(ValueError):
            build_backend("carrier-pigeon")

    def test_whisper_backend_wraps_model_errors(self, monkeypatch):
        pytest.importorskip("faster_whisper")
        from src.transcription import whisper_backend

        broken = MagicMock()
        broken.transcribe.side_effect = RuntimeError("corrupt audio")
        monkeypatch.setattr(whisper_backend, "get_model", lambda name: broken)

        backend = build_backend("whisper")
        with pytest.raises(BackendError, match="corrupt audio"):
            backend.transcribe(b"x", 0)


def test_close_releases_session():
    session = MagicMock()

    make_backend(session).close()

    session.close.assert_called_once()
