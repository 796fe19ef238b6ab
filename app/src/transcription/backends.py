"""
Speech-to-text backends.

Every backend turns one audio segment into text and is stateless per
call. The ``sequence_hint`` only names the upload in logs and form data;
ordering is the pipeline's job.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from configs.config import get_config
from src.transcription.errors import BackendError

logger = logging.getLogger(__name__)
cfg = get_config()


class TranscriptionBackend(ABC):
    """Interface shared by remote and local speech-to-text engines."""

    name = "base"

    @abstractmethod
    def transcribe(self, audio_bytes: bytes, sequence_hint: int) -> str:
        """Return the recognized text for one audio segment."""

    def close(self) -> None:
        """Release held connections. Local engines hold none."""


class SiliconFlowBackend(TranscriptionBackend):
    """OpenAI-compatible ``/audio/transcriptions`` endpoint (SiliconFlow)."""

    name = "siliconflow"

    def __init__(
        self,
        api_key: str = cfg.TRANSCRIBE_API_KEY,
        model: str = cfg.TRANSCRIBE_MODEL,
        api_base: str = cfg.TRANSCRIBE_API_BASE,
        timeout: float = cfg.TRANSCRIBE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.model = model
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/audio/transcriptions"
        self._timeout = timeout
        self._session = session or requests.Session()

    def transcribe(self, audio_bytes: bytes, sequence_hint: int) -> str:
        if not self._api_key:
            raise BackendError(None, "SILICONFLOW_API_KEY is not set")

        filename = f"chunk_{sequence_hint}.mp3"
        logger.debug(
            "Uploading %s (%d bytes) to %s with model %s",
            filename, len(audio_bytes), self._url, self.model,
        )
        try:
            resp = self._session.post(
                self._url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                files={"file": (filename, audio_bytes, "audio/mpeg")},
                data={"model": self.model},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise BackendError(None, f"request failed: {exc}") from exc

        if not resp.ok:
            # Never echo headers; they carry the API key
            raise BackendError(resp.status_code, resp.text[:300] if resp.text else "")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise BackendError(resp.status_code, "invalid JSON in response") from exc

        return payload.get("text") or ""

    def close(self) -> None:
        self._session.close()


def build_backend(name: Optional[str] = None) -> TranscriptionBackend:
    """Instantiate the backend selected by name or ``TRANSCRIBE_BACKEND``."""
    name = (name or cfg.TRANSCRIBE_BACKEND).lower()
    if name == SiliconFlowBackend.name:
        return SiliconFlowBackend()
    if name == "whisper":
        # faster-whisper pulls in CTranslate2; only load it when selected
        from src.transcription.whisper_backend import WhisperBackend

        return WhisperBackend()
    raise ValueError(f"Unknown transcription backend: {name!r}")
