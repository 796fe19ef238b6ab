"""
Local speech-to-text backend using faster-whisper.

Decodes each in-memory audio segment on CPU. Models are loaded once per
name and shared between jobs.
"""

import io
import logging
import threading
from typing import Optional

from faster_whisper import WhisperModel

from configs.config import get_config
from src.transcription.backends import TranscriptionBackend
from src.transcription.errors import BackendError

logger = logging.getLogger(__name__)
cfg = get_config()

# ── Model cache ──────────────────────────────────────────────────────────
_model_cache: dict = {}
_model_lock = threading.Lock()


def get_model(model_name: str) -> WhisperModel:
    """Return a cached WhisperModel, loading it on first access."""
    with _model_lock:
        if model_name not in _model_cache:
            logger.info("Loading WhisperModel '%s'…", model_name)
            _model_cache[model_name] = WhisperModel(
                model_name,
                device="cpu",
                compute_type="int8",
                cpu_threads=4,
                num_workers=2,
            )
            logger.info("WhisperModel '%s' loaded successfully", model_name)
        return _model_cache[model_name]


class WhisperBackend(TranscriptionBackend):
    name = "whisper"

    def __init__(self, model_name: str = cfg.WHISPER_DEFAULT_MODEL, language: Optional[str] = None) -> None:
        if model_name not in cfg.WHISPER_ALLOWED_MODELS:
            logger.warning(
                "Unknown Whisper model %r, falling back to %s",
                model_name, cfg.WHISPER_DEFAULT_MODEL,
            )
            model_name = cfg.WHISPER_DEFAULT_MODEL
        self.model_name = model_name
        self.language = language

    def transcribe(self, audio_bytes: bytes, sequence_hint: int) -> str:
        try:
            segments, info = get_model(self.model_name).transcribe(
                io.BytesIO(audio_bytes),
                language=self.language,
                beam_size=5,
                vad_filter=True,
                vad_parameters=dict(min_silence_duration_ms=500),
            )
            text = " ".join(seg.text.strip() for seg in segments if seg.text.strip())
        except Exception as exc:
            logger.error("Whisper failed on chunk %d: %s", sequence_hint, exc, exc_info=True)
            raise BackendError(None, str(exc)) from exc

        logger.debug(
            "Whisper chunk %d: %d chars, detected language %s",
            sequence_hint, len(text), info.language,
        )
        return text
