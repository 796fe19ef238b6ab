"""
Summary, mindmap and chat generation on top of Gemini.

Each operation is a single request/response call wrapped in
``with_retry``. Transcripts longer than ``AI_MAX_TRANSCRIPT_LENGTH`` are
truncated before being sent.
"""

import logging
from typing import Dict, List, Optional

from google import genai

from commons import with_retry
from configs.config import get_config
from src.ai import prompts

logger = logging.getLogger(__name__)
cfg = get_config()

_ROLE_MAP = {"user": "user", "assistant": "model", "model": "model"}


class AIServiceError(Exception):
    """The language-model backend is unavailable or returned nothing."""


def truncate_transcript(transcript: str, max_length: int = cfg.AI_MAX_TRANSCRIPT_LENGTH) -> str:
    if len(transcript) <= max_length:
        return transcript
    logger.info("Transcript truncated from %d to %d chars", len(transcript), max_length)
    return transcript[:max_length] + "..."


class AIService:
    def __init__(
        self,
        client: Optional[genai.Client] = None,
        model: str = cfg.GEMINI_MODEL_NAME,
        retry_attempts: int = cfg.AI_RETRY_ATTEMPTS,
        retry_delay: float = cfg.AI_RETRY_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self.model = model
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not cfg.GEMINI_API_KEY:
                raise AIServiceError("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=cfg.GEMINI_API_KEY)
        return self._client

    def _generate(self, contents, system_instruction: str) -> str:
        client = self.client

        def call() -> str:
            logger.info("Calling %s", self.model)
            response = client.models.generate_content(
                model=self.model,
                contents=contents,
                config={
                    "system_instruction": system_instruction,
                    "max_output_tokens": cfg.AI_MAX_OUTPUT_TOKENS,
                },
            )
            return response.text or ""

        text = with_retry(call, max_attempts=self.retry_attempts, delay=self.retry_delay)
        if not text:
            raise AIServiceError("Model returned an empty response")
        return text

    # ── Operations ───────────────────────────────────────────────────────

    def summarize(self, transcript: str) -> str:
        """Single-shot structured summary of a transcript."""
        safe = truncate_transcript(transcript)
        return self._generate(prompts.summary_prompt(safe), prompts.SUMMARY_SYSTEM)

    def generate_mindmap(self, transcript: str) -> str:
        """Markdown nested-bullet mindmap of a transcript."""
        safe = truncate_transcript(transcript)
        return self._generate(prompts.mindmap_prompt(safe), prompts.MINDMAP_SYSTEM)

    def chat(self, messages: List[Dict[str, str]], transcript: str = "") -> str:
        """Answer the last user message with the transcript as context."""
        contents = [
            {"role": _ROLE_MAP[m["role"]], "parts": [{"text": m["content"]}]}
            for m in messages
            if m.get("role") in _ROLE_MAP and m.get("content")
        ]
        if not contents:
            raise AIServiceError("No chat messages to answer")
        system = prompts.chat_system(truncate_transcript(transcript) if transcript else "")
        return self._generate(contents, system)
