"""
Data models for the transcription module.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel

PARAGRAPH_SEPARATOR = "\n\n"


class JobState(str, Enum):
    """States a transcription job moves through."""

    IDLE = "idle"
    CHECKING_CACHE = "checking_cache"
    PROBING = "probing"
    CHUNKING = "chunking"
    PER_CHUNK = "per_chunk"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ByteRange(NamedTuple):
    """Inclusive byte range ``[start, end]`` of the source audio."""

    index: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


class EpisodeMetadata(BaseModel):
    """Episode fields written next to a cached transcript."""

    title: str = "Unknown Episode"
    podcast_id: str = "unknown"
    enclosure_url: Optional[str] = None


# ── Progress events ──────────────────────────────────────────────────────


class EventKind(str, Enum):
    STATUS = "status"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressEvent(BaseModel):
    """A single record pushed to the caller while a job runs."""

    kind: EventKind
    message: str
    text: str = ""

    @classmethod
    def status(cls, message: str, text_so_far: str) -> "ProgressEvent":
        return cls(kind=EventKind.STATUS, message=message, text=text_so_far)

    @classmethod
    def completed(cls, final_text: str) -> "ProgressEvent":
        return cls(kind=EventKind.COMPLETED, message="Completed", text=final_text)

    @classmethod
    def failed(cls, message: str) -> "ProgressEvent":
        return cls(kind=EventKind.FAILED, message=message)

    @property
    def is_terminal(self) -> bool:
        return self.kind != EventKind.STATUS

    def to_wire(self) -> dict:
        """Return the ``{status, text}`` record clients consume."""
        if self.kind == EventKind.FAILED:
            return {"status": "Error", "text": f"Error: {self.message}"}
        return {"status": self.message, "text": self.text}

    def to_sse(self) -> str:
        """Frame the event as a server-sent-event record."""
        return f"data: {json.dumps(self.to_wire(), ensure_ascii=False)}\n\n"


# ── Job context ──────────────────────────────────────────────────────────


@dataclass
class TranscriptionJob:
    """
    Per-invocation job context, owned by a single pipeline run.

    ``accumulated_text`` only ever grows, in chunk order.
    """

    job_id: str
    resource_url: str
    chunk_size_bytes: int
    display_title: Optional[str] = None
    cache_key: Optional[str] = None
    podcast_id: Optional[str] = None
    total_size_bytes: int = 0
    chunks: List[ByteRange] = field(default_factory=list)
    current_chunk: int = 0
    accumulated_text: str = ""
    state: JobState = JobState.IDLE
    error: Optional[str] = None

    def append_chunk_text(self, text: str) -> None:
        if self.accumulated_text:
            self.accumulated_text += PARAGRAPH_SEPARATOR + text
        else:
            self.accumulated_text = text
        self.current_chunk += 1

    def episode_metadata(self) -> EpisodeMetadata:
        """Build the best-effort episode record stored with the transcript."""
        podcast_id = self.podcast_id
        if not podcast_id and self.cache_key:
            podcast_id = self.cache_key.split("-")[0]
        return EpisodeMetadata(
            title=self.display_title or "Unknown Episode",
            podcast_id=podcast_id or "unknown",
            enclosure_url=self.resource_url,
        )
