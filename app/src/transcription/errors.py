"""
Error taxonomy for the transcription pipeline.

Fatal errors (size probe, chunk download, backend) abort the whole job.
``CacheUnavailable`` is always non-fatal and ``ChannelClosedEarly`` is
never reported to anyone.
"""

from typing import Optional


class TranscriptionError(Exception):
    """Base class for every pipeline error."""


class PreconditionError(TranscriptionError):
    """Required input is missing; rejected before any I/O."""


class SizeUnknownError(TranscriptionError):
    """The audio resource does not declare a content length."""

    def __init__(self, message: str = "Could not determine audio size") -> None:
        super().__init__(message)


class RangeUnavailable(TranscriptionError):
    """A byte-range request failed or the server ignored the Range header."""

    def __init__(self, url: str, detail: str) -> None:
        self.url = url
        self.detail = detail
        super().__init__(f"Range request for {url} failed: {detail}")


class ChunkFetchError(TranscriptionError):
    """Downloading one chunk failed; fatal to the whole job."""

    def __init__(self, chunk_index: int) -> None:
        self.chunk_index = chunk_index
        super().__init__(f"Failed to download chunk {chunk_index}")


class BackendError(TranscriptionError):
    """The speech-to-text backend rejected or failed on a segment."""

    def __init__(self, status_code: Optional[int], detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        if status_code is None:
            super().__init__(detail)
        else:
            super().__init__(f"{status_code} {detail}")


class ChunkTranscriptionError(TranscriptionError):
    """The backend failed on one chunk; fatal to the whole job."""

    def __init__(self, chunk_index: int, cause: Exception) -> None:
        self.chunk_index = chunk_index
        self.cause = cause
        super().__init__(f"Chunk {chunk_index} failed: {cause}")


class CacheUnavailable(TranscriptionError):
    """The transcript store could not be reached."""


class ChannelClosedEarly(TranscriptionError):
    """The caller went away before the job finished."""
