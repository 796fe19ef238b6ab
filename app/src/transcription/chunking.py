"""
Byte-range chunk boundary computation.
"""

import logging
from typing import List

from src.transcription.models import ByteRange

logger = logging.getLogger(__name__)


def compute_chunk_ranges(total_size_bytes: int, chunk_size_bytes: int) -> List[ByteRange]:
    """
    Partition ``[0, total_size_bytes)`` into contiguous inclusive ranges.

    Every range is ``chunk_size_bytes`` long except the last, which is
    truncated to the remainder. Ranges are returned in increasing index
    order and never overlap.
    """
    if chunk_size_bytes <= 0:
        raise ValueError("chunk_size_bytes must be positive")
    if total_size_bytes < 0:
        raise ValueError("total_size_bytes must not be negative")

    ranges: List[ByteRange] = []
    offset = 0
    while offset < total_size_bytes:
        end = min(offset + chunk_size_bytes, total_size_bytes) - 1
        ranges.append(ByteRange(index=len(ranges), start=offset, end=end))
        offset += chunk_size_bytes

    logger.debug(
        "Split %d bytes into %d chunks of up to %d bytes",
        total_size_bytes, len(ranges), chunk_size_bytes,
    )
    return ranges
