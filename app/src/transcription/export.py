"""
Legacy plain-text export of finished transcripts.

Writes ``<export_dir>/<sanitized title>.txt``. Failures are logged and
never affect the job result.
"""

import logging
import os
import re
from typing import Optional

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


def sanitize_filename(name: str) -> str:
    """Replace every non-alphanumeric character with ``_`` and lowercase."""
    return _UNSAFE_CHARS.sub("_", name).lower()


class TranscriptExporter:
    def __init__(self, export_dir: str) -> None:
        self.export_dir = export_dir

    def export(self, title: str, text: str) -> Optional[str]:
        """Write the transcript and return its path, or None on failure."""
        path = os.path.join(self.export_dir, f"{sanitize_filename(title)}.txt")
        try:
            os.makedirs(self.export_dir, exist_ok=True)
            with open(path, "w", encoding="utf-8") as fh:
                fh.write(text)
        except OSError as exc:
            logger.warning("Transcript export to %s failed: %s", path, exc)
            return None
        logger.debug("Transcript exported to %s", path)
        return path
