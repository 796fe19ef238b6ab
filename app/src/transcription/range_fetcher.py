"""
HTTP byte-range access to remote audio files.

``probe_size`` issues a HEAD request and reads Content-Length.
``fetch_range`` issues a ranged GET and insists on partial content.
"""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from configs.config import get_config
from src.transcription.errors import RangeUnavailable

logger = logging.getLogger(__name__)
cfg = get_config()

HTTP_RETRY_ALLOWED_METHODS = frozenset({"GET", "HEAD"})
HTTP_RETRY_STATUS_CODES = (429, 500, 502, 503, 504)
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def build_http_session(user_agent: str = cfg.HTTP_USER_AGENT) -> requests.Session:
    """Return a session with retry-enabled adapters for idempotent requests."""
    retry = Retry(
        total=cfg.HTTP_RETRY_TOTAL,
        backoff_factor=cfg.HTTP_BACKOFF_FACTOR,
        status_forcelist=HTTP_RETRY_STATUS_CODES,
        allowed_methods=HTTP_RETRY_ALLOWED_METHODS,
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update({"User-Agent": user_agent})
    return session


class HttpRangeFetcher:
    """Fetches byte ranges of a remote resource over HTTP."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = cfg.HTTP_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session or build_http_session()
        self._timeout = timeout

    def probe_size(self, url: str) -> Optional[int]:
        """Return the declared total byte length, or None when absent."""
        try:
            resp = self._session.head(url, allow_redirects=True, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("HEAD %s failed: %s", url, exc)
            return None

        if not resp.ok:
            logger.warning("HEAD %s returned %d", url, resp.status_code)
            return None

        content_length = resp.headers.get("Content-Length")
        try:
            size = int(content_length) if content_length else 0
        except (TypeError, ValueError):
            logger.warning("HEAD %s returned invalid Content-Length %r", url, content_length)
            return None

        if size <= 0:
            logger.info("HEAD %s declared no content length", url)
            return None

        logger.debug("Resource %s is %d bytes", url, size)
        return size

    def fetch_range(self, url: str, start_byte: int, end_byte_inclusive: int) -> bytes:
        """
        Download ``[start_byte, end_byte_inclusive]`` or raise RangeUnavailable.

        The body is streamed and never read past one byte more than the
        requested range, so a server that ignores ``Range`` cannot push the
        whole file into memory.
        """
        expected = end_byte_inclusive - start_byte + 1
        headers = {"Range": f"bytes={start_byte}-{end_byte_inclusive}"}
        try:
            resp = self._session.get(url, headers=headers, timeout=self._timeout, stream=True)
        except requests.RequestException as exc:
            raise RangeUnavailable(url, str(exc)) from exc

        try:
            if not resp.ok:
                raise RangeUnavailable(url, f"HTTP {resp.status_code}")
            partial = resp.status_code == 206
            # A 200 carries the whole resource from byte 0
            if not partial and start_byte != 0:
                raise RangeUnavailable(url, "server does not honor partial content")
            body = self._read_at_most(resp, expected + 1)
        except (requests.RequestException, OSError) as exc:
            raise RangeUnavailable(url, f"body read failed: {exc}") from exc
        finally:
            resp.close()

        if not partial and len(body) != expected:
            raise RangeUnavailable(url, "server does not honor partial content")
        if len(body) > expected:
            raise RangeUnavailable(url, "server returned more than the requested range")

        logger.debug(
            "Fetched bytes %d-%d of %s (%d bytes)",
            start_byte, end_byte_inclusive, url, len(body),
        )
        return body

    @staticmethod
    def _read_at_most(resp: requests.Response, limit: int) -> bytes:
        parts = []
        received = 0
        for piece in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
            if not piece:
                continue
            parts.append(piece)
            received += len(piece)
            if received >= limit:
                break
        return b"".join(parts)[:limit]

    def close(self) -> None:
        self._session.close()
