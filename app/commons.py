"""
Shared utility functions and singletons used across multiple modules.
"""

import logging
import random
import string
import time
from typing import Callable, Tuple, Type, TypeVar

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ── Shared rate-limiter instance ─────────────────────────────────────────
# Created here (not in main.py) so that route modules can import it
# without a circular dependency.
limiter = Limiter(key_func=get_remote_address)


def generate_job_id() -> str:
    """Generate a short, memorable job ID (e.g., 'job_a1b2')."""
    chars = string.ascii_lowercase + string.digits
    random_part = "".join(random.choices(chars, k=4))
    return f"job_{random_part}"


def with_retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``fn`` up to ``max_attempts`` times, sleeping between failures.

    The delay is multiplied by ``backoff`` after each failed attempt. The
    last exception propagates unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    current_delay = delay
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == max_attempts:
                raise
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                attempt, max_attempts, exc, current_delay,
            )
            sleep(current_delay)
            current_delay *= backoff

    raise RuntimeError("unreachable")
