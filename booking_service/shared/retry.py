"""Bounded retry with exponential backoff for outbound calls"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import EXTERNAL_RETRY_ATTEMPTS, EXTERNAL_RETRY_BASE_DELAY
from ..exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable(exc: Exception) -> bool:
    """Network failures and 5xx/429 responses are worth another attempt"""
    if isinstance(exc, ExternalServiceError):
        return exc.retryable
    return isinstance(exc, (asyncio.TimeoutError, ConnectionError))


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    *,
    operation: str,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
) -> T:
    """
    Await func() up to max_attempts times, sleeping base_delay * 2**attempt between tries.

    Non-retryable errors are raised immediately; the last error is raised once
    attempts are exhausted.
    """
    attempts = max_attempts if max_attempts is not None else EXTERNAL_RETRY_ATTEMPTS
    delay = base_delay if base_delay is not None else EXTERNAL_RETRY_BASE_DELAY
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return await func()
        except Exception as e:
            if not is_retryable(e) or attempt == attempts - 1:
                raise
            wait = delay * (2**attempt)
            logger.warning(
                f"⚠️ {operation} failed (attempt {attempt + 1}/{attempts}), retrying in {wait:.2f}s: {e}"
            )
            await asyncio.sleep(wait)

    raise RuntimeError("unreachable")  # pragma: no cover
