"""Retry with exponential backoff for throttled Confluence requests.

Confluence answers 429 when a client is rate limited and 503 while a
Data Center node is busy. Both are retried with a 1s, 2s, 4s backoff;
every other error propagates immediately.
"""

import time
import logging
from typing import Callable, TypeVar

from .errors import APIAccessError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3
RETRYABLE_STATUS_CODES = (429, 503)
_THROTTLE_PATTERNS = (
    '429',
    'too many requests',
    'rate limit exceeded',
    'rate limited',
    'service unavailable',
)


def retry_on_rate_limit(func: Callable[..., T], *args, **kwargs) -> T:
    """Call func, retrying throttled attempts with exponential backoff.

    Args:
        func: The function to execute
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function

    Raises:
        APIAccessError: If the request is still throttled after MAX_RETRIES
        Other exceptions: Passed through immediately without retry
    """
    for attempt in range(MAX_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not _is_throttled(e):
                raise
            if attempt >= MAX_RETRIES:
                logger.error(f"Still throttled after {MAX_RETRIES} retries, giving up")
                raise APIAccessError(
                    f"Confluence API failure (after {MAX_RETRIES} retries)"
                ) from e

            wait_time = 2 ** attempt
            logger.info(
                f"Throttled by Confluence, retrying in {wait_time}s "
                f"(retry {attempt + 1}/{MAX_RETRIES})"
            )
            time.sleep(wait_time)

    raise APIAccessError(f"Confluence API failure (after {MAX_RETRIES} retries)")


def _status_code(exception: Exception):
    status = getattr(exception, 'status_code', None)
    if status is None:
        response = getattr(exception, 'response', None)
        status = getattr(response, 'status_code', None)
    return status


def _is_throttled(exception: Exception) -> bool:
    """Check whether an exception is a 429/503 style throttling error.

    Args:
        exception: The exception to check

    Returns:
        True if the request should be retried
    """
    if _status_code(exception) in RETRYABLE_STATUS_CODES:
        return True
    error_msg = str(exception).lower()
    return any(pattern in error_msg for pattern in _THROTTLE_PATTERNS)
