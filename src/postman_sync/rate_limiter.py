"""
Round-robin API key rotation with retry on HTTP 429.
"""

import logging
from collections.abc import Callable
from collections.abc import Sequence
from typing import TypeVar

import httpx

from postman_sync.models import RateLimitExhaustedError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def is_rate_limited(error: Exception) -> bool:
    """Return True when ``error`` is an HTTP 429 response."""
    return (
        isinstance(error, httpx.HTTPStatusError)
        and error.response.status_code == httpx.codes.TOO_MANY_REQUESTS
    )


class CredentialRotator:
    """Cycles through a target's API keys.

    The cursor survives between calls, so consecutive operations start on
    different keys.
    """

    def __init__(self, api_keys: Sequence[str]):
        if not api_keys:
            raise ValueError("api_keys must not be empty")
        self.api_keys = list(api_keys)
        self.current_index = 0

    def next_key(self) -> str:
        key = self.api_keys[self.current_index]
        self.current_index = (self.current_index + 1) % len(self.api_keys)
        return key

    def with_retry(self, operation: Callable[[str], T]) -> T:
        """
        Call ``operation(api_key)`` until it succeeds.

        Only rate-limit rejections move on to the next key; any other error
        propagates immediately. After one attempt per key, raises
        RateLimitExhaustedError.
        """
        for attempt in range(1, len(self.api_keys) + 1):
            key = self.next_key()
            try:
                return operation(key)
            except httpx.HTTPStatusError as e:
                if not is_rate_limited(e):
                    raise
                logger.warning(
                    "API key %s rate limited (attempt %d/%d)",
                    _mask(key),
                    attempt,
                    len(self.api_keys),
                )
        raise RateLimitExhaustedError("All API keys hit rate limit.")


def _mask(api_key: str) -> str:
    return api_key[:9] + "…" if len(api_key) > 9 else api_key
