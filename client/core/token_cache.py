# client/core/token_cache.py
import threading
import time
from typing import Callable, NamedTuple, Optional

import structlog

from .models import TokenResponse

logger = structlog.get_logger(__name__)


class _Entry(NamedTuple):
    token: TokenResponse
    expires_at: float


class TokenCache:
    """
    Holds the current access token until shortly before it expires.

    Refreshing is single-flight: when the token is missing or stale, the
    first caller fetches a new one while concurrent callers wait on the lock
    and then reuse its result.
    """

    def __init__(
        self,
        fetch: Callable[[], TokenResponse],
        expiry_buffer: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetch = fetch
        self._expiry_buffer = expiry_buffer
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: Optional[_Entry] = None

    def _fresh(self) -> Optional[TokenResponse]:
        entry = self._entry
        if entry is None or self._clock() >= entry.expires_at:
            return None
        return entry.token

    def get_access_token(self) -> str:
        token = self._fresh()
        if token is not None:
            return token.access_token

        with self._lock:
            token = self._fresh()
            if token is None:
                logger.info("Token is missing or expired, requesting new token")
                token = self._fetch()
                self._entry = _Entry(token, self._clock() + token.expires_in - self._expiry_buffer)
                logger.info("Token obtained", expires_in=token.expires_in)
        return token.access_token

    def current_token(self) -> Optional[TokenResponse]:
        entry = self._entry
        return entry.token if entry else None

    def has_valid_token(self) -> bool:
        return self._fresh() is not None

    def clear(self) -> None:
        with self._lock:
            self._entry = None
        logger.info("Token cleared")
