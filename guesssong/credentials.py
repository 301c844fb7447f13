from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, Optional, Tuple

# fetch() returns (access_token, expires_in_seconds).
TokenFetcher = Callable[[], Tuple[str, float]]

logger = logging.getLogger(__name__)


class TokenCache:
    """Caches an access token until shortly before it expires."""

    def __init__(
        self,
        fetch: TokenFetcher,
        safety_margin_sec: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._safety_margin_sec = max(0.0, float(safety_margin_sec))
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def has_token(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    def get_token(self) -> str:
        with self._lock:
            if self._token is not None and self._clock() < self._expires_at:
                return self._token
            token, expires_in = self._fetch()
            self._token = str(token)
            self._expires_at = self._clock() + max(0.0, float(expires_in) - self._safety_margin_sec)
            logger.debug("Fetched access token, valid for %.0f s", float(expires_in))
            return self._token

    __call__ = get_token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0


def environment_token_fetcher(variable: str = "SPOTIFY_ACCESS_TOKEN", expires_in_sec: float = 3600.0) -> TokenFetcher:
    """Fetcher that reads a user access token from the environment on every fetch."""

    def fetch() -> Tuple[str, float]:
        token = os.environ.get(variable, "").strip()
        if not token:
            raise RuntimeError(f"{variable} is not set")
        return token, expires_in_sec

    return fetch
