# app/providers/airtime/token_cache.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger("airtime.providers.token")

TokenFetcher = Callable[[], "tuple[str, float]"]


class TokenError(Exception):
    pass


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: float
    refresh_at: float


class TokenCache:
    """
    Bearer token holder owned by one provider instance.

    fetch() performs the client-credentials exchange and returns
    (access_token, expires_in_seconds). A token is served only while the
    clock is before its refresh point, which always precedes expiry; at
    most one refresh runs at a time and concurrent callers reuse its result.
    """

    def __init__(
        self,
        fetch: TokenFetcher,
        *,
        clock: Callable[[], float] = time.monotonic,
        safety_buffer_s: float = 60.0,
        name: str = "token",
    ):
        self._fetch = fetch
        self._clock = clock
        self._buffer = max(0.0, float(safety_buffer_s))
        self._name = name
        self._token: Optional[CachedToken] = None
        self._lock = threading.Lock()

    def get(self) -> str:
        token = self._token
        if self._usable(token):
            return token.value

        with self._lock:
            token = self._token
            if self._usable(token):
                return token.value
            self._token = None
            self._token = self._refresh()
            return self._token.value

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    @property
    def cached(self) -> Optional[CachedToken]:
        return self._token

    def _usable(self, token: Optional[CachedToken]) -> bool:
        if token is None or not isinstance(token.value, str) or not token.value:
            return False
        if not isinstance(token.refresh_at, (int, float)):
            return False
        return self._clock() < token.refresh_at

    def _refresh(self) -> CachedToken:
        started = self._clock()
        try:
            value, expires_in = self._fetch()
        except TokenError:
            raise
        except Exception as exc:
            raise TokenError(f"{self._name} token fetch failed: {exc}") from exc

        if not isinstance(value, str) or not value.strip():
            raise TokenError(f"{self._name} token response missing access_token")
        try:
            ttl = float(expires_in)
        except (TypeError, ValueError):
            raise TokenError(f"{self._name} token response has invalid expires_in={expires_in!r}")
        if ttl <= 0:
            raise TokenError(f"{self._name} token already expired (expires_in={ttl})")

        margin = min(self._buffer, ttl / 2)
        logger.info("%s token refreshed expires_in=%ss", self._name, int(ttl))
        return CachedToken(value=value.strip(), expires_at=started + ttl, refresh_at=started + ttl - margin)
