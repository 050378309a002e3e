"""
Admission checks for the conversion endpoint.

Two checks run before a request body is touched:
1. Fixed-window rate limiting per client address
2. API key authentication against the configured allow-set

The rate limit runs first, so unauthenticated floods are throttled too.
"""

from __future__ import annotations

import hmac
import logging
import math
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable

from magiq_shared.errors import (
    CredentialsNotConfigured,
    InvalidCredential,
    MissingCredential,
    RateLimited,
)

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class RateLimitState:
    """Outcome of one rate limiter hit, in the shape of the response headers."""
    limit: int
    remaining: int
    reset_after: int
    allowed: bool

    def headers(self) -> dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_after),
        }


class FixedWindowRateLimiter:
    """
    Counts hits per key in fixed windows of window_seconds.

    The first hit for a key opens its window; the counter resets when the
    window ends. Windows that have ended are swept at most once per window
    length so idle clients do not accumulate.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max(1, max_requests)
        self.window_seconds = max(0.001, window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()

    def hit(self, key: str) -> RateLimitState:
        now = self._clock()
        with self._lock:
            self._sweep(now)
            started, count = self._windows.get(key, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0
            count += 1
            self._windows[key] = (started, count)

        reset_after = max(0, math.ceil(started + self.window_seconds - now))
        return RateLimitState(
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_after=reset_after,
            allowed=count <= self.max_requests,
        )

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._windows)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [k for k, (started, _) in self._windows.items()
                   if now - started >= self.window_seconds]
        for key in expired:
            del self._windows[key]


def extract_credential(headers: Mapping[str, str]) -> str | None:
    """API key from X-API-Key, or from an Authorization Bearer token."""
    api_key = (headers.get("X-API-Key") or "").strip()
    if api_key:
        return api_key

    auth = (headers.get("Authorization") or "").strip()
    if auth.lower().startswith(BEARER_PREFIX):
        token = auth[len(BEARER_PREFIX):].strip()
        if token:
            return token
    return None


def authenticate(credential: str | None, allowed: Iterable[str]) -> None:
    """
    Raise an AuthError unless credential is in allowed.

    Every configured key is compared so the time taken does not depend on
    which key matched.
    """
    if not credential:
        raise MissingCredential()

    keys = [k for k in allowed if k]
    if not keys:
        raise CredentialsNotConfigured()

    supplied = credential.encode("utf-8")
    matched = False
    for key in keys:
        if hmac.compare_digest(supplied, key.encode("utf-8")):
            matched = True
    if not matched:
        raise InvalidCredential()


def enforce_rate_limit(state: RateLimitState, client_key: str) -> None:
    """Raise RateLimited when the hit that produced state was over budget."""
    if state.allowed:
        return
    logger.warning("Rate limit exceeded for %s", client_key)
    raise RateLimited(retry_after=state.reset_after)
