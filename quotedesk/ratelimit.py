"""Per-client token bucket limiting for the PDF endpoints."""
from __future__ import annotations

import functools
import logging
import threading
import time
from typing import Dict

from flask import current_app, request

from quotedesk.errors import error_response

logger = logging.getLogger(__name__)


class TokenBucket:
    """Token bucket refilling ``capacity`` tokens every ``window`` seconds."""

    def __init__(self, capacity: int, window: float) -> None:
        self.capacity = capacity
        self.tokens = float(capacity)
        self.refill_rate = capacity / float(window)
        self.last = time.monotonic()

    def try_acquire(self, tokens: int = 1) -> bool:
        now = time.monotonic()
        self.tokens = min(
            self.capacity,
            self.tokens + (now - self.last) * self.refill_rate,
        )
        self.last = now
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False


class RateLimiter:
    """One ``TokenBucket`` per client key.

    Buckets left idle for a whole window are full again and are dropped,
    at most once per window, so the map only holds recently seen clients.
    """

    def __init__(self, capacity: int, window: float) -> None:
        self.capacity = capacity
        self.window = window
        self.buckets: Dict[str, TokenBucket] = {}
        self.lock = threading.Lock()
        self.next_prune = time.monotonic() + window

    def _prune(self, now: float) -> None:
        idle = [k for k, b in self.buckets.items() if now - b.last >= self.window]
        for key in idle:
            del self.buckets[key]
        self.next_prune = now + self.window
        if idle:
            logger.debug('Dropped %d idle rate limit buckets', len(idle))

    def allow(self, key: str) -> bool:
        with self.lock:
            now = time.monotonic()
            if now >= self.next_prune:
                self._prune(now)
            bucket = self.buckets.get(key)
            if bucket is None:
                bucket = self.buckets[key] = TokenBucket(self.capacity, self.window)
            return bucket.try_acquire()


def rate_limited(f):
    """Reject the request with 429 once the caller's bucket is empty."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        limiter: RateLimiter = current_app.extensions['pdf_limiter']
        key = request.remote_addr or 'unknown'
        if not limiter.allow(key):
            logger.warning('PDF rate limit exceeded for %s', key)
            return error_response(
                'Too many PDF generation requests, please try again later.', 429
            )
        return f(*args, **kwargs)
    return wrapper
