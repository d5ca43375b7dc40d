"""
=============================================================================
REUSABLE AUTHORIZERS
=============================================================================

Ready-made authorizers for the most common pre-handler checks.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ require_cookie("S")    401 "missing cookie for S" if S is absent     │
    │                        otherwise re-sends S via Set-Cookie           │
    │                                                                      │
    │ RateLimitAuthorizer    429 when a client's token bucket is empty     │
    │                        otherwise adds X-RateLimit-* headers          │
    └─────────────────────────────────────────────────────────────────────┘

Both return AuthOutcome values and touch the response only through the
pass-through operations (set_cookie, add_header, headers).

Register the cheap one first:

    pipeline.add_authorizer(RateLimitAuthorizer()).add_authorizer(require_cookie("S"))

Neither validates what a cookie contains. Checking signatures or expiry
belongs to the application's own authorizers.

=============================================================================
TOKEN BUCKET
=============================================================================

    Config: max_tokens=3, tokens_per_second=1

    t=0.0  3/3  request → allowed (2 left)
    t=0.0  2/3  request → allowed (1 left)
    t=0.0  1/3  request → allowed (0 left)
    t=0.0  0/3  request → DENIED 429, Retry-After: 1
    t=2.0  2/3  request → allowed (1 left)

Tokens refill continuously at tokens_per_second and never exceed
max_tokens, so a quiet client may burst up to max_tokens requests.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
import logging
import threading
import time

from ..http.cookies import NoCookieError
from ..http.request import HTTPRequest
from ..http.status_codes import HTTPStatus
from .capture import InterceptWriter
from .outcome import AuthOutcome, AuthorizationError, allow, deny


logger = logging.getLogger(__name__)


class RateLimitExceeded(AuthorizationError):
    """Cause attached to a 429 denial."""

    def __init__(self, key: str, retry_after: int):
        super().__init__(f"rate limit exceeded for {key}, retry in {retry_after}s")
        self.key = key
        self.retry_after = retry_after


# =============================================================================
# COOKIE PRESENCE
# =============================================================================

def require_cookie(
    name: str,
    status: int = HTTPStatus.UNAUTHORIZED,
    message: Optional[str] = None,
    refresh: bool = True,
) -> Callable[[InterceptWriter, HTTPRequest], AuthOutcome]:
    """
    Build an authorizer that requires a request cookie.

    Args:
        name: Cookie name to look for.
        status: Status code for the denial.
        message: Denial body. Defaults to "missing cookie for <name>".
        refresh: Echo the cookie back with set_cookie() when it is present.

    Returns:
        An authorizer callable.

    Example:
        pipeline.add_authorizer(require_cookie("S"))

        GET /update              → 401 "missing cookie for S"
        GET /update  Cookie: S=1 → handler runs, response has Set-Cookie: S=1
    """
    reason = message if message is not None else f"missing cookie for {name}"

    def authorize(w: InterceptWriter, request: HTTPRequest) -> AuthOutcome:
        try:
            cookie = request.cookie(name)
        except NoCookieError as e:
            logger.debug(f"Cookie {name!r} missing on {request.method} {request.path}")
            return deny(e, status, reason)

        if refresh:
            w.set_cookie(cookie)
        return allow()

    authorize.__qualname__ = f"require_cookie({name!r})"
    return authorize


# =============================================================================
# RATE LIMITING
# =============================================================================

@dataclass
class TokenBucket:
    """
    Token bucket for one client.

    Starts full. consume() refills by elapsed time first, then takes
    tokens if enough are available.
    """

    max_tokens: float
    tokens_per_second: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    tokens: float = field(default=-1.0)
    last_update: float = field(default=-1.0)

    def __post_init__(self):
        if self.tokens < 0:
            self.tokens = float(self.max_tokens)
        if self.last_update < 0:
            self.last_update = self.clock()

    def consume(self, tokens: float = 1.0) -> bool:
        """Take tokens; False if the bucket does not hold enough."""
        self._refill()
        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    def _refill(self) -> None:
        now = self.clock()
        elapsed = max(0.0, now - self.last_update)
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.tokens_per_second)
        self.last_update = now

    @property
    def available_tokens(self) -> float:
        self._refill()
        return self.tokens

    def time_until_available(self, tokens: float = 1.0) -> float:
        """Seconds until `tokens` can be consumed (0 if already possible)."""
        self._refill()
        if self.tokens >= tokens:
            return 0.0
        return (tokens - self.tokens) / self.tokens_per_second


class RateLimitAuthorizer:
    """
    Per-client token bucket rate limiting as an authorizer.

    On allow, adds:
        X-RateLimit-Limit: <burst_size>
        X-RateLimit-Remaining: <tokens left>

    On deny (429, RateLimitExceeded), adds:
        Retry-After: <seconds>
        X-RateLimit-Limit: <burst_size>
        X-RateLimit-Remaining: 0

    Usage:
        # 10 req/s sustained, bursts of 20, keyed by client IP
        RateLimitAuthorizer(requests_per_second=10, burst_size=20)

        # Keyed by API key instead
        RateLimitAuthorizer(key_func=lambda r: r.get_header("X-API-Key", "anonymous"))

    Args:
        requests_per_second: Sustained rate (refill rate).
        burst_size: Bucket capacity.
        key_func: Maps a request to its bucket key. Defaults to client IP.
        cleanup_interval: Seconds between sweeps for idle buckets.
        bucket_ttl: Buckets idle for this long are dropped.
        clock: Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        requests_per_second: float = 10.0,
        burst_size: int = 20,
        key_func: Optional[Callable[[HTTPRequest], str]] = None,
        cleanup_interval: float = 60.0,
        bucket_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if burst_size < 1:
            raise ValueError("burst_size must be at least 1")

        self.requests_per_second = requests_per_second
        self.burst_size = burst_size
        self.key_func = key_func or self._default_key_func
        self.cleanup_interval = cleanup_interval
        self.bucket_ttl = bucket_ttl
        self._clock = clock

        self._buckets: Dict[str, TokenBucket] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    @staticmethod
    def _default_key_func(request: HTTPRequest) -> str:
        return request.client_ip

    def __call__(self, w: InterceptWriter, request: HTTPRequest) -> AuthOutcome:
        key = self.key_func(request)

        with self._lock:
            bucket = self._get_bucket(key)
            allowed = bucket.consume()
            remaining = int(bucket.tokens)
            retry_after = int(bucket.time_until_available()) + 1

        w.headers.set("X-RateLimit-Limit", str(self.burst_size))

        if allowed:
            w.headers.set("X-RateLimit-Remaining", str(remaining))
            return allow()

        w.headers.set("X-RateLimit-Remaining", "0")
        w.headers.set("Retry-After", str(retry_after))
        logger.warning(f"Rate limit exceeded for {key}: {request.method} {request.path}")
        return deny(
            RateLimitExceeded(key, retry_after),
            HTTPStatus.TOO_MANY_REQUESTS,
            f"Rate limit exceeded. Try again in {retry_after} seconds.",
        )

    def _get_bucket(self, key: str) -> TokenBucket:
        """Get or create the bucket for key. Caller holds the lock."""
        now = self._clock()
        if now - self._last_cleanup > self.cleanup_interval:
            self._cleanup(now)

        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = TokenBucket(
                max_tokens=self.burst_size,
                tokens_per_second=self.requests_per_second,
                clock=self._clock,
            )
            self._buckets[key] = bucket
        return bucket

    def _cleanup(self, now: float) -> None:
        expired = [
            key for key, bucket in self._buckets.items()
            if now - bucket.last_update > self.bucket_ttl
        ]
        for key in expired:
            del self._buckets[key]
        if expired:
            logger.debug(f"Dropped {len(expired)} idle rate limit buckets")
        self._last_cleanup = now

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self, key: Optional[str] = None) -> None:
        """
        Forget rate limit state.

        Args:
            key: One client's key, or None for every client.
        """
        with self._lock:
            if key is None:
                self._buckets.clear()
            else:
                self._buckets.pop(key, None)
