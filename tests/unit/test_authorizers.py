"""
Unit tests for the built-in authorizers.
"""

import threading

import pytest

from conftest import make_request
from interceptor.http import NoCookieError, ResponseRecorder
from interceptor.intercept import (
    BufferedResponse,
    InterceptPipeline,
    PipelineStage,
    RateLimitAuthorizer,
    RateLimitExceeded,
    TokenBucket,
    require_cookie,
)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestRequireCookie:
    """Tests for require_cookie()."""

    def test_missing_cookie_denies_with_401(self):
        authorize = require_cookie("S")

        outcome = authorize(BufferedResponse(ResponseRecorder()), make_request())

        assert outcome.denied
        assert outcome.status == 401
        assert outcome.reason == "missing cookie for S"
        assert isinstance(outcome.error, NoCookieError)

    def test_custom_status_and_message(self):
        authorize = require_cookie("session", status=403, message="log in first")

        outcome = authorize(BufferedResponse(ResponseRecorder()), make_request())

        assert outcome.status == 403
        assert outcome.reason == "log in first"

    def test_present_cookie_is_refreshed(self):
        recorder = ResponseRecorder()

        outcome = require_cookie("S")(BufferedResponse(recorder), make_request(cookie="S=a1b2c3"))

        assert outcome.allowed
        assert recorder.headers.get_all("Set-Cookie") == ["S=a1b2c3"]

    def test_refresh_can_be_disabled(self):
        recorder = ResponseRecorder()

        require_cookie("S", refresh=False)(BufferedResponse(recorder), make_request(cookie="S=1"))

        assert "Set-Cookie" not in recorder.headers

    def test_name_shows_in_logs(self):
        assert require_cookie("S").__qualname__ == "require_cookie('S')"


class TestTokenBucket:
    """Tests for TokenBucket."""

    def test_starts_full_and_empties(self):
        clock = FakeClock()
        bucket = TokenBucket(max_tokens=3, tokens_per_second=1, clock=clock)

        assert [bucket.consume() for _ in range(4)] == [True, True, True, False]

    def test_refills_over_time_up_to_capacity(self):
        clock = FakeClock()
        bucket = TokenBucket(max_tokens=3, tokens_per_second=1, clock=clock)
        for _ in range(3):
            bucket.consume()

        clock.advance(2)
        assert bucket.available_tokens == pytest.approx(2)

        clock.advance(100)
        assert bucket.available_tokens == pytest.approx(3)

    def test_time_until_available(self):
        clock = FakeClock()
        bucket = TokenBucket(max_tokens=1, tokens_per_second=2, clock=clock)

        assert bucket.time_until_available() == 0.0
        bucket.consume()
        assert bucket.time_until_available() == pytest.approx(0.5)


class TestRateLimitAuthorizer:
    """Tests for RateLimitAuthorizer."""

    def test_allows_within_burst_and_sets_headers(self):
        limiter = RateLimitAuthorizer(requests_per_second=1, burst_size=2, clock=FakeClock())
        recorder = ResponseRecorder()

        outcome = limiter(BufferedResponse(recorder), make_request())

        assert outcome.allowed
        assert recorder.headers.get("X-RateLimit-Limit") == "2"
        assert recorder.headers.get("X-RateLimit-Remaining") == "1"

    def test_denies_when_bucket_empty(self):
        limiter = RateLimitAuthorizer(requests_per_second=1, burst_size=1, clock=FakeClock())
        limiter(BufferedResponse(ResponseRecorder()), make_request())
        recorder = ResponseRecorder()

        outcome = limiter(BufferedResponse(recorder), make_request())

        assert outcome.denied
        assert outcome.status == 429
        assert isinstance(outcome.error, RateLimitExceeded)
        assert outcome.error.key == "127.0.0.1"
        assert recorder.headers.get("Retry-After") == "2"
        assert recorder.headers.get("X-RateLimit-Remaining") == "0"

    def test_recovers_after_refill(self):
        clock = FakeClock()
        limiter = RateLimitAuthorizer(requests_per_second=1, burst_size=1, clock=clock)
        w = BufferedResponse(ResponseRecorder())
        limiter(w, make_request())

        assert limiter(w, make_request()).denied
        clock.advance(1.0)
        assert limiter(w, make_request()).allowed

    def test_keys_are_independent(self):
        limiter = RateLimitAuthorizer(
            requests_per_second=1,
            burst_size=1,
            key_func=lambda r: r.get_header("x-api-key", "anonymous"),
            clock=FakeClock(),
        )
        w = BufferedResponse(ResponseRecorder())
        first = make_request()
        first.headers["x-api-key"] = "one"
        second = make_request()
        second.headers["x-api-key"] = "two"

        assert limiter(w, first).allowed
        assert limiter(w, second).allowed
        assert limiter(w, first).denied

    def test_idle_buckets_are_cleaned_up(self):
        clock = FakeClock()
        limiter = RateLimitAuthorizer(cleanup_interval=10, bucket_ttl=30, clock=clock)
        w = BufferedResponse(ResponseRecorder())
        limiter(w, make_request())
        assert limiter.tracked_clients == 1

        clock.advance(60)
        other = make_request()
        other.client_address = ("10.0.0.2", 1)
        limiter(w, other)

        assert limiter.tracked_clients == 1

    def test_reset(self):
        limiter = RateLimitAuthorizer(requests_per_second=1, burst_size=1, clock=FakeClock())
        w = BufferedResponse(ResponseRecorder())
        limiter(w, make_request())

        limiter.reset("127.0.0.1")
        assert limiter(w, make_request()).allowed

        limiter.reset()
        assert limiter.tracked_clients == 0

    @pytest.mark.parametrize("kwargs", [{"requests_per_second": 0}, {"burst_size": 0}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            RateLimitAuthorizer(**kwargs)

    def test_thread_safe_consumption(self):
        limiter = RateLimitAuthorizer(requests_per_second=0.001, burst_size=50)
        results = []
        lock = threading.Lock()

        def hit():
            outcome = limiter(BufferedResponse(ResponseRecorder()), make_request())
            with lock:
                results.append(outcome.allowed)

        threads = [threading.Thread(target=hit) for _ in range(80)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 50

    def test_rate_limit_before_cookie_check(self):
        limiter = RateLimitAuthorizer(requests_per_second=1, burst_size=1, clock=FakeClock())
        pipeline = InterceptPipeline(lambda w, r: w.write(b"ok"), [limiter, require_cookie("S")])

        first = ResponseRecorder()
        second = ResponseRecorder()
        assert pipeline.handle(first, make_request()) is PipelineStage.DENIED
        assert pipeline.handle(second, make_request()) is PipelineStage.DENIED

        assert first.status == 401
        assert second.status == 429
        assert second.text == "Rate limit exceeded. Try again in 2 seconds."
