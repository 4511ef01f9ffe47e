import pytest

from bujo_scan.ocr.rate_limiter import RateLimiter
from conftest import FakeClock


@pytest.mark.unit
class TestRateLimiter:
    """Test sliding-window rate limiting."""

    def setup_method(self):
        """Set up test fixtures."""
        self.clock = FakeClock(0.0)
        self.limiter = RateLimiter(max_requests=2, window_seconds=60.0, clock=self.clock)

    def test_denies_request_over_limit(self):
        """Test the request limit."""
        assert self.limiter.is_allowed("gpt")
        assert self.limiter.is_allowed("gpt")
        assert not self.limiter.is_allowed("gpt")
        assert self.limiter.remaining("gpt") == 0

    def test_allows_again_after_window(self):
        """Test recovery after the window."""
        self.limiter.is_allowed("gpt")
        self.limiter.is_allowed("gpt")

        self.clock.advance(61.0)

        assert self.limiter.is_allowed("gpt")

    def test_window_slides(self):
        """Test sliding window behavior."""
        self.limiter.is_allowed("gpt")
        self.clock.advance(30.0)
        self.limiter.is_allowed("gpt")

        self.clock.advance(31.0)

        assert self.limiter.remaining("gpt") == 1

    def test_time_until_reset(self):
        """Test time until reset."""
        assert self.limiter.time_until_reset("gpt") == 0.0

        self.limiter.is_allowed("gpt")
        self.clock.advance(10.0)
        self.limiter.is_allowed("gpt")

        assert self.limiter.time_until_reset("gpt") == pytest.approx(50.0)

    def test_keys_are_independent(self):
        """Test per-key isolation."""
        self.limiter.is_allowed("gpt")
        self.limiter.is_allowed("gpt")

        assert self.limiter.is_allowed("mistral")

    def test_status_does_not_consume(self):
        """Test that status is read-only."""
        self.limiter.is_allowed("gpt")

        status = self.limiter.status("gpt")

        assert status == {
            "allowed": True,
            "remaining": 1,
            "time_until_reset": 0.0,
            "requests_in_window": 1,
        }
        assert self.limiter.remaining("gpt") == 1

    def test_reset(self):
        """Test reset and reset_all."""
        self.limiter.is_allowed("gpt")
        self.limiter.is_allowed("gpt")
        self.limiter.is_allowed("other")

        self.limiter.reset("gpt")
        assert self.limiter.remaining("gpt") == 2
        assert self.limiter.remaining("other") == 1

        self.limiter.reset_all()
        assert self.limiter.remaining("other") == 2

    @pytest.mark.parametrize("kwargs", [{"max_requests": 0}, {"window_seconds": 0}])
    def test_invalid_arguments(self, kwargs):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            RateLimiter(**kwargs)
