from datetime import timedelta

import pytest

from bujo_scan.ocr.metrics import MetricsStore

DAY = timedelta(hours=24)


@pytest.mark.unit
class TestMetricsStore:
    """Test the bounded attempt log."""

    def test_capacity_is_bounded(self, metrics_clock):
        """Test the attempt log bound."""
        store = MetricsStore(max_size=3, clock=metrics_clock)

        for i in range(5):
            store.record_failure(f"provider-{i}", 0.1, "boom")

        assert len(store) == 3
        assert [m.provider for m in store.recent(DAY)] == ["provider-2", "provider-3", "provider-4"]

    def test_success_rate(self, metrics_store):
        """Test success rate calculation."""
        assert metrics_store.success_rate("gpt-vision", DAY) is None

        metrics_store.record_success("gpt-vision", 1.2, 0.9, entries_extracted=3)
        metrics_store.record_success("gpt-vision", 1.0, 0.8)
        metrics_store.record_failure("gpt-vision", 0.5, "timeout")
        metrics_store.record_failure("ocr-space", 0.5, "timeout")

        assert metrics_store.success_rate("gpt-vision", DAY) == pytest.approx(2 / 3)
        assert metrics_store.success_rate("ocr-space", DAY) == 0.0

    def test_recent_window(self, metrics_store, metrics_clock):
        """Test the recent attempts window."""
        metrics_store.record_failure("gpt-vision", 0.1, "old")
        metrics_clock.advance(timedelta(hours=25))
        metrics_store.record_success("gpt-vision", 0.1, 0.9)

        recent = metrics_store.for_provider("gpt-vision", DAY)

        assert len(recent) == 1
        assert recent[0].success
        assert len(metrics_store) == 2

    def test_last_success(self, metrics_store, metrics_clock):
        """Test last success lookup."""
        assert metrics_store.last_success("gpt-vision") is None

        metrics_store.record_success("gpt-vision", 0.1, 0.9)
        first = metrics_clock()
        metrics_clock.advance(timedelta(minutes=5))
        metrics_store.record_failure("gpt-vision", 0.1, "boom")

        assert metrics_store.last_success("gpt-vision") == first

    def test_clear(self, metrics_store):
        """Test clearing metrics."""
        metrics_store.record_success("gpt-vision", 0.1, 0.9)

        metrics_store.clear()

        assert len(metrics_store) == 0
