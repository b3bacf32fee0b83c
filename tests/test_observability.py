"""Tests for the metrics collector."""

from unittest.mock import patch

from observability import Metrics, log_run_summary


class TestMetrics:
    def test_counters_and_intents(self):
        m = Metrics()
        m.counter("model.fallback")
        m.counter("model.fallback", 2)
        m.record_intent("delete", "success")

        assert m.get("model.fallback") == 3
        assert m.get("intent.delete.success") == 1
        assert m.get("missing") == 0

    def test_timer_summary(self):
        m = Metrics()
        with m.timer("handler.search"):
            pass
        with m.timer("handler.search"):
            pass

        summary = m.summary()["timers"]["handler.search"]
        assert summary["count"] == 2
        assert summary["max"] >= 0

    def test_reset(self):
        m = Metrics()
        m.counter("x")
        m.reset()
        assert m.summary() == {"counters": {}, "timers": {}}

    def test_log_run_summary(self):
        with patch("observability.logger") as mock_logger:
            log_run_summary()
        mock_logger.info.assert_called_once()
        assert mock_logger.info.call_args.args[0] == "run_summary"
        assert "counters" in mock_logger.info.call_args.kwargs
