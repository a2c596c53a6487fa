"""
Unit tests for structured logging and Prometheus metrics
"""
import json
import logging

import pytest

from src.observability.logger import ROOT_LOGGER_NAME, get_logger, log_operation, setup_logger
from src.observability.metrics import (
    STATUS_ANSWERED,
    STATUS_FAILED,
    FeedbackMetrics,
    get_content_type,
)


@pytest.mark.unit
class TestFeedbackMetrics:
    """Tests for FeedbackMetrics"""

    def test_instances_do_not_collide(self):
        first = FeedbackMetrics()
        second = FeedbackMetrics()

        first.record_processed(1, STATUS_ANSWERED, 3)

        assert first.get_value("feedback_bot_processed_feedbacks_total", {"user_id": "1", "status": "answered"}) == 3.0
        assert second.get_value("feedback_bot_processed_feedbacks_total", {"user_id": "1", "status": "answered"}) == 0.0

    def test_zero_increment_is_noop(self, metrics):
        metrics.record_processed(1, STATUS_FAILED, 0)
        assert b'status="failed"' not in metrics.generate()

    def test_active_users(self, metrics):
        metrics.set_active_users(5)
        assert metrics.get_value("feedback_bot_active_users_total") == 5.0

    def test_error_counters(self, metrics):
        metrics.record_database_error("exists")
        metrics.record_api_error("fetch")
        metrics.record_rate_limit_hit(9)

        assert metrics.get_value("feedback_bot_database_errors_total", {"operation": "exists"}) == 1.0
        assert metrics.get_value("feedback_bot_api_errors_total", {"api": "wb", "operation": "fetch"}) == 1.0
        assert metrics.get_value("feedback_bot_rate_limit_hits_total", {"user_id": "9"}) == 1.0

    def test_exposition_format(self, metrics):
        metrics.observe_cycle_duration(1, 0.3)
        output = metrics.generate().decode()

        assert "feedback_bot_cycle_duration_seconds_bucket" in output
        assert get_content_type().startswith("text/plain")


@pytest.mark.unit
class TestLogger:
    """Tests for logger setup"""

    @pytest.fixture(autouse=True)
    def restore_root(self):
        yield
        setup_logger(ROOT_LOGGER_NAME, level="INFO", format_type="json")

    def test_module_loggers_nest_under_root(self):
        logger = get_logger("src.service.cycle")
        assert logger.name == f"{ROOT_LOGGER_NAME}.src.service.cycle"
        assert logger.propagate

    def test_json_output(self, capsys):
        setup_logger(ROOT_LOGGER_NAME, level="DEBUG", format_type="json")
        logger = get_logger("tests.json")

        logger.info("cycle complete", extra={"tenant_id": 42, "answered": 2})

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["message"] == "cycle complete"
        assert record["tenant_id"] == 42
        assert record["level"] == "INFO"
        assert record["logger"] == f"{ROOT_LOGGER_NAME}.tests.json"
        assert "thread_name" in record

    def test_level_filtering(self, capsys):
        setup_logger(ROOT_LOGGER_NAME, level="warn", format_type="text")
        logger = get_logger("tests.level")

        logger.info("hidden")
        logger.warning("shown")

        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_log_operation_reraises(self, capsys):
        setup_logger(ROOT_LOGGER_NAME, level="INFO", format_type="json")
        logger = get_logger("tests.operation")

        with pytest.raises(RuntimeError):
            with log_operation("Opening store", logger=logger, db_type="sqlite"):
                raise RuntimeError("disk full")

        records = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        assert records[-1]["status"] == "error"
        assert records[-1]["operation"] == "Opening store"
        assert records[-1]["level"] == logging.getLevelName(logging.ERROR)
