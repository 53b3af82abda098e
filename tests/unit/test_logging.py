import logging

import structlog

from sitegen.logging_config import get_correlation_id, log_context, setup_logging


def test_log_context_restores_outer_values():
    with log_context(job_id="job-1", correlation_id="req_1234"):
        assert get_correlation_id() == "req_1234"
        with log_context(job_id="job-2", correlation_id=None):
            assert structlog.contextvars.get_contextvars()["job_id"] == "job-2"
            assert get_correlation_id() == "req_1234"
        assert structlog.contextvars.get_contextvars()["job_id"] == "job-1"

    assert "job_id" not in structlog.contextvars.get_contextvars()
    assert get_correlation_id() is None


def test_setup_logging_binds_service_name():
    setup_logging(service_name="worker", log_format="json", log_level="DEBUG")
    try:
        assert structlog.contextvars.get_contextvars()["service"] == "worker"
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        structlog.contextvars.clear_contextvars()
