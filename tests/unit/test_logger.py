import pytest
import structlog

from wine_discovery.utils.logger import LogContext, get_logger, redact_secrets, setup_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_setup_logging():
    # Calling it shouldn't crash
    setup_logging(level="DEBUG", json_format=False)
    setup_logging(level="INFO", json_format=True)


def test_get_logger():
    logger = get_logger("test_module")
    assert logger is not None
    logger.info("test message", key="value")


def test_log_context_binds_and_resets():
    with LogContext(run_id="abc123", winery="Tabor Winery"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["run_id"] == "abc123"
        assert bound["winery"] == "Tabor Winery"
    assert "run_id" not in structlog.contextvars.get_contextvars()


def test_nested_log_context_restores_outer_values():
    with LogContext(run_id="outer"):
        with LogContext(run_id="inner"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "inner"
        assert structlog.contextvars.get_contextvars()["run_id"] == "outer"


def test_redact_secrets():
    event = {"event": "call", "api_key": "secret", "X-API-KEY": "secret", "query": "Adama"}
    redacted = redact_secrets(None, "info", event)
    assert redacted["api_key"] == "***"
    assert redacted["X-API-KEY"] == "***"
    assert redacted["query"] == "Adama"
