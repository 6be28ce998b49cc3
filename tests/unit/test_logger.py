import structlog

from site_inspector.config.settings import Settings
from site_inspector.utils.logger import LogContext, configure_from_settings, get_logger, setup_logging


def test_setup_logging():
    # Calling it shouldn't crash
    setup_logging(level="DEBUG", json_format=False)
    setup_logging(level="INFO", json_format=True)


def test_configure_from_settings():
    configure_from_settings(Settings(_env_file=None, debug=True, log_json=False))


def test_get_logger():
    logger = get_logger("test_module")
    assert logger is not None
    logger.info("test message", key="value")


def test_log_context_binds_and_resets():
    with LogContext(run_id="run-1", url="https://example.com/"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["run_id"] == "run-1"
        assert bound["url"] == "https://example.com/"
    assert "run_id" not in structlog.contextvars.get_contextvars()


def test_log_context_nested_restores_outer():
    with LogContext(run_id="outer"):
        with LogContext(run_id="inner"):
            assert structlog.contextvars.get_contextvars()["run_id"] == "inner"
        assert structlog.contextvars.get_contextvars()["run_id"] == "outer"
