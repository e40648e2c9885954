"""Tests for the logging service."""

import json
import logging
import os
import tempfile
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from hypothesis import given, settings, strategies as st

from game_library.services.logging import ERROR_LOG_NAME, MAIN_LOG_NAME, LoggingService, setup_logging

context_keys = st.text(min_size=1, max_size=10, alphabet="abcdefghijklmnopqrstuvwxyz").map(lambda s: f"ctx_{s}")
context_values = st.one_of(
    st.text(max_size=100),
    st.integers(),
    st.floats(allow_nan=False, allow_infinity=False),
    st.booleans(),
)


def last_json_line(path: Path) -> dict:
    lines = [line for line in path.read_text(encoding="utf-8").splitlines() if line.strip()]
    return json.loads(lines[-1])


def close_root_handlers() -> None:
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()


class TestLoggingService:
    """Test cases for LoggingService."""

    def test_development_logging_format(self) -> None:
        """Development console output is human readable and goes to stderr."""
        with patch.dict(os.environ, {"ENVIRONMENT": "development"}):
            with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
                service = LoggingService(log_level="INFO")
                service.configure()

                logger = service.get_logger("test")
                logger.info("test message", key="value")

                output = mock_stderr.getvalue()

        assert "test message" in output
        assert not output.strip().startswith("{")
        close_root_handlers()

    def test_production_console_is_json(self) -> None:
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
                service = LoggingService(log_level="INFO")
                service.configure()
                service.get_logger("test").info("test message", key="value")
                output = mock_stderr.getvalue()

        parsed = json.loads(output.strip().splitlines()[0])
        assert parsed["event"] == "test message"
        assert parsed["key"] == "value"
        assert "timestamp" in parsed
        assert "level" in parsed
        close_root_handlers()

    def test_tui_mode_disables_console(self) -> None:
        with patch("sys.stderr", new_callable=StringIO) as mock_stderr:
            service = LoggingService(log_level="INFO", tui_mode=True)
            service.configure()
            service.get_logger("test").warning("hidden message")
            output = mock_stderr.getvalue()

        assert "hidden message" not in output

    def test_file_logging_setup(self) -> None:
        """Log files are created and hold JSON lines."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_dir = Path(temp_dir)
            service = LoggingService(log_level="INFO", log_dir=log_dir, tui_mode=True)
            service.configure()

            service.get_logger("test").info("test file message", data="test")

            assert (log_dir / MAIN_LOG_NAME).exists()
            assert (log_dir / ERROR_LOG_NAME).exists()

            parsed = last_json_line(log_dir / MAIN_LOG_NAME)
            assert parsed["event"] == "test file message"
            assert parsed["data"] == "test"
            close_root_handlers()

    def test_error_file_logging(self) -> None:
        """Only errors reach the error log."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_dir = Path(temp_dir)
            service = LoggingService(log_level="DEBUG", log_dir=log_dir, tui_mode=True)
            service.configure()

            logger = service.get_logger("test")
            logger.info("not an error")
            logger.error("test error message", error_code=500)

            content = (log_dir / ERROR_LOG_NAME).read_text(encoding="utf-8")
            assert "not an error" not in content

            parsed = last_json_line(log_dir / ERROR_LOG_NAME)
            assert parsed["event"] == "test error message"
            assert parsed["error_code"] == 500
            assert parsed["level"] == "error"
            close_root_handlers()

    def test_level_filtering(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            log_dir = Path(temp_dir)
            service = LoggingService(log_level="warning", log_dir=log_dir, tui_mode=True)
            service.configure()

            logger = service.get_logger("test")
            logger.info("filtered out")
            logger.warning("kept")

            content = (log_dir / MAIN_LOG_NAME).read_text(encoding="utf-8")
            assert "filtered out" not in content
            assert "kept" in content
            close_root_handlers()


class TestStructuredLoggingProperties:
    """Property-based tests for structured logging consistency."""

    @given(
        log_level=st.sampled_from(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
        logger_name=st.text(min_size=1, max_size=30).filter(lambda x: x.isidentifier()),
        message=st.text(min_size=1, max_size=200),
        context_data=st.dictionaries(keys=context_keys, values=context_values, max_size=5),
    )
    @settings(deadline=None, max_examples=50)
    def test_structured_logging_consistency(
        self,
        log_level: str,
        logger_name: str,
        message: str,
        context_data: dict[str, str | int | float | bool],
    ) -> None:
        """Every event is written with its level, logger name, timestamp and context."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_dir = Path(temp_dir)
            service = LoggingService(log_level="DEBUG", log_dir=log_dir, tui_mode=True)
            service.configure()

            logger = service.get_logger(logger_name)
            getattr(logger, log_level.lower())(message, **context_data)

            parsed = last_json_line(log_dir / MAIN_LOG_NAME)
            close_root_handlers()

        assert parsed["event"] == message
        assert parsed["level"].upper() == log_level
        assert parsed["logger"] == logger_name
        assert "T" in parsed["timestamp"]
        for key, value in context_data.items():
            assert parsed[key] == value

    @given(
        error_message=st.text(min_size=1, max_size=100, alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd"))),
        exception_type=st.sampled_from([ValueError, RuntimeError, TypeError, OSError]),
    )
    @settings(deadline=None, max_examples=25)
    def test_error_logging_completeness(self, error_message: str, exception_type: type[Exception]) -> None:
        """Logged exceptions carry their traceback."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_dir = Path(temp_dir)
            service = LoggingService(log_level="DEBUG", log_dir=log_dir, tui_mode=True)
            service.configure()

            logger = service.get_logger("errors")
            try:
                raise exception_type(error_message)
            except exception_type:
                logger.error("Error occurred during operation", exc_info=True, error_type=exception_type.__name__)

            parsed = last_json_line(log_dir / ERROR_LOG_NAME)
            close_root_handlers()

        assert parsed["level"] == "error"
        assert parsed["error_type"] == exception_type.__name__
        assert "Traceback" in parsed["exception"]
        assert exception_type.__name__ in parsed["exception"]
        assert error_message in parsed["exception"]


def test_setup_logging_function() -> None:
    """Test the setup_logging convenience function."""
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = Path(temp_dir)

        with patch.dict(os.environ, {}, clear=False):
            service = setup_logging(log_level="DEBUG", log_dir=log_dir, environment="production", tui_mode=True)

            assert isinstance(service, LoggingService)
            assert os.environ["ENVIRONMENT"] == "production"
            assert service.is_development is False

        service.get_logger("test_setup").info("setup test", component="test")

        parsed = last_json_line(log_dir / MAIN_LOG_NAME)
        assert parsed["event"] == "setup test"
        assert parsed["component"] == "test"
        close_root_handlers()
