# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the structured JSON logger.

We verify:
  - output is valid JSON with ts, level, module and msg
  - extra context (platform_id, tag, ...) is merged in
  - log levels filter correctly
  - configure_package_logging re-levels loggers created earlier
"""

import json
import logging
from pathlib import Path

import pytest

from relmatrix.logging.logger import configure_package_logging, get_logger


@pytest.fixture(autouse=True)
def _reset_loggers() -> None:
    """Drop handlers from test loggers so each test attaches its own."""
    yield  # type: ignore[misc]
    for name in list(logging.Logger.manager.loggerDict):
        if name.startswith("relmatrix.test"):
            logger = logging.getLogger(name)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()


class TestJsonOutput:
    def test_mandatory_fields_are_present(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("relmatrix.test.fields", log_level="INFO")
        logger.info("Build finished")

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["level"] == "INFO"
        assert parsed["module"] == "relmatrix.test.fields"
        assert parsed["msg"] == "Build finished"
        assert "ts" in parsed

    def test_entry_context_is_included(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("relmatrix.test.extra", log_level="DEBUG")
        logger.info("Entry state changed", extra={"platform_id": "linux", "tag": "1.4.0"})

        parsed = json.loads(capsys.readouterr().out.strip())
        assert parsed["platform_id"] == "linux"
        assert parsed["tag"] == "1.4.0"

    def test_exceptions_are_serialized(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("relmatrix.test.exc", log_level="INFO")
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.error("Entry failed", exc_info=True)

        parsed = json.loads(capsys.readouterr().out.strip())
        assert "RuntimeError: boom" in parsed["exception"]

    def test_repeated_calls_do_not_stack_handlers(self) -> None:
        first = get_logger("relmatrix.test.stack")
        second = get_logger("relmatrix.test.stack")
        assert first is second
        assert len(second.handlers) == 1


class TestLogLevels:
    def test_debug_hidden_at_info(self, capsys: pytest.CaptureFixture[str]) -> None:
        logger = get_logger("relmatrix.test.hidden", log_level="INFO")
        logger.debug("this should not appear")
        assert capsys.readouterr().out.strip() == ""

    def test_invalid_level_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            get_logger("relmatrix.test.invalid", log_level="LOUD")

    def test_package_level_applies_to_existing_loggers(self) -> None:
        logger = get_logger("relmatrix.test.package", log_level="INFO")
        configure_package_logging("DEBUG")
        try:
            assert logger.level == logging.DEBUG
        finally:
            configure_package_logging("INFO")


class TestFileOutput:
    def test_logs_are_written_to_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "run.log"
        logger = get_logger("relmatrix.test.file", log_level="INFO", log_file=log_file)
        logger.info("file log test")

        parsed = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert parsed["msg"] == "file log test"
