"""Unit tests for tilegemm.utils.logging module.

Tests MultilineFormatter formatting and setup_logging configuration.

Run with: pytest test/test_logging.py -v
"""

import logging
import sys
from collections.abc import Iterator

import pytest

from tilegemm.utils.logging import MultilineFormatter, setup_logging


def make_record(msg: str, name: str = "test.logger", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(name=name, level=level, pathname="", lineno=0, msg=msg, args=(), exc_info=None)


@pytest.fixture
def restore_root() -> Iterator[list[logging.Handler]]:
    """Collect handlers installed by a test and restore root and engine logger state afterwards."""
    installed: list[logging.Handler] = []
    root_level = logging.root.level
    engine_level = logging.getLogger("tilegemm.engine").level
    yield installed
    for handler in installed:
        logging.root.removeHandler(handler)
        handler.close()
    logging.root.setLevel(root_level)
    logging.getLogger("tilegemm.engine").setLevel(engine_level)


class TestMultilineFormatter:
    """Tests for MultilineFormatter."""

    def test_single_line_with_metadata(self) -> None:
        """Single-line message includes right-padded text and metadata suffix."""
        result = MultilineFormatter(msg_width=40, show_metadata=True).format(make_record("hello world"))
        assert result.startswith("hello world")
        assert " - INFO - test.logger" in result
        assert result.index("20") >= 40

    def test_single_line_without_metadata(self) -> None:
        """Without metadata the message is returned unchanged."""
        formatter = MultilineFormatter(msg_width=40, show_metadata=False)
        assert formatter.format(make_record("hello world")) == "hello world"

    def test_multiline_with_metadata(self) -> None:
        """First line gets metadata; continuation lines such as table rows are preserved."""
        formatter = MultilineFormatter(msg_width=40, show_metadata=True)
        result = formatter.format(make_record("TileConfig(...)\n┌─────┐\n│ row │", level=logging.WARNING))
        lines = result.split("\n")
        assert len(lines) == 3
        assert "WARNING" in lines[0]
        assert lines[1] == "┌─────┐"
        assert lines[2] == "│ row │"

    def test_multiline_without_metadata(self) -> None:
        formatter = MultilineFormatter(msg_width=40, show_metadata=False)
        assert formatter.format(make_record("first\nsecond")).split("\n") == ["first", "second"]

    def test_exception_appended(self) -> None:
        """Tracebacks follow the message lines."""
        formatter = MultilineFormatter(msg_width=20, show_metadata=False)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record("failed")
            record.exc_info = sys.exc_info()
        result = formatter.format(record)
        assert result.startswith("failed\n")
        assert "RuntimeError: boom" in result


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_file_handler(self, tmp_path: "pytest.TempPathFactory", restore_root: list[logging.Handler]) -> None:
        """A log file gets a FileHandler with the multiline formatter."""
        handler = setup_logging(str(tmp_path / "test.log"), logging.INFO, msg_width=200, show_metadata=True)
        restore_root.append(handler)
        assert isinstance(handler, logging.FileHandler)
        assert handler in logging.root.handlers
        assert isinstance(handler.formatter, MultilineFormatter)
        assert handler.formatter.msg_width == 200
        assert logging.root.level == logging.INFO

    def test_stderr_handler(self, restore_root: list[logging.Handler]) -> None:
        """No log file means a stream handler on stderr."""
        handler = setup_logging(None, logging.WARNING, msg_width=80, show_metadata=False)
        restore_root.append(handler)
        assert type(handler) is logging.StreamHandler
        assert handler.stream is sys.stderr

    def test_file_mode_is_write(self, tmp_path: "pytest.TempPathFactory", restore_root: list[logging.Handler]) -> None:
        """The log file is overwritten, not appended to."""
        log_file = tmp_path / "test.log"
        log_file.write_text("old content\n")
        handler = setup_logging(str(log_file), logging.INFO, msg_width=80, show_metadata=False)
        restore_root.append(handler)
        logging.getLogger("tilegemm.driver").info("new content")
        handler.flush()
        content = log_file.read_text()
        assert "old content" not in content
        assert "new content" in content

    def test_primitive_logs_quiet_by_default(
        self, tmp_path: "pytest.TempPathFactory", restore_root: list[logging.Handler]
    ) -> None:
        """Per-primitive engine logs stay off at DEBUG unless traced."""
        handler = setup_logging(str(tmp_path / "a.log"), logging.DEBUG, msg_width=80, show_metadata=False)
        restore_root.append(handler)
        assert not logging.getLogger("tilegemm.engine").isEnabledFor(logging.DEBUG)
        assert logging.getLogger("tilegemm.driver").isEnabledFor(logging.DEBUG)

    def test_trace_primitives(self, tmp_path: "pytest.TempPathFactory", restore_root: list[logging.Handler]) -> None:
        handler = setup_logging(
            str(tmp_path / "b.log"), logging.DEBUG, msg_width=80, show_metadata=False, trace_primitives=True
        )
        restore_root.append(handler)
        assert logging.getLogger("tilegemm.engine").isEnabledFor(logging.DEBUG)
