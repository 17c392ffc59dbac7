# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Logging utilities for tilegemm.

Provides a formatter that keeps multiline messages (tile tables, matrices)
readable and a helper that wires it to a file or to stderr.
"""

import logging
import sys
from typing import Optional

__all__ = ["setup_logging", "MultilineFormatter"]

_PRIMITIVE_LOGGERS = ("tilegemm.engine",)


class MultilineFormatter(logging.Formatter):
    """Formatter that pads the first line of a message and keeps the rest verbatim.

    Attributes:
        msg_width: Width the first line is padded to before metadata.
        show_metadata: Whether to append timestamp/level/name metadata.
    """

    def __init__(self, msg_width: int, show_metadata: bool) -> None:
        """Initialize the formatter.

        Args:
            msg_width: Width the first line is padded to before metadata.
            show_metadata: Whether to append timestamp/level/name metadata.
        """
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.msg_width = msg_width
        self.show_metadata = show_metadata

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record.

        Args:
            record: The log record to format.

        Returns:
            First line, optionally padded and suffixed with metadata, followed by
            any continuation lines unchanged.
        """
        first_line, _, rest = record.getMessage().partition("\n")
        if self.show_metadata:
            metadata = f"{self.formatTime(record)} - {record.levelname} - {record.name}"
            first_line = f"{first_line:<{self.msg_width}}{metadata}"
        if record.exc_info:
            rest = "\n".join(part for part in (rest, self.formatException(record.exc_info)) if part)
        return f"{first_line}\n{rest}" if rest else first_line


def setup_logging(
    log_file: Optional[str], level: int, msg_width: int, show_metadata: bool, trace_primitives: bool = False
) -> logging.Handler:
    """Configure root logging with the multiline formatter.

    Args:
        log_file: Path to the log file, or None to log to stderr.
        level: Logging level.
        msg_width: Width for message alignment.
        show_metadata: Whether to append timestamp/level/name metadata to log lines.
        trace_primitives: Keep per-primitive engine logs at DEBUG. When False
            the engine logger is raised to WARNING, since it logs every load
            and store of every group.

    Returns:
        The installed handler.
    """
    if log_file is None:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(log_file, mode="w")
    handler.setFormatter(MultilineFormatter(msg_width=msg_width, show_metadata=show_metadata))
    logging.root.addHandler(handler)
    logging.root.setLevel(level)
    for name in _PRIMITIVE_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET if trace_primitives else logging.WARNING)
    return handler
