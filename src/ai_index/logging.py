from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Set up structured logging for the ai_index module.

    The first call wins for stderr-only configuration. Passing a filename later
    (the ``--log-file`` option) redirects the root handlers to that file.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.

    Returns:
        A structlog logger instance configured for the ai_index module.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if filename:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        file_handler = logging.FileHandler(str(filename), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(file_handler)
        root.setLevel(logging.INFO)

    if not _LOGGING_CONFIGURED:
        if not filename:
            logging.basicConfig(
                level=logging.INFO,
                handlers=[logging.StreamHandler(sys.stderr)],
                format="%(message)s",
            )
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("ai_index")


logger = setup_logging()
