"""Logging for the scrapbook package.

Records from every ``scrapbook.*`` module end up on the ``scrapbook`` logger.
``setup_logging`` gives it a Rich handler on stderr, so exports written to
stdout stay clean, plus an optional plain-text log file.

Example:
    >>> from scrapbook.utils.logging import setup_logging, LogContext
    >>> log = setup_logging(level="DEBUG")
    >>> with LogContext("Loading archive", logger=log):
    ...     store.open()
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from types import TracebackType

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_NAME = "scrapbook"

# Dependencies held at WARNING unless asked otherwise
NOISY_LOGGERS = ("asyncio", "markdown_it", "yaml")

LOG_FILE_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_stderr = Console(stderr=True)


def _rich_handler(level: int) -> logging.Handler:
    return RichHandler(
        console=_stderr,
        level=level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=level <= logging.DEBUG,
    )


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: Path | None = None,
    quiet_third_party: bool = True,
) -> logging.Logger:
    """Point the ``scrapbook`` logger at the console and, optionally, a file.

    Handlers from an earlier call are closed and replaced, so the CLI can
    call this once per invocation.

    Args:
        level: Level name; unknown names mean WARNING.
        log_file: Where to append a plain-text copy of every record.
        quiet_third_party: Keep chatty dependencies at WARNING.

    Returns:
        The ``scrapbook`` logger.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.WARNING

    root = logging.getLogger(PACKAGE_NAME)
    while root.handlers:
        old = root.handlers.pop()
        old.close()

    root.setLevel(numeric)
    root.addHandler(_rich_handler(numeric))
    if log_file is not None:
        root.addHandler(_file_handler(log_file, numeric))
    root.propagate = False

    if quiet_third_party:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging at {logging.getLevelName(numeric)}, file={log_file}")
    return root


class LogContext:
    """Times a block and logs when it starts and how it ended.

    Attributes:
        message: What the block does, e.g. "Loading archive".
        elapsed: Seconds the block took; set when it exits.
    """

    def __init__(
        self,
        message: str,
        level: int = logging.DEBUG,
        logger: logging.Logger | None = None,
    ) -> None:
        self.message = message
        self.elapsed = 0.0
        self._level = level
        self._log = logger or logging.getLogger(PACKAGE_NAME)
        self._started = 0.0

    def __enter__(self) -> LogContext:
        self._log.log(self._level, f"{self.message}...")
        self._started = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.elapsed = time.perf_counter() - self._started
        if exc is None:
            self._log.log(self._level, f"{self.message} completed in {self.elapsed:.2f}s")
            return
        self._log.error(f"{self.message} failed after {self.elapsed:.2f}s: {exc}")
