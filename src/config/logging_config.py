# src/config/logging_config.py

"""Logging for the stockwatch service and its one-shot check command.

Every launch writes ``logs/run_<YYYYmmdd_HHMMSS>.log``.  The file keeps
the full DEBUG trail of the ``stockwatch.*`` loggers, from poll verdicts
to status file writes.
Store writes run in worker threads, so file lines carry the thread name.

The console (stderr) stays quiet by default and only shows
``Settings.LOG_LEVEL`` and above.  Stdout is left alone because
the one-shot check prints its JSON result there.

The Telegram client, its HTTP transport and the job scheduler log every
poll and job run at INFO.  Their loggers are capped at WARNING and share
the run's handlers, so scheduler misfires and Bot API failures still
reach the run log.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

SERVICE_LOGGER = "stockwatch"

# Third-party loggers routed into the run log at WARNING and above
LIBRARY_LOGGERS: tuple[str, ...] = ("apscheduler", "httpx", "telegram")

_RUN_LOG_FORMAT = (
    "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(threadName)s | "
    "%(name)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_level() -> int:
    level = logging.getLevelName(Settings.LOG_LEVEL)
    return level if isinstance(level, int) else logging.WARNING


def _run_log_path() -> Path:
    Settings.LOGS_DIR.mkdir(parents=True, exist_ok=True)
    started = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Settings.LOGS_DIR / f"run_{started}.log"


def _build_handlers(log_file: Path) -> list[logging.Handler]:
    run_log = logging.FileHandler(log_file, encoding="utf-8")
    run_log.setLevel(logging.DEBUG)
    run_log.setFormatter(
        logging.Formatter(_RUN_LOG_FORMAT, datefmt=_DATE_FORMAT)
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_console_level())
    console.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT)
    )
    return [run_log, console]


def _attach_libraries(handlers: list[logging.Handler]) -> None:
    for name in LIBRARY_LOGGERS:
        library = logging.getLogger(name)
        library.setLevel(logging.WARNING)
        library.propagate = False
        for handler in handlers:
            if handler not in library.handlers:
                library.addHandler(handler)


def setup_logging() -> Path:
    """Open this launch's run log and wire the service loggers to it.

    Calling it again (tests, repeated one-shot checks) keeps the
    handlers from the first call.

    Returns:
        The :class:`~pathlib.Path` of the run log for this launch.
    """
    log_file = _run_log_path()

    service = logging.getLogger(SERVICE_LOGGER)
    service.setLevel(logging.DEBUG)
    if service.handlers:
        return log_file

    handlers = _build_handlers(log_file)
    for handler in handlers:
        service.addHandler(handler)
    _attach_libraries(handlers)

    service.info(
        "Run log %s opened (console level %s)",
        log_file,
        logging.getLevelName(_console_level()),
    )
    return log_file
