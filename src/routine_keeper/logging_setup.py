# src/routine_keeper/logging_setup.py

"""
Logging for the console app.

Three handlers on the root logger:
- console: the REPL user's view; background threads stay quiet below WARNING
- routine.log: everything, for debugging
- sweeps.log: reset sweeps and webhook deliveries only, an audit trail of
  which tasks were reset when and who was told about it
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

# Loggers that run on the background sweep thread.
BACKGROUND_LOGGERS = (
    "routine_keeper.tasks.task_scheduler",
    "routine_keeper.notify",
)

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def parse_level(raw: str | int | None, default: int = logging.INFO) -> int:
    """Map "debug" / "INFO" / 20 to a logging level; unknown names fall back to default."""
    if isinstance(raw, int):
        return raw
    level = logging.getLevelName(str(raw or "").strip().upper())
    return level if isinstance(level, int) else default


class _ConsoleFilter(logging.Filter):
    """Own logs pass, background loggers need WARNING+, everything else needs ERROR+."""

    def __init__(self, quiet_prefixes: Iterable[str]) -> None:
        super().__init__()
        self._quiet = tuple(quiet_prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        if name.startswith("routine_keeper."):
            return True
        # py.warnings and third-party libraries.
        return record.levelno >= logging.ERROR


class _PrefixFilter(logging.Filter):
    def __init__(self, prefixes: Iterable[str]) -> None:
        super().__init__()
        self._prefixes = tuple(prefixes)

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self._prefixes)


def setup_logging(
    *,
    log_dir: str | Path = ".local/routine",
    console_level: str | int = logging.INFO,
    file_level: str | int = logging.DEBUG,
    sweep_log: bool = True,
) -> Path:
    """
    Configure root logging and return the path of the main log file.

    Call this ONCE, very early (before first logger.info). Calling it again
    replaces the handlers instead of stacking them.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "routine.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(parse_level(console_level))
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleFilter(BACKGROUND_LOGGERS))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(parse_level(file_level, logging.DEBUG))
    fh.setFormatter(fmt)
    root.addHandler(fh)

    if sweep_log:
        sh = logging.FileHandler(str(log_dir / "sweeps.log"), encoding="utf-8")
        sh.setLevel(logging.INFO)
        sh.setFormatter(fmt)
        sh.addFilter(_PrefixFilter(BACKGROUND_LOGGERS))
        root.addHandler(sh)

    logging.captureWarnings(True)

    # httpx logs every webhook request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return log_file
