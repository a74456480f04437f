"""
Harness logging setup.

Colored console output for interactive runs, plain full-timestamp output
for log files. Deployment tool output (SqlPackage) and provisioning
progress are routed through the same loggers.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path


_RESET = "\033[0m"
_DIM = "\033[2m"

# SGR sequences per level
_LEVEL_STYLES = {
    logging.DEBUG: "\033[2;37m",
    logging.INFO: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[1;37;41m",
}


class ColoredFormatter(logging.Formatter):
    """Colors the level name by severity and dims the logger name."""

    def __init__(self, fmt: str, datefmt: str | None = None, use_colors: bool = True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        levelname, name = record.levelname, record.name
        style = _LEVEL_STYLES.get(record.levelno, "")
        record.levelname = f"{style}{levelname:8}{_RESET}"
        record.name = f"{_DIM}{name}{_RESET}"
        try:
            return super().format(record)
        finally:
            # Other handlers (file) must see the plain values
            record.levelname, record.name = levelname, name


def _enable_windows_ansi() -> None:
    if sys.platform != "win32":
        return
    try:
        import ctypes

        handle = ctypes.windll.kernel32.GetStdHandle(-11)
        # processed output, wrap at EOL, virtual terminal processing
        ctypes.windll.kernel32.SetConsoleMode(handle, 0x0001 | 0x0002 | 0x0004)
    except (AttributeError, OSError) as e:
        logging.getLogger(__name__).debug("ANSI colors unavailable: %s", e)


def setup_logging(level: int = logging.INFO, log_file: str | Path | None = None, use_colors: bool = True) -> None:
    """
    Configure harness-wide logging.

    Args:
        level: Console logging level (the log file always receives DEBUG)
        log_file: Also write a DEBUG log here (parent directories are created)
        use_colors: Colorize console output
    """
    if use_colors:
        _enable_windows_ansi()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredFormatter(
        fmt="[%(asctime)s] %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        use_colors=use_colors,
    ))
    console.setLevel(level)
    handlers: list[logging.Handler] = [console]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(
            fmt="[%(asctime)s] %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)

    # Quiet third-party loggers
    logging.getLogger("pyodbc").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging initialized (level=%s, file=%s)", logging.getLevelName(level), log_file)
