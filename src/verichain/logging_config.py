"""
Logging Configuration

Centralized logging setup for verichain.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional


class ChainLogFormatter(logging.Formatter):
    """Formatter with color support: [TIME] LEVEL [logger] message"""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8}"

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            level = f"{color}{level}{self.RESET}"

        parts = [
            f"[{timestamp}]",
            level,
            f"[{record.name}]",
            record.getMessage(),
        ]

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)


def setup_logging(
    level: str = "WARNING",
    log_file: Optional[str] = None,
    use_colors: bool = True,
) -> None:
    """
    Configure logging for verichain.

    Logs go to stderr so the report on stdout stays machine-readable
    (``--json``).

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output (always DEBUG)
        use_colors: Enable colored console output
    """
    root_logger = logging.getLogger("verichain")
    root_logger.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(ChainLogFormatter(use_colors=use_colors))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(ChainLogFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    root_logger.debug("Logging configured")
