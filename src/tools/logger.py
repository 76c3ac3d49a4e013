import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(level_style)s | %(name)s | %(styled_message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ANSI color codes (only applied when output is a TTY)
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
SEA_GREEN = "\033[38;5;72m"
BROWN = "\033[38;5;94m"
BLOOD_RED = "\033[38;5;124m"
CYAN = "\033[36m"

# Level → (level_color, emoji)
LEVEL_STYLES = {
    logging.DEBUG: (DIM + CYAN, "🔍"),
    logging.INFO: (SEA_GREEN, "ℹ️ "),
    logging.WARNING: (BROWN, "⚠️ "),
    logging.ERROR: (BLOOD_RED + BOLD, "❌"),
    logging.CRITICAL: (BLOOD_RED + BOLD, "🔥"),
}


class ColoredFormatter(logging.Formatter):
    """
    Formatter that adds colors and emojis per log level.
    Disables colors when stderr is not a TTY (e.g. in CI or pipes).
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_color: Optional[bool] = None,
    ):
        super().__init__(fmt=fmt or LOG_FORMAT, datefmt=datefmt or DATE_FORMAT)
        if use_color is None:
            use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self.use_color and record.levelno in LEVEL_STYLES:
            level_color, emoji = LEVEL_STYLES[record.levelno]
            record.level_style = f"{emoji} {level_color}{record.levelname:<8}{RESET}"
            record.styled_message = f"{CYAN}{msg}{RESET}"
        else:
            record.level_style = f"{record.levelname:<10}"
            record.styled_message = msg
        return super().format(record)


def _default_level() -> int:
    name = os.getenv("LEGALLENS_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Create a configured console logger with colored output per level.

    The level defaults to LEGALLENS_LOG_LEVEL (INFO when unset). Output goes
    to stderr so the MCP stdio transport keeps stdout for JSON-RPC.

    Example:
        >>> logger = setup_logger("analysis-lifecycle")
        >>> logger.info("ready")
    """
    logger = logging.getLogger(name)
    level = _default_level() if level is None else level
    logger.setLevel(level)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())
    console_handler.setLevel(level)

    logger.addHandler(console_handler)
    # Propagate so pytest's caplog and host applications can observe records.
    logger.propagate = True

    return logger
