"""
bondcurve Logging System
========================

A unified, thread-safe logging utility for bondcurve. This module integrates
with the standard Python `logging` library and the `rich` library to provide
structured, safe, and visually distinct logging outputs.

Usage:
    >>> from bondcurve.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Market maker initialized")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


# Define log file location relative to the project root
PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "bondcurve.log"


class LogManager:
    """Process-wide owner of the root logger: a rich console handler and an optional rotating file."""

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    @staticmethod
    def _fallback(setting: str, default: str, error: str) -> str:
        print(
            f"{time.strftime(str(LOG_DATE_FORMAT.default()))} - bondcurve.logger"
            f" - Invalid {setting} ({error}). Using default.",
            file=sys.stderr,
        )
        return default


    @classmethod
    def validate_log_format(cls, log_format: str) -> str:
        """
        Returns ``log_format`` if it formats a sample record, else the default ``LOG_FORMAT``.
        """
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default
        try:
            formatter = logging.Formatter(fmt=str(log_format), validate=True)
            formatter.format(logging.LogRecord("bondcurve", logging.INFO, "", 0, "sample", (), None))
        except (ValueError, KeyError, TypeError) as e:
            return cls._fallback("LOG_FORMAT", default, str(e))
        return str(log_format)


    @classmethod
    def validate_date_format(cls, date_format: str) -> str:
        """Returns ``date_format`` if it holds at least one strftime directive, else the default."""
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default
        if not re.search(r"%[A-Za-z]", str(date_format)):
            return cls._fallback("LOG_DATE_FORMAT", default, "no strftime directive")
        return str(date_format)


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Absolute path to log file. Defaults to `logs/bondcurve.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to `LOG_FILE_OUTPUT`.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)
            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # Timestamps in UTC
            file_formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            file_formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    bondcurve_theme = Theme(
                        {
                            "bondcurve.address":        "cyan",
                            "bondcurve.amount":         "bold white",
                            "bondcurve.event":          "bold magenta",
                            "bondcurve.reason":         "bold red",
                            "bondcurve.level_critical": "bold red reverse",
                            "bondcurve.level_debug":    "bold dim",
                            "bondcurve.level_error":    "bold red",
                            "bondcurve.level_info":     "bold green",
                            "bondcurve.level_warning":  "bold yellow",
                            "bondcurve.logger_name":    "magenta",
                            "bondcurve.timestamp":      "bold cyan",
                        }
                    )

                    console = Console(theme=bondcurve_theme, highlight=False, stderr=True)

                    rich_handler = RichHandler(
                        console=console,
                        highlighter=BondCurveLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(file_formatter)
                    root_logger.addHandler(rich_handler)
                else:
                    console_handler = logging.StreamHandler(sys.stderr)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(file_formatter)
                    root_logger.addHandler(console_handler)

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )

                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(file_formatter)
                root_logger.addHandler(file_handler)

            self._configured = True


    def set_level(self, log_level: str) -> None:
        """Change the level of the root logger and all of its handlers."""
        numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)
        for handler in root_logger.handlers:
            handler.setLevel(numeric_level)


    def get_logger(self, name: str) -> logging.Logger:
        """Module logger, configuring the root logger first if needed."""
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter class that sanitizes log output.

    Strips ANSI escape sequences and non-printable control characters so a
    token name or symbol cannot rewrite the operator's terminal (CWE-117).
    """

    # Matches ANSI CSI sequences (colors, cursor moves) and single ESC chars
    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Matches control chars (0x00-0x1F) excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")


    @classmethod
    def sanitize(cls, text: str) -> str:
        """Drop ANSI sequences, carriage returns and other control characters."""
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class BondCurveLogHighlighter(RegexHighlighter):
    """
    Custom Rich highlighter for market maker logs.

    Colors account addresses, integer amounts, event names and revert
    reasons so order flow can be followed at a glance.
    """

    base_style = "bondcurve."
    highlights = [
        r"(?P<address>\b0x[0-9a-fA-F]{40}\b)",
        r"(?P<amount>(?<![\w.])\d{4,}(?![\w.]))",
        r"(?P<event>\b(MakeBuyOrder|MakeSellOrder|AddCollateralToken|UpdateCollateralToken|"
        r"RemoveCollateralToken|UpdateBeneficiary|UpdateFormula|UpdateFees|Open)\b)",
        r"(?P<reason>\b(MM|APP|INIT|VAULT|MATH|REENTRANCY)_[A-Z_]+\b)",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` (usually ``__name__``)."""
    return _manager.get_logger(name)


def set_log_level(log_level: str) -> None:
    """Adjust the active log level (e.g. from the `[logging]` config section)."""
    _manager.set_level(log_level)

# Configure on import
_manager.configure()
