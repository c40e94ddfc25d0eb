"""
Progress reporting utilities for limedev.

Progress goes to stderr so stdout stays clean for JSONL data. Reporting is
on by default when stderr is a terminal; -v/--verbose forces it on.
"""

import os
import sys
from enum import Enum
from typing import Optional


class LogLevel(Enum):
    """Log levels for progress messages."""
    INFO = 1
    WARNING = 2
    ERROR = 3
    SUCCESS = 4


class ProgressReporter:
    """Handles progress reporting to stderr while keeping stdout clean for data."""

    COLORS = {
        LogLevel.WARNING: '\033[33m',
        LogLevel.ERROR: '\033[31m',
        LogLevel.SUCCESS: '\033[32m',
    }
    PREFIXES = {
        LogLevel.WARNING: '⚠ ',
        LogLevel.ERROR: '✗ ',
        LogLevel.SUCCESS: '✓ ',
    }
    RESET = '\033[0m'

    def __init__(self, enabled: Optional[bool] = None, use_colors: Optional[bool] = None):
        """
        Initialize progress reporter.

        Args:
            enabled: Explicitly enable/disable progress. None = auto-detect
            use_colors: Use ANSI colors in output. None = auto-detect
        """
        if enabled is None:
            self.enabled = sys.stderr.isatty()
        else:
            self.enabled = enabled

        if use_colors is None:
            self.use_colors = sys.stderr.isatty() and os.environ.get('NO_COLOR') is None
        else:
            self.use_colors = use_colors

    def _format(self, message: str, level: LogLevel) -> str:
        message = self.PREFIXES.get(level, '') + message
        if self.use_colors and level in self.COLORS:
            return f"{self.COLORS[level]}{message}{self.RESET}"
        return message

    def __call__(self, message: str, force: bool = False, level: LogLevel = LogLevel.INFO):
        """
        Output progress message to stderr if enabled.

        Args:
            message: Progress message to display
            force: Force output even if disabled
            level: Log level for the message
        """
        if force or self.enabled:
            print(self._format(message, level), file=sys.stderr, flush=True)

    def error(self, message: str):
        """Errors are always shown."""
        self(message, force=True, level=LogLevel.ERROR)

    def warning(self, message: str):
        self(message, level=LogLevel.WARNING)

    def success(self, message: str):
        self(message, level=LogLevel.SUCCESS)


def get_progress(enabled: Optional[bool] = None) -> ProgressReporter:
    """Create a reporter; ``enabled=None`` auto-detects from the terminal."""
    return ProgressReporter(enabled=enabled)
