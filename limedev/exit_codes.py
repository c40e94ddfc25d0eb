"""
Exit codes for limedev commands.

0-2 follow POSIX; 64 and up are limedev's own. A run where some
repositories failed exits with PARTIAL_SUCCESS, so scripts can tell "the
workspace is partly set up" apart from "nothing could be done".
"""
from typing import Dict, List, Optional, Tuple, Type

from .errors import ConfigParseError, UnknownRepository

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2          # Bad arguments or an undeclared repository

NO_REPOS_FOUND = 64      # The selection matched no repository
CONFIG_ERROR = 66        # versions.conf is missing or malformed
PERMISSION_ERROR = 67
DATA_ERROR = 70
PARTIAL_SUCCESS = 71     # At least one repository failed, the rest were processed
INTERRUPTED = 130        # SIGINT

# Checked in order, so subclasses must come before their bases.
EXCEPTION_EXIT_CODES: Tuple[Tuple[Type[BaseException], int], ...] = (
    (ConfigParseError, CONFIG_ERROR),
    (UnknownRepository, USAGE_ERROR),
    (PermissionError, PERMISSION_ERROR),
    (ValueError, DATA_ERROR),
    (KeyError, DATA_ERROR),
    (KeyboardInterrupt, INTERRUPTED),
)


def get_exit_code_for_exception(exc: BaseException) -> int:
    """Exit code for an exception that escaped a command."""
    for exc_type, code in EXCEPTION_EXIT_CODES:
        if isinstance(exc, exc_type):
            return code
    return GENERAL_ERROR


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code

    def details(self) -> Dict:
        """Extra fields for the JSON error object."""
        return {}


class NoReposFoundError(CommandError):
    """Raised when no repositories match the given selection."""
    def __init__(self, message: str = "No repositories found"):
        super().__init__(message, NO_REPOS_FOUND)


class ConfigError(CommandError):
    """The workspace configuration could not be loaded; nothing was touched."""
    def __init__(self, cause: ConfigParseError):
        super().__init__(str(cause), CONFIG_ERROR)
        self.cause = cause

    def details(self) -> Dict:
        return {
            'kind': type(self.cause).__name__,
            'source': self.cause.source,
            'line': self.cause.line,
            'section': self.cause.section,
        }


class PartialSuccessError(CommandError):
    """Raised when some repositories succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0,
                 failures: Optional[Dict[str, List[str]]] = None):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
        self.failures = failures or {}

    def details(self) -> Dict:
        return {'succeeded': self.succeeded, 'failed': self.failed, 'failures': self.failures}
