"""
Infrastructure layer for limedev.

Contains abstractions for external systems:
- GitClient: Git command execution (with CancelToken support)
- repository_lock: Per-repository mutual exclusion
- file_store: Atomic text file writes

These provide clean interfaces that can be mocked for testing.
"""

from .git_client import GitClient, GitResult, CancelToken, OperationCancelled
from .locks import repository_lock, LockUnavailable
from .file_store import write_atomic, write_if_changed, read_text

__all__ = [
    'GitClient',
    'GitResult',
    'CancelToken',
    'OperationCancelled',
    'repository_lock',
    'LockUnavailable',
    'write_atomic',
    'write_if_changed',
    'read_text',
]
