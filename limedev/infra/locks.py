"""
Per-repository locking for limedev.

Every git-mutating operation on a working directory runs inside
repository_lock(). The lock has two layers: a threading lock so parallel
workers in one process never share a repository, and an flock on a lock
file so a second limedev invocation cannot touch it either.
"""

import contextlib
import fcntl
import os
import threading
import time
from pathlib import Path
from typing import Dict, Iterator, Optional
import logging

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = '.locks'

_registry_lock = threading.Lock()
_thread_locks: Dict[str, threading.Lock] = {}


class LockUnavailable(Exception):
    """Another thread or process holds the repository lock."""


def _thread_lock_for(key: str) -> threading.Lock:
    with _registry_lock:
        lock = _thread_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _thread_locks[key] = lock
        return lock


def lock_path_for(repo_path: Path) -> Path:
    """Lock file for a working directory: ``<parent>/.locks/<name>.lock``."""
    repo_path = Path(repo_path)
    return repo_path.parent / LOCK_DIR_NAME / f"{repo_path.name}.lock"


@contextlib.contextmanager
def repository_lock(repo_path: Path, timeout: Optional[float] = 0.0) -> Iterator[Path]:
    """
    Hold the exclusive lock for one repository.

    Args:
        repo_path: Working directory being guarded (need not exist yet)
        timeout: Seconds to wait for the lock; 0 fails immediately, None waits

    Raises:
        LockUnavailable: If the lock could not be acquired in time
    """
    repo_path = Path(repo_path).expanduser().resolve()
    thread_lock = _thread_lock_for(str(repo_path))
    if timeout is None:
        acquired = thread_lock.acquire()
    elif timeout > 0:
        acquired = thread_lock.acquire(timeout=timeout)
    else:
        acquired = thread_lock.acquire(blocking=False)
    if not acquired:
        raise LockUnavailable(f"{repo_path} is locked by another operation in this process")

    lock_file = lock_path_for(repo_path)
    fh = None
    try:
        lock_file.parent.mkdir(parents=True, exist_ok=True)
        fh = open(lock_file, "a+")
        start = time.monotonic()
        while True:
            try:
                fcntl.flock(fh, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if timeout is not None and time.monotonic() - start >= timeout:
                    raise LockUnavailable(f"{repo_path} is locked by another limedev process")
                time.sleep(0.1)
        fh.seek(0)
        fh.truncate()
        fh.write(str(os.getpid()))
        fh.flush()
        logger.debug(f"Acquired lock {lock_file}")
        try:
            yield lock_file
        finally:
            fcntl.flock(fh, fcntl.LOCK_UN)
    finally:
        if fh is not None:
            fh.close()
        thread_lock.release()
