"""
File store infrastructure for limedev.

Generated files (exclusion lists, git hooks, environment files) are written
with:
- Atomic writes (write to temp, then rename), so a file is never half-written
- Automatic parent directory creation
- A compare step, so rewriting identical content leaves the file untouched
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)


def read_text(path: Union[str, Path]) -> Optional[str]:
    """Read a text file, or None if it does not exist or cannot be read."""
    try:
        return Path(path).read_text(encoding='utf-8')
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Error reading {path}: {e}")
        return None


def write_atomic(path: Union[str, Path], content: str, mode: Optional[int] = None) -> None:
    """
    Write content atomically using temp file and rename.

    Args:
        path: Destination file
        content: Text to write
        mode: Permission bits to apply (e.g. 0o755 for hooks)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    # Write to temp file in same directory
    fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp"
    )

    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        if mode is not None:
            os.chmod(temp_path, mode)

        # Atomic rename
        os.replace(temp_path, path)

    except Exception:
        # Clean up temp file on error
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def write_if_changed(path: Union[str, Path], content: str, mode: Optional[int] = None) -> bool:
    """
    Write a file only if its content or mode differs.

    Returns:
        True if the file was written, False if it already matched
    """
    path = Path(path)
    current = read_text(path)
    if current == content:
        if mode is None or (path.stat().st_mode & 0o777) == mode:
            return False
        os.chmod(path, mode)
        return True

    write_atomic(path, content, mode)
    return True
