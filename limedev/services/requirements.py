"""
Host requirement checks for a limedev workspace.

Compares the machine against [system_requirements] in versions.conf.
Checks only observe; an unmet requirement is a warning, not an error,
since builds can still succeed on a smaller machine.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..domain.config import ConfigModel

logger = logging.getLogger(__name__)

SECTION = 'system_requirements'
MEMINFO = Path('/proc/meminfo')

STATUS_PASS = 'pass'
STATUS_FAIL = 'fail'
STATUS_UNKNOWN = 'unknown'


@dataclass(frozen=True)
class RequirementCheck:
    """Result of one requirement check, in whole gigabytes."""
    check: str
    required_gb: int
    available_gb: Optional[int]

    @property
    def status(self) -> str:
        if self.available_gb is None:
            return STATUS_UNKNOWN
        return STATUS_PASS if self.available_gb >= self.required_gb else STATUS_FAIL

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAIL

    @property
    def message(self) -> str:
        if self.status == STATUS_UNKNOWN:
            return f"{self.check}: could not be measured (minimum {self.required_gb}GB)"
        if self.status == STATUS_FAIL:
            return f"{self.check}: {self.available_gb}GB available, minimum {self.required_gb}GB recommended"
        return f"{self.check}: {self.available_gb}GB (OK)"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': 'requirement',
            'check': self.check,
            'status': self.status,
            'required_gb': self.required_gb,
            'available_gb': self.available_gb,
            'message': self.message,
        }


def total_ram_gb(meminfo: Union[str, Path] = MEMINFO) -> Optional[int]:
    """Installed memory in whole GiB from /proc/meminfo, or None if unavailable."""
    try:
        with open(meminfo, encoding='utf-8') as f:
            for line in f:
                if line.startswith('MemTotal:'):
                    return int(line.split()[1]) // (1024 * 1024)
    except (OSError, ValueError, IndexError) as e:
        logger.debug(f"Cannot read {meminfo}: {e}")
    return None


def free_disk_gb(path: Union[str, Path]) -> Optional[int]:
    """Free space in whole GiB on the filesystem holding ``path``."""
    path = Path(path).absolute()
    while not path.exists() and path != path.parent:
        path = path.parent
    try:
        return shutil.disk_usage(path).free // (1024 ** 3)
    except OSError as e:
        logger.debug(f"Cannot measure free space at {path}: {e}")
        return None


def _minimum(config: ConfigModel, key: str) -> Optional[int]:
    value = config.get_value(SECTION, key)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning(f"[{SECTION}] {key}={value!r} is not a whole number of gigabytes; not checked")
        return None


def check_system_requirements(
    config: ConfigModel,
    build_dir: Union[str, Path],
    meminfo: Union[str, Path] = MEMINFO,
) -> List[RequirementCheck]:
    """
    Check RAM and free disk space against the configured minimums.

    Requirements that are not configured are not checked.

    Args:
        config: Workspace configuration
        build_dir: Workspace root; free space is measured on its filesystem
        meminfo: Memory information file

    Returns:
        One RequirementCheck per configured requirement
    """
    checks = []
    min_ram = _minimum(config, 'min_ram_gb')
    if min_ram is not None:
        checks.append(RequirementCheck('ram', min_ram, total_ram_gb(meminfo)))
    min_disk = _minimum(config, 'min_disk_gb')
    if min_disk is not None:
        checks.append(RequirementCheck('disk', min_disk, free_disk_gb(build_dir)))
    return checks
