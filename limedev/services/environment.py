"""
Environment projection for limedev.

Turns the resolved configuration into the flat set of variables that the
build and QEMU shell tooling reads. Producing the mapping has no side
effects; exporting it or writing it to a file is up to the caller.
"""

import logging
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Union

from ..domain.repository import BuildTarget, ResolvedRepository, RELEASE_MODE

logger = logging.getLogger(__name__)

ENV_NAME_RE = re.compile(r'^[A-Z_][A-Z0-9_]*$')

# Sections copied into the environment, with the prefix their keys get.
SECTION_EXPORTS = {
    'system_requirements': '',
    'qemu_config': 'QEMU_',
    'node_config': '',
    'build_flags': '',
}


@dataclass(frozen=True)
class EnvironmentPaths:
    """Directory layout of a workspace."""
    build_dir: Path
    repos_dir: Path
    cache_dir: Path
    logs_dir: Path

    @classmethod
    def from_build_dir(cls, build_dir: Union[str, Path]) -> "EnvironmentPaths":
        build_dir = Path(build_dir)
        return cls(
            build_dir=build_dir,
            repos_dir=build_dir / 'repos',
            cache_dir=build_dir / 'cache',
            logs_dir=build_dir / 'logs',
        )

    @property
    def tools_dir(self) -> Path:
        return self.build_dir / 'tools'

    def repo_path(self, repo: ResolvedRepository) -> Path:
        return self.repos_dir / repo.name


def _env_key(name: str) -> str:
    return name.upper().replace('-', '_')


def _put(env: Dict[str, str], name: str, value: str, origin: str) -> None:
    """Add a configuration-derived variable unless its name is unusable or taken."""
    if not ENV_NAME_RE.match(name):
        logger.warning(f"{origin}: {name!r} is not a valid variable name; not exported")
        return
    if name in env:
        logger.warning(f"{origin}: {name} is already set to {env[name]!r}; not overridden")
        return
    env[name] = value


def project_environment(
    resolved: Iterable[ResolvedRepository],
    targets: Iterable[BuildTarget],
    versions: Mapping[str, str],
    paths: EnvironmentPaths,
    mode: str,
    extras: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Dict[str, str]:
    """
    Build the exported environment for a workspace.

    Args:
        resolved: Resolved repositories for the active mode
        targets: Build targets from [build_targets]
        versions: Key/value pairs from [firmware_versions]
        paths: Workspace directory layout
        mode: Active mode name
        extras: Other sections by name; those listed in SECTION_EXPORTS are copied

    Returns:
        Mapping of variable name to value
    """
    env: Dict[str, str] = {
        'LIME_BUILD_DIR': str(paths.build_dir),
        'LIME_REPOS_DIR': str(paths.repos_dir),
        'LIME_CACHE_DIR': str(paths.cache_dir),
        'LIME_LOGS_DIR': str(paths.logs_dir),
        'LIME_RELEASE_MODE': 'true' if mode == RELEASE_MODE else 'false',
        'LIME_MODE': mode,
    }

    # Fixed and repository variables are set first and cannot be replaced
    # by a section key.
    for repo in resolved:
        prefix = f"REPO_{_env_key(repo.id)}"
        _put(env, f"{prefix}_URL", repo.url, "[repositories]")
        _put(env, f"{prefix}_BRANCH", repo.branch, "[repositories]")
        _put(env, f"{prefix}_REMOTE", repo.remote, "[repositories]")
        _put(env, f"{prefix}_DIR", str(paths.repo_path(repo)), "[repositories]")

    for key, value in versions.items():
        _put(env, _env_key(key), value, "[firmware_versions]")

    for target in targets:
        _put(env, f"{_env_key(target.name)}_TARGET", target.target, "[build_targets]")

    for section, prefix in SECTION_EXPORTS.items():
        for key, value in (extras or {}).get(section, {}).items():
            _put(env, f"{prefix}{_env_key(key)}", value, f"[{section}]")

    return env


def format_shell_exports(env: Mapping[str, str]) -> List[str]:
    """Render ``export NAME='value'`` lines in name order."""
    return [f"export {name}={shlex.quote(value)}" for name, value in sorted(env.items())]
