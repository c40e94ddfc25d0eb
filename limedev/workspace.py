"""
Workspace facade for limedev.

Ties the configuration, the active mode and the directory layout together
so commands (and scripts importing limedev) work with one object.

Example:
    ws = Workspace.open()
    for repo in ws.resolved():
        print(repo.name, repo.branch)
    env = ws.environment()
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import get_build_dir, load_config
from .domain.config import ConfigModel
from .domain.repository import ResolvedRepository
from .services.environment import EnvironmentPaths, project_environment
from .services.override_resolver import OverrideResolver, mode_from_env
from .services.requirements import RequirementCheck, check_system_requirements


@dataclass
class Workspace:
    """A loaded configuration plus the mode and layout it is used with."""
    config: ConfigModel
    mode: str
    paths: EnvironmentPaths

    @classmethod
    def open(
        cls,
        build_dir: Optional[Union[str, Path]] = None,
        config_path: Optional[Union[str, Path]] = None,
        mode: Optional[str] = None,
    ) -> "Workspace":
        """
        Load a workspace.

        Raises:
            ConfigParseError: If the configuration cannot be loaded
        """
        root = get_build_dir(build_dir)
        config = load_config(config_path, build_dir=root)
        return cls(
            config=config,
            mode=mode or mode_from_env(),
            paths=EnvironmentPaths.from_build_dir(root),
        )

    @property
    def resolver(self) -> OverrideResolver:
        return OverrideResolver(self.config)

    def resolved(self, names: Optional[List[str]] = None) -> List[ResolvedRepository]:
        return self.resolver.resolve_selected(list(names or []), self.mode)

    def repo_path(self, repo: ResolvedRepository) -> Path:
        return self.paths.repo_path(repo)

    def create_directories(self) -> None:
        """Create the repos, cache and logs directories."""
        for directory in (self.paths.repos_dir, self.paths.cache_dir, self.paths.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def check_requirements(self) -> List[RequirementCheck]:
        return check_system_requirements(self.config, self.paths.build_dir)

    def environment(self) -> Dict[str, str]:
        return project_environment(
            self.resolved(),
            self.config.build_targets(),
            self.config.versions(),
            self.paths,
            self.mode,
            extras=self.config.sections,
        )
