"""
Override resolution for limedev.

Resolution is a pure function of (configuration, repository id, mode). The
mode is always passed in explicitly; nothing here reads process state, so
the same inputs always produce the same ResolvedRepository.
"""

import os
from typing import List, Mapping, Optional

from ..domain.config import ConfigModel
from ..domain.repository import (
    ResolvedRepository,
    DEFAULT_MODE,
    RELEASE_MODE,
)
from ..errors import UnknownRepository

RELEASE_TOKEN = "true"


def mode_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Determine the active mode from the environment.

    LIME_MODE names a mode directly. Otherwise LIME_RELEASE_MODE set to
    exactly ``true`` selects ``release``; anything else, including absence,
    is the default mode.
    """
    environ = os.environ if environ is None else environ
    named = environ.get('LIME_MODE', '').strip()
    if named:
        return named
    if environ.get('LIME_RELEASE_MODE', '') == RELEASE_TOKEN:
        return RELEASE_MODE
    return DEFAULT_MODE


def is_release_mode(mode: str) -> bool:
    return mode == RELEASE_MODE


class OverrideResolver:
    """
    Computes the effective repository triple for a mode.

    Example:
        resolver = OverrideResolver(config)
        repo = resolver.resolve("lime_app", "release")
        print(repo.url, repo.branch, repo.remote)
    """

    def __init__(self, config: ConfigModel):
        self.config = config

    def resolve(self, repo_id: str, mode: str = DEFAULT_MODE) -> ResolvedRepository:
        """
        Resolve one repository.

        Fields set in the mode's override replace the base values; fields the
        override leaves empty keep the base values.

        Raises:
            UnknownRepository: If the id is not declared in [repositories]
        """
        base = self.config.get_repository(repo_id)
        if base is None:
            raise UnknownRepository(repo_id)

        url, branch, remote = base.url, base.branch, base.remote
        overridden = False

        if mode != DEFAULT_MODE:
            override = self.config.get_override(base.id, mode)
            if override is not None and not override.is_empty():
                url = override.url if override.url is not None else url
                branch = override.branch if override.branch is not None else branch
                remote = override.remote if override.remote is not None else remote
                overridden = True

        return ResolvedRepository(
            id=base.id,
            url=url,
            branch=branch,
            remote=remote,
            mode=mode,
            overridden=overridden,
        )

    def resolve_all(self, mode: str = DEFAULT_MODE) -> List[ResolvedRepository]:
        """Resolve every declared repository, in declaration order."""
        return [self.resolve(repo_id, mode) for repo_id in self.config.repository_ids()]

    def resolve_selected(self, names: List[str], mode: str = DEFAULT_MODE) -> List[ResolvedRepository]:
        """Resolve the given ids (or directory names); all of them when empty."""
        if not names:
            return self.resolve_all(mode)
        return [self.resolve(name, mode) for name in names]
