"""
Repository domain objects for limedev.

RepositoryDefinition is what the configuration declares, RepositoryOverride
is a partial replacement for one mode, and ResolvedRepository is the result
of applying one to the other. LocalRepositoryState is an on-disk observation
and is never persisted.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any

DEFAULT_MODE = "default"
RELEASE_MODE = "release"
DEFAULT_REMOTE = "origin"


def directory_name(repo_id: str) -> str:
    """Working directory name for a repository id (``lime_app`` -> ``lime-app``)."""
    return repo_id.replace('_', '-')


def normalize_id(name: str) -> str:
    """Configuration key for a repository id or directory name."""
    return name.replace('-', '_')


@dataclass(frozen=True)
class RepositoryDefinition:
    """A repository as declared in ``[repositories]``."""
    id: str
    url: str
    branch: str
    remote: str = DEFAULT_REMOTE

    @property
    def name(self) -> str:
        return directory_name(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'url': self.url,
            'branch': self.branch,
            'remote': self.remote,
        }


@dataclass(frozen=True)
class RepositoryOverride:
    """Partial definition; None fields keep the base value."""
    id: str
    url: Optional[str] = None
    branch: Optional[str] = None
    remote: Optional[str] = None

    def is_empty(self) -> bool:
        return self.url is None and self.branch is None and self.remote is None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'id': self.id}
        for key in ('url', 'branch', 'remote'):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass(frozen=True)
class ResolvedRepository:
    """The effective {url, branch, remote} triple for one mode."""
    id: str
    url: str
    branch: str
    remote: str
    mode: str = DEFAULT_MODE
    overridden: bool = False

    @property
    def name(self) -> str:
        return directory_name(self.id)

    @property
    def remote_ref(self) -> str:
        return f"refs/remotes/{self.remote}/{self.branch}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'url': self.url,
            'branch': self.branch,
            'remote': self.remote,
            'mode': self.mode,
            'overridden': self.overridden,
        }


@dataclass(frozen=True)
class BuildTarget:
    """A named build target (``default``, ``development``, ``multi``)."""
    name: str
    target: str


@dataclass(frozen=True)
class LocalRepositoryState:
    """What is on disk for one repository, observed at a point in time."""
    path: str
    exists: bool = False
    is_git: bool = False
    branch: Optional[str] = None  # None when HEAD is detached or unborn
    head: Optional[str] = None
    dirty: bool = False
    remotes: Dict[str, str] = field(default_factory=dict)

    @property
    def detached(self) -> bool:
        return self.is_git and self.branch is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'exists': self.exists,
            'is_git': self.is_git,
            'branch': self.branch,
            'head': self.head,
            'dirty': self.dirty,
            'remotes': dict(self.remotes),
        }
