"""
limedev - LibreMesh development workspace manager.

limedev keeps a set of independent git repositories (lime-app,
lime-packages, librerouteros, kconfig-utils, openwrt) pinned to a single
versions.conf, exports the environment the build tooling reads, and
prepares repositories for upstream contribution.

Quick Start:
    import limedev

    # Load configs/versions.conf under the build directory
    ws = limedev.Workspace.open(build_dir="~/lime-dev", mode="release")

    # Effective settings for the active mode
    for repo in ws.resolved():
        print(repo.name, repo.remote, repo.branch)

    # Clone or fast-forward everything
    service = limedev.SyncService()
    for message in service.sync_repos(ws.resolved(), ws.paths.repos_dir):
        print(message)
    print(service.last_result.failed)

Domain Objects:
    RepositoryDefinition - Base entry from [repositories]
    ResolvedRepository - Effective {url, branch, remote} for a mode
    SyncOutcome / ProvisionOutcome - Per-repository results
"""

__version__ = "0.3.0"

# High-level API
from .workspace import Workspace

# Domain objects
from .domain import (
    ConfigModel,
    RepositoryDefinition,
    RepositoryOverride,
    ResolvedRepository,
    SyncOutcome,
    ProvisionOutcome,
    OperationSummary,
)

# Services (for advanced use)
from .services import (
    OverrideResolver,
    SyncService,
    SyncOptions,
    UpstreamService,
    project_environment,
)

# Configuration
from .config_store import parse_config
from .config import load_config

__all__ = [
    # Version
    "__version__",
    # High-level API
    "Workspace",
    # Domain objects
    "ConfigModel",
    "RepositoryDefinition",
    "RepositoryOverride",
    "ResolvedRepository",
    "SyncOutcome",
    "ProvisionOutcome",
    "OperationSummary",
    # Services
    "OverrideResolver",
    "SyncService",
    "SyncOptions",
    "UpstreamService",
    "project_environment",
    # Configuration
    "parse_config",
    "load_config",
]
