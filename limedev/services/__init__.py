"""
Service layer for limedev.

Contains the logic that orchestrates domain objects and infrastructure:
- OverrideResolver: Effective repository definition per mode
- project_environment: Exported build environment
- SyncService: Clone/update of the workspace repositories
- UpstreamService: Upstream remote, aliases, exclusions and hooks

Services are the primary API for commands to use.
"""

from .override_resolver import OverrideResolver, mode_from_env, is_release_mode
from .environment import EnvironmentPaths, project_environment, format_shell_exports
from .sync_service import SyncService, SyncOptions
from .upstream_service import UpstreamService, ALIAS_CATALOG, render_aliases

__all__ = [
    'OverrideResolver',
    'mode_from_env',
    'is_release_mode',
    'EnvironmentPaths',
    'project_environment',
    'format_shell_exports',
    'SyncService',
    'SyncOptions',
    'UpstreamService',
    'ALIAS_CATALOG',
    'render_aliases',
]
