"""
Domain layer for limedev.

Contains pure domain objects with no I/O or side effects:
- RepositoryDefinition / RepositoryOverride / ResolvedRepository
- ConfigModel: the parsed configuration file
- LocalRepositoryState: an observation of a working directory
- SyncOutcome / ProvisionOutcome / OperationSummary: per-repository results

These objects are immutable where possible and provide
serialization methods for JSONL output.
"""

from .repository import (
    RepositoryDefinition,
    RepositoryOverride,
    ResolvedRepository,
    BuildTarget,
    LocalRepositoryState,
    DEFAULT_MODE,
    RELEASE_MODE,
    DEFAULT_REMOTE,
    directory_name,
    normalize_id,
)
from .config import ConfigModel
from .operation import (
    OperationStatus,
    OperationDetail,
    OperationSummary,
    SyncState,
    SyncOutcome,
    ProvisionOutcome,
)

__all__ = [
    'RepositoryDefinition',
    'RepositoryOverride',
    'ResolvedRepository',
    'BuildTarget',
    'LocalRepositoryState',
    'DEFAULT_MODE',
    'RELEASE_MODE',
    'DEFAULT_REMOTE',
    'directory_name',
    'normalize_id',
    'ConfigModel',
    'OperationStatus',
    'OperationDetail',
    'OperationSummary',
    'SyncState',
    'SyncOutcome',
    'ProvisionOutcome',
]
