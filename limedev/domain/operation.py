"""
Operation result domain objects for limedev.

Provides standardized result types for the setup and provisioning commands
that modify repositories or generate files.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional


class OperationStatus(Enum):
    """Status of an individual operation."""
    SUCCESS = "success"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncState(Enum):
    """Where a repository ended up after a synchronization pass."""
    CLONED = "cloned"
    UP_TO_DATE = "up_to_date"
    FAST_FORWARDED = "fast_forwarded"
    BRANCH_CREATED = "branch_created"
    CHECKED_OUT = "checked_out"
    AHEAD = "ahead"
    SKIPPED = "skipped"
    CLONE_FAILED = "clone_failed"
    FETCH_FAILED = "fetch_failed"
    REMOTE_MISMATCH = "remote_mismatch"
    UPDATE_FAILED = "update_failed"
    DIVERGED = "diverged"
    BUSY = "busy"
    CANCELLED = "cancelled"


FAILED_STATES = frozenset({
    SyncState.CLONE_FAILED,
    SyncState.FETCH_FAILED,
    SyncState.REMOTE_MISMATCH,
    SyncState.UPDATE_FAILED,
    SyncState.DIVERGED,
    SyncState.BUSY,
    SyncState.CANCELLED,
})

UNCHANGED_STATES = frozenset({SyncState.UP_TO_DATE, SyncState.AHEAD})


@dataclass
class OperationDetail:
    """
    Details of a single operation on one repository.

    Used to track what happened to each repo during bulk operations.
    """
    repo_path: str
    repo_name: str
    status: OperationStatus
    action: str  # e.g., "cloned", "aliases", "hook"
    message: Optional[str] = None
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.status == OperationStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            'path': self.repo_path,
            'name': self.repo_name,
            'status': self.status.value,
            'action': self.action,
        }
        if self.message:
            result['message'] = self.message
        if self.error:
            result['error'] = self.error
        if self.metadata:
            result.update(self.metadata)
        return result


@dataclass
class SyncOutcome(OperationDetail):
    """Result of ensuring one repository matches its resolved definition."""
    state: SyncState = SyncState.UP_TO_DATE
    url: Optional[str] = None
    branch: Optional[str] = None
    remote: Optional[str] = None
    local_ref: Optional[str] = None
    remote_ref: Optional[str] = None
    remote_repointed: bool = False

    @classmethod
    def for_state(cls, resolved, path: str, state: SyncState, **kwargs) -> "SyncOutcome":
        if state in FAILED_STATES:
            status = OperationStatus.FAILED
        elif state in UNCHANGED_STATES and not kwargs.get('remote_repointed'):
            status = OperationStatus.UNCHANGED
        elif state == SyncState.SKIPPED:
            status = OperationStatus.SKIPPED
        else:
            status = OperationStatus.SUCCESS
        return cls(
            repo_path=str(path),
            repo_name=resolved.name,
            status=status,
            action=state.value,
            state=state,
            url=resolved.url,
            branch=resolved.branch,
            remote=resolved.remote,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['state'] = self.state.value
        result['url'] = self.url
        result['branch'] = self.branch
        result['remote'] = self.remote
        if self.local_ref:
            result['local_ref'] = self.local_ref
        if self.remote_ref:
            result['remote_ref'] = self.remote_ref
        if self.remote_repointed:
            result['remote_repointed'] = True
        return result


@dataclass
class ProvisionOutcome(OperationDetail):
    """Result of one upstream provisioning step on one repository."""
    step: str = ""
    file_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['step'] = self.step
        if self.file_path:
            result['file_path'] = self.file_path
        return result


@dataclass
class OperationSummary:
    """
    Summary of a bulk operation across multiple repositories.

    Collects statistics and details from the setup and upstream commands.
    """
    operation: str  # e.g., "sync", "upstream_setup"
    total: int = 0
    successful: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    details: List[OperationDetail] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no failures occurred."""
        return self.failed == 0

    def add_detail(self, detail: OperationDetail) -> None:
        """Add an operation detail and update counts."""
        self.details.append(detail)
        self.total += 1

        if detail.status == OperationStatus.SUCCESS:
            self.successful += 1
        elif detail.status == OperationStatus.UNCHANGED:
            self.unchanged += 1
        elif detail.status == OperationStatus.SKIPPED:
            self.skipped += 1
        elif detail.status == OperationStatus.FAILED:
            self.failed += 1
            if detail.error:
                self.errors.append(f"{detail.repo_name}: {detail.error}")

    def failures(self) -> Dict[str, List[str]]:
        """Failed operations grouped by repository name."""
        grouped: Dict[str, List[str]] = {}
        for detail in self.details:
            if detail.failed:
                grouped.setdefault(detail.repo_name, []).append(
                    f"{detail.action}: {detail.error or 'failed'}"
                )
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'type': 'summary',
            'operation': self.operation,
            'total': self.total,
            'successful': self.successful,
            'unchanged': self.unchanged,
            'skipped': self.skipped,
            'failed': self.failed,
            'errors': self.errors,
        }
