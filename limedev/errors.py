"""
Exception hierarchy for limedev.

Configuration errors are fatal and abort a run before any repository is
touched. Everything under SyncError and ProvisionError is scoped to a
single repository: services catch these, record them on the repository's
outcome and carry on with the next repository.
"""

from typing import Optional


class LimeDevError(Exception):
    """Base class for all limedev errors."""


class ConfigParseError(LimeDevError):
    """The configuration file could not be parsed."""

    def __init__(self, message: str, source: str = "<config>",
                 line: Optional[int] = None, section: Optional[str] = None):
        self.source = source
        self.line = line
        self.section = section
        location = source
        if line is not None:
            location += f":{line}"
        if section is not None:
            location += f" [{section}]"
        super().__init__(f"{location}: {message}")


class MalformedRepositoryEntry(ConfigParseError):
    """A repository cell does not have the url|branch|remote shape."""

    def __init__(self, key: str, value: str, source: str = "<config>",
                 line: Optional[int] = None, section: Optional[str] = None,
                 reason: str = "expected url|branch|remote"):
        self.key = key
        self.value = value
        super().__init__(
            f"malformed repository entry '{key}={value}': {reason}",
            source=source, line=line, section=section,
        )


class UnknownRepository(LimeDevError):
    """A repository id was requested that the configuration does not declare."""

    def __init__(self, repo_id: str):
        self.repo_id = repo_id
        super().__init__(f"Unknown repository: {repo_id}")


class SyncError(LimeDevError):
    """Base class for per-repository synchronization failures."""

    kind = "sync_failed"

    def __init__(self, repo_id: str, cause: str):
        self.repo_id = repo_id
        self.cause = cause
        super().__init__(f"{repo_id}: {cause}")


class CloneFailed(SyncError):
    kind = "clone_failed"


class FetchFailed(SyncError):
    kind = "fetch_failed"


class RemoteMismatch(SyncError):
    kind = "remote_mismatch"


class UpdateFailed(SyncError):
    kind = "update_failed"


class RepositoryBusy(SyncError):
    kind = "busy"


class Cancelled(SyncError):
    kind = "cancelled"


class Diverged(SyncError):
    """Local and remote branch tips share history but neither contains the other."""

    kind = "diverged"

    def __init__(self, repo_id: str, local_ref: str, remote_ref: str):
        self.local_ref = local_ref
        self.remote_ref = remote_ref
        super().__init__(
            repo_id,
            f"local {local_ref[:12]} and remote {remote_ref[:12]} have diverged",
        )


class ProvisionError(LimeDevError):
    """Base class for per-repository upstream provisioning failures."""

    kind = "provision_failed"

    def __init__(self, repo_id: str, cause: str):
        self.repo_id = repo_id
        self.cause = cause
        super().__init__(f"{repo_id}: {cause}")


class HookInstallFailed(ProvisionError):
    kind = "hook_install_failed"


class AliasInstallFailed(ProvisionError):
    kind = "alias_install_failed"


class InvalidBranchName(ProvisionError):
    kind = "invalid_branch"
