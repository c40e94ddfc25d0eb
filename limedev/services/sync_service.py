"""
Repository synchronization service for limedev.

Makes each working directory under the repos root match its resolved
definition: cloned, pointing at the configured remote, and on (or fast
forwarded to) the configured branch. The configuration is authoritative
for remote URLs; history is never rewritten. A branch that has diverged
from its remote is reported and left alone.
"""

import logging
import os
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

from ..domain.operation import OperationSummary, SyncOutcome, SyncState
from ..domain.repository import LocalRepositoryState, ResolvedRepository
from ..errors import (
    Cancelled,
    CloneFailed,
    Diverged,
    FetchFailed,
    RemoteMismatch,
    RepositoryBusy,
    SyncError,
    UpdateFailed,
)
from ..infra.git_client import CancelToken, GitClient, OperationCancelled
from ..infra.locks import LockUnavailable, repository_lock

logger = logging.getLogger(__name__)

# Release pins such as v24.10.1 are tags; clone them single-branch.
TAG_PIN_RE = re.compile(r'^v[0-9]')

ERROR_STATES = {
    CloneFailed: SyncState.CLONE_FAILED,
    FetchFailed: SyncState.FETCH_FAILED,
    RemoteMismatch: SyncState.REMOTE_MISMATCH,
    UpdateFailed: SyncState.UPDATE_FAILED,
    Diverged: SyncState.DIVERGED,
    RepositoryBusy: SyncState.BUSY,
    Cancelled: SyncState.CANCELLED,
}


def looks_like_tag(ref: str) -> bool:
    return bool(TAG_PIN_RE.match(ref))


@dataclass
class SyncOptions:
    """Options for a synchronization run."""
    parallel: int = 1  # Number of concurrent repositories (1 = sequential)
    timeout: Optional[float] = None  # Seconds per repository before cancelling
    lock_timeout: Optional[float] = 0.0  # 0 = fail at once if locked


class SyncService:
    """
    Service that clones and updates the workspace repositories.

    Example:
        service = SyncService()
        for progress in service.sync_repos(resolved, repos_dir, SyncOptions()):
            print(progress)

        result = service.last_result
        print(f"{result.failed} repositories failed")
    """

    def __init__(self, git_client: Optional[GitClient] = None):
        self.git = git_client or GitClient()
        self.last_result: Optional[OperationSummary] = None

    # -- observation ------------------------------------------------------

    def local_state(self, path: Path) -> LocalRepositoryState:
        """Observe a working directory without changing it."""
        path = Path(path)
        if not path.exists():
            return LocalRepositoryState(path=str(path))
        if not self.git.is_git_repo(path):
            return LocalRepositoryState(path=str(path), exists=True)
        return LocalRepositoryState(
            path=str(path),
            exists=True,
            is_git=True,
            branch=self.git.current_branch(path),
            head=self.git.head_commit(path),
            dirty=self.git.has_uncommitted_changes(path),
            remotes=self.git.remotes(path),
        )

    def status(self, resolved: ResolvedRepository, path: Path) -> Dict[str, Any]:
        """
        Report how a working directory compares to its resolved definition.

        Uses only refs already fetched; nothing is fetched or changed.
        """
        state = self.local_state(path)
        result: Dict[str, Any] = {
            'id': resolved.id,
            'name': resolved.name,
            'mode': resolved.mode,
            'branch': resolved.branch,
            'remote': resolved.remote,
            'url': resolved.url,
            **state.to_dict(),
            'current_branch': state.branch,
        }
        result['branch'] = resolved.branch

        if not state.exists:
            result['sync'] = 'absent'
            return result
        if not state.is_git:
            result['sync'] = 'not_a_repository'
            return result

        actual_url = state.remotes.get(resolved.remote)
        result['remote_matches'] = actual_url == resolved.url
        if actual_url != resolved.url:
            result['remote_url'] = actual_url

        local = f"refs/heads/{resolved.branch}"
        if self.git.rev_parse(path, resolved.remote_ref) is None:
            result['sync'] = 'unknown'
            return result
        if self.git.rev_parse(path, local) is None:
            result['sync'] = 'missing_branch'
            return result

        counts = self.git.ahead_behind(path, local, resolved.remote_ref)
        if counts is None:
            result['sync'] = 'unknown'
            return result
        ahead, behind = counts
        result['ahead'] = ahead
        result['behind'] = behind
        if ahead and behind:
            result['sync'] = 'diverged'
        elif behind:
            result['sync'] = 'behind'
        elif ahead:
            result['sync'] = 'ahead'
        else:
            result['sync'] = 'up_to_date'
        return result

    # -- ensure -----------------------------------------------------------

    def ensure(
        self,
        resolved: ResolvedRepository,
        local_path: Path,
        cancel: Optional[CancelToken] = None,
        lock_timeout: Optional[float] = 0.0,
    ) -> SyncOutcome:
        """
        Bring one repository in line with its resolved definition.

        Never raises for per-repository problems; they are returned as a
        failed SyncOutcome so the caller can carry on with other repositories.

        Args:
            resolved: Effective definition for the active mode
            local_path: Working directory
            cancel: Optional token that aborts a running clone or fetch
            lock_timeout: Seconds to wait for the repository lock

        Returns:
            SyncOutcome describing what happened
        """
        path = Path(local_path)
        existed = os.path.exists(path)
        try:
            try:
                with repository_lock(path, timeout=lock_timeout):
                    return self._ensure_locked(resolved, path, cancel)
            except LockUnavailable as e:
                raise RepositoryBusy(resolved.id, str(e))
            except OperationCancelled as e:
                raise Cancelled(resolved.id, str(e))
        except SyncError as e:
            logger.error(str(e))
            extra = {}
            if isinstance(e, Diverged):
                extra = {'local_ref': e.local_ref, 'remote_ref': e.remote_ref}
            return SyncOutcome.for_state(
                resolved, path, ERROR_STATES.get(type(e), SyncState.UPDATE_FAILED),
                error=e.cause, **extra,
            )
        except OSError as e:
            failed_state = SyncState.UPDATE_FAILED if existed else SyncState.CLONE_FAILED
            logger.error(f"{resolved.id}: {failed_state.value}: {e}")
            return SyncOutcome.for_state(resolved, path, failed_state, error=str(e))

    def _ensure_locked(
        self,
        resolved: ResolvedRepository,
        path: Path,
        cancel: Optional[CancelToken],
    ) -> SyncOutcome:
        if cancel is not None and cancel.cancelled:
            raise Cancelled(resolved.id, "cancelled before start")

        state = self.local_state(path)

        if not state.exists or (not state.is_git and _is_empty_dir(path)):
            return self._clone(resolved, path, cancel)
        if not state.is_git:
            raise CloneFailed(resolved.id, f"{path} exists but is not a git repository")

        repointed = self._ensure_remote(resolved, path, state)
        if not looks_like_tag(resolved.branch):
            self._ensure_branch_fetched(resolved, path)

        fetch = self.git.fetch(path, resolved.remote, tags=looks_like_tag(resolved.branch), cancel=cancel)
        if not fetch.ok:
            raise FetchFailed(resolved.id, fetch.error)

        if self.git.rev_parse(path, resolved.remote_ref) is not None:
            return self._update_branch(resolved, path, state, repointed)
        if self.git.rev_parse(path, f"refs/tags/{resolved.branch}") is not None:
            return self._update_tag_pin(resolved, path, state, repointed)
        raise FetchFailed(
            resolved.id,
            f"'{resolved.branch}' not found on remote '{resolved.remote}'",
        )

    def _clone(self, resolved: ResolvedRepository, path: Path,
               cancel: Optional[CancelToken]) -> SyncOutcome:
        logger.info(f"Cloning {resolved.name} from {resolved.url} ({resolved.branch})")
        result = self.git.clone(
            resolved.url,
            path,
            branch=resolved.branch,
            remote=resolved.remote,
            single_branch=looks_like_tag(resolved.branch),
            cancel=cancel,
        )
        if not result.ok:
            raise CloneFailed(resolved.id, result.error)
        return SyncOutcome.for_state(
            resolved, path, SyncState.CLONED,
            local_ref=self.git.head_commit(path),
            message=f"cloned {resolved.url} at {resolved.branch}",
        )

    def _ensure_remote(self, resolved: ResolvedRepository, path: Path,
                       state: LocalRepositoryState) -> bool:
        """Make the configured remote point at the configured URL. Returns True if changed."""
        current = state.remotes.get(resolved.remote)
        if current == resolved.url:
            return False

        if current is None:
            logger.info(f"{resolved.name}: adding remote '{resolved.remote}' -> {resolved.url}")
            result = self.git.add_remote(path, resolved.remote, resolved.url)
        else:
            logger.warning(
                f"{resolved.name}: remote '{resolved.remote}' points at {current}, "
                f"repointing to {resolved.url}"
            )
            result = self.git.set_remote_url(path, resolved.remote, resolved.url)

        if not result.ok:
            raise RemoteMismatch(
                resolved.id,
                f"remote '{resolved.remote}' is {current or 'missing'}, expected {resolved.url}: {result.error}",
            )
        return True

    def _ensure_branch_fetched(self, resolved: ResolvedRepository, path: Path) -> None:
        """Make the remote's fetch refspecs cover the pinned branch."""
        # A single-branch clone of a tag only fetches that tag.
        covering = (
            f"refs/heads/*:refs/remotes/{resolved.remote}/*",
            f"refs/heads/{resolved.branch}:{resolved.remote_ref}",
        )
        if any(refspec in covering for refspec in self.git.fetch_refspecs(path, resolved.remote)):
            return
        logger.info(f"{resolved.name}: fetching {resolved.branch} from '{resolved.remote}' from now on")
        result = self.git.track_remote_branch(path, resolved.remote, resolved.branch)
        if not result.ok:
            raise FetchFailed(resolved.id, result.error)

    def _update_branch(self, resolved: ResolvedRepository, path: Path,
                       state: LocalRepositoryState, repointed: bool) -> SyncOutcome:
        branch = resolved.branch
        local_ref = f"refs/heads/{branch}"
        remote_sha = self.git.rev_parse(path, resolved.remote_ref)
        local_sha = self.git.rev_parse(path, local_ref)

        def outcome(state_: SyncState, **kwargs) -> SyncOutcome:
            return SyncOutcome.for_state(
                resolved, path, state_,
                remote_ref=remote_sha, remote_repointed=repointed, **kwargs,
            )

        if local_sha is None:
            result = self.git.create_tracking_branch(path, branch, resolved.remote)
            if not result.ok:
                raise UpdateFailed(resolved.id, result.error)
            message = f"created {branch} tracking {resolved.remote}/{branch}"
            if not self.git.has_uncommitted_changes(path, include_untracked=False):
                checkout = self.git.checkout(path, branch)
                if checkout.ok:
                    message += " and checked it out"
                else:
                    logger.warning(f"{resolved.name}: could not check out {branch}: {checkout.error}")
            logger.info(f"{resolved.name}: {message}")
            return outcome(SyncState.BRANCH_CREATED, local_ref=remote_sha, message=message)

        if local_sha == remote_sha:
            return outcome(SyncState.UP_TO_DATE, local_ref=local_sha)

        if self.git.is_ancestor(path, local_sha, remote_sha):
            if state.branch == branch:
                if self.git.has_uncommitted_changes(path, include_untracked=False):
                    return outcome(
                        SyncState.SKIPPED, local_ref=local_sha,
                        message=f"{branch} is behind {resolved.remote}/{branch} but has uncommitted changes",
                    )
                result = self.git.merge_ff_only(path, f"{resolved.remote}/{branch}")
            else:
                result = self.git.update_ref(path, local_ref, remote_sha, local_sha)
            if not result.ok:
                raise UpdateFailed(resolved.id, result.error)
            logger.info(f"{resolved.name}: fast-forwarded {branch} to {remote_sha[:12]}")
            return outcome(SyncState.FAST_FORWARDED, local_ref=remote_sha,
                           message=f"fast-forwarded from {local_sha[:12]}")

        if self.git.is_ancestor(path, remote_sha, local_sha):
            return outcome(SyncState.AHEAD, local_ref=local_sha,
                           message=f"{branch} has commits not on {resolved.remote}/{branch}")

        raise Diverged(resolved.id, local_sha, remote_sha)

    def _update_tag_pin(self, resolved: ResolvedRepository, path: Path,
                        state: LocalRepositoryState, repointed: bool) -> SyncOutcome:
        tag = resolved.branch
        tag_sha = self.git.rev_parse(path, f"refs/tags/{tag}")

        def outcome(state_: SyncState, **kwargs) -> SyncOutcome:
            return SyncOutcome.for_state(
                resolved, path, state_,
                remote_ref=tag_sha, remote_repointed=repointed, **kwargs,
            )

        if state.head == tag_sha:
            return outcome(SyncState.UP_TO_DATE, local_ref=state.head)

        if state.detached and not self.git.has_uncommitted_changes(path, include_untracked=False):
            result = self.git.checkout(path, tag, detach=True)
            if not result.ok:
                raise UpdateFailed(resolved.id, result.error)
            logger.info(f"{resolved.name}: checked out tag {tag}")
            return outcome(SyncState.CHECKED_OUT, local_ref=tag_sha, message=f"checked out {tag}")

        where = f"branch {state.branch}" if state.branch else "a modified detached HEAD"
        return outcome(SyncState.SKIPPED, local_ref=state.head,
                       message=f"pinned to tag {tag} but working tree is on {where}")

    # -- bulk -------------------------------------------------------------

    def sync_repos(
        self,
        repos: List[ResolvedRepository],
        repos_dir: Path,
        options: Optional[SyncOptions] = None,
    ) -> Generator[str, None, OperationSummary]:
        """
        Ensure every repository, collecting outcomes instead of stopping at
        the first failure.

        Args:
            repos: Resolved repositories
            repos_dir: Directory holding one working directory per repository
            options: Run options

        Yields:
            Progress messages

        Returns:
            OperationSummary with one SyncOutcome per repository
        """
        options = options or SyncOptions()
        result = OperationSummary(operation="sync")
        self.last_result = result
        repos_dir = Path(repos_dir)

        if not repos:
            yield "No repositories to synchronize"
            return result

        def ensure_one(repo: ResolvedRepository) -> SyncOutcome:
            token = CancelToken(timeout=options.timeout) if options.timeout else None
            return self.ensure(repo, repos_dir / repo.name, cancel=token,
                               lock_timeout=options.lock_timeout)

        if options.parallel > 1:
            yield f"Synchronizing {len(repos)} repositories (parallel={options.parallel})..."
            with ThreadPoolExecutor(max_workers=options.parallel) as executor:
                futures = {executor.submit(ensure_one, repo): repo for repo in repos}
                for future in as_completed(futures):
                    outcome = future.result()
                    result.add_detail(outcome)
                    yield _describe(outcome)
        else:
            for repo in repos:
                yield f"Synchronizing {repo.name}..."
                outcome = ensure_one(repo)
                result.add_detail(outcome)
                yield _describe(outcome)

        return result


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


def _describe(outcome: SyncOutcome) -> str:
    if outcome.failed:
        return f"  ✗ {outcome.repo_name}: {outcome.state.value}: {outcome.error}"
    text = f"  ✓ {outcome.repo_name}: {outcome.state.value}"
    if outcome.message:
        text += f" ({outcome.message})"
    return text
