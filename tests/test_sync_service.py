"""
Tests for repository synchronization against real git repositories.
"""

import time
from pathlib import Path

import pytest

from limedev.domain.operation import OperationStatus, SyncState
from limedev.domain.repository import ResolvedRepository
from limedev.infra.git_client import CancelToken, GitClient
from limedev.infra.locks import repository_lock
from limedev.services.sync_service import SyncOptions, SyncService, looks_like_tag

from conftest import requires_git, git, commit_in


def resolved_for(url, branch="master", remote="origin", repo_id="lime_app"):
    return ResolvedRepository(id=repo_id, url=url, branch=branch, remote=remote)


class TestLooksLikeTag:
    """Tests for tag pin detection."""

    @pytest.mark.parametrize("ref", ["v24.10.1", "v1", "v2024.1"])
    def test_tags(self, ref):
        assert looks_like_tag(ref)

    @pytest.mark.parametrize("ref", ["master", "develop", "version", "openwrt-24.10"])
    def test_branches(self, ref):
        assert not looks_like_tag(ref)


@requires_git
class TestEnsure:
    """Tests for SyncService.ensure on one repository."""

    @pytest.fixture
    def service(self):
        return SyncService()

    @pytest.fixture
    def target(self, tmp_path):
        return tmp_path / "repos" / "lime-app"

    def test_clone_when_absent(self, service, remote_repo, target):
        outcome = service.ensure(resolved_for(remote_repo.url), target)

        assert outcome.state == SyncState.CLONED
        assert outcome.status == OperationStatus.SUCCESS
        assert git(target, "rev-parse", "HEAD") == remote_repo.head()
        assert git(target, "symbolic-ref", "--short", "HEAD") == "master"
        assert git(target, "remote", "get-url", "origin") == remote_repo.url

    def test_clone_with_custom_remote_name(self, service, remote_repo, target):
        service.ensure(resolved_for(remote_repo.url, remote="upstream"), target)
        assert git(target, "remote") == "upstream"

    def test_clone_into_empty_directory(self, service, remote_repo, target):
        target.mkdir(parents=True)
        outcome = service.ensure(resolved_for(remote_repo.url), target)
        assert outcome.state == SyncState.CLONED

    def test_ensure_is_idempotent(self, service, remote_repo, target):
        """A second ensure with nothing new only fetches."""
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        (target / "notes.txt").write_text("scratch\n")
        head = git(target, "rev-parse", "HEAD")
        branches = git(target, "for-each-ref", "refs/heads")
        porcelain = git(target, "status", "--porcelain")
        assert not (target / ".git" / "FETCH_HEAD").exists()

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.UP_TO_DATE
        assert outcome.status == OperationStatus.UNCHANGED
        assert git(target, "rev-parse", "HEAD") == head
        assert git(target, "for-each-ref", "refs/heads") == branches
        assert git(target, "status", "--porcelain") == porcelain
        assert (target / ".git" / "FETCH_HEAD").exists()

    def test_fast_forward(self, service, remote_repo, target):
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        new_head = remote_repo.commit("upstream work", push=True)

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.FAST_FORWARDED
        assert outcome.status == OperationStatus.SUCCESS
        assert git(target, "rev-parse", "HEAD") == new_head

    def test_fast_forward_branch_not_checked_out(self, service, remote_repo, target):
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        git(target, "checkout", "-q", "-b", "feature")
        new_head = remote_repo.commit("upstream work", push=True)

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.FAST_FORWARDED
        assert git(target, "rev-parse", "refs/heads/master") == new_head
        assert git(target, "symbolic-ref", "--short", "HEAD") == "feature"

    def test_local_commits_ahead(self, service, remote_repo, target):
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        local = commit_in(target, "local only")

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.AHEAD
        assert outcome.status == OperationStatus.UNCHANGED
        assert git(target, "rev-parse", "HEAD") == local

    def test_divergence_leaves_history_alone(self, service, remote_repo, target):
        """Diverged branches are reported, not merged, rebased or reset."""
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        local = commit_in(target, "local work")
        remote = remote_repo.commit("upstream work", push=True)

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.DIVERGED
        assert outcome.status == OperationStatus.FAILED
        assert outcome.local_ref == local
        assert outcome.remote_ref == remote
        assert git(target, "rev-parse", "HEAD") == local
        assert git(target, "log", "--format=%s", "-1") == "local work"

    def test_dirty_branch_behind_is_skipped(self, service, remote_repo, target):
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        old_head = git(target, "rev-parse", "HEAD")
        (target / "README").write_text("edited\n")
        remote_repo.commit("upstream work", push=True)

        outcome = service.ensure(resolved, target)
        assert outcome.state == SyncState.SKIPPED
        assert outcome.status == OperationStatus.SKIPPED
        assert git(target, "rev-parse", "HEAD") == old_head
        assert (target / "README").read_text() == "edited\n"

    def test_missing_local_branch_created(self, service, remote_repo, target):
        service.ensure(resolved_for(remote_repo.url), target)
        git(remote_repo.source, "checkout", "-q", "-b", "develop")
        remote_repo.commit("develop work")
        remote_repo.push("develop")

        outcome = service.ensure(resolved_for(remote_repo.url, branch="develop"), target)
        assert outcome.state == SyncState.BRANCH_CREATED
        assert git(target, "symbolic-ref", "--short", "HEAD") == "develop"

    def test_remote_repointed(self, service, remote_repo, target, tmp_path):
        """A changed URL in the configuration repoints the existing remote."""
        service.ensure(resolved_for(remote_repo.url), target)
        mirror = tmp_path / "mirror.git"
        git(tmp_path, "clone", "-q", "--bare", remote_repo.url, str(mirror))

        outcome = service.ensure(resolved_for(str(mirror)), target)
        assert outcome.state == SyncState.UP_TO_DATE
        assert outcome.remote_repointed is True
        assert outcome.status == OperationStatus.SUCCESS
        assert git(target, "remote", "get-url", "origin") == str(mirror)

    def test_missing_remote_added(self, service, remote_repo, target):
        service.ensure(resolved_for(remote_repo.url), target)
        outcome = service.ensure(resolved_for(remote_repo.url, remote="lime"), target)
        assert outcome.remote_repointed is True
        assert git(target, "remote", "get-url", "lime") == remote_repo.url

    def test_branch_missing_on_remote(self, service, remote_repo, target):
        service.ensure(resolved_for(remote_repo.url), target)
        outcome = service.ensure(resolved_for(remote_repo.url, branch="no-such-branch"), target)
        assert outcome.state == SyncState.FETCH_FAILED
        assert "not found" in outcome.error

    def test_clone_failure(self, service, tmp_path, target):
        outcome = service.ensure(resolved_for(str(tmp_path / "does-not-exist.git")), target)
        assert outcome.state == SyncState.CLONE_FAILED
        assert outcome.status == OperationStatus.FAILED
        assert outcome.error

    def test_non_repository_directory(self, service, remote_repo, target):
        target.mkdir(parents=True)
        (target / "notes.txt").write_text("keep me\n")
        outcome = service.ensure(resolved_for(remote_repo.url), target)
        assert outcome.state == SyncState.CLONE_FAILED
        assert (target / "notes.txt").read_text() == "keep me\n"

    def test_busy_repository(self, service, remote_repo, target):
        with repository_lock(target):
            outcome = service.ensure(resolved_for(remote_repo.url), target)
        assert outcome.state == SyncState.BUSY
        assert not target.exists()

    def test_cancelled_before_start(self, service, remote_repo, target):
        token = CancelToken()
        token.cancel()
        outcome = service.ensure(resolved_for(remote_repo.url), target, cancel=token)
        assert outcome.state == SyncState.CANCELLED
        assert outcome.status == OperationStatus.FAILED

    def test_tag_pin_clone(self, service, remote_repo, target):
        remote_repo.tag("v1.0")
        remote_repo.commit("after tag", push=True)

        outcome = service.ensure(resolved_for(remote_repo.url, branch="v1.0"), target)
        assert outcome.state == SyncState.CLONED
        assert git(target, "rev-parse", "HEAD") == git(remote_repo.source, "rev-parse", "v1.0")

        again = service.ensure(resolved_for(remote_repo.url, branch="v1.0"), target)
        assert again.state == SyncState.UP_TO_DATE

    def test_tag_pin_clone_switches_to_branch_pin(self, service, remote_repo, target):
        """A checkout cloned at a release tag follows a branch pin in another mode."""
        remote_repo.tag("v1.0")
        head = remote_repo.commit("after tag", push=True)
        service.ensure(resolved_for(remote_repo.url, branch="v1.0"), target)

        outcome = service.ensure(resolved_for(remote_repo.url), target)
        assert outcome.state == SyncState.BRANCH_CREATED, outcome.error
        assert git(target, "symbolic-ref", "--short", "HEAD") == "master"
        assert git(target, "rev-parse", "HEAD") == head
        assert "+refs/heads/master:refs/remotes/origin/master" in git(
            target, "config", "--get-all", "remote.origin.fetch"
        )

        again = service.ensure(resolved_for(remote_repo.url), target)
        assert again.state == SyncState.UP_TO_DATE

    def test_unwritable_parent_reported_as_clone_failure(self, service, remote_repo, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory\n")
        outcome = service.ensure(resolved_for(remote_repo.url), blocker / "lime-app")
        assert outcome.state == SyncState.CLONE_FAILED
        assert outcome.status == OperationStatus.FAILED
        assert outcome.error

    def test_lock_directory_failure_on_existing_clone(self, service, remote_repo, target):
        service.ensure(resolved_for(remote_repo.url), target)
        locks = target.parent / ".locks"
        for lock_file in locks.iterdir():
            lock_file.unlink()
        locks.rmdir()
        locks.write_text("")

        outcome = service.ensure(resolved_for(remote_repo.url), target)
        assert outcome.state == SyncState.UPDATE_FAILED
        assert outcome.status == OperationStatus.FAILED


class TestCancellation:
    """Tests for cancelling a git command that is already running."""

    def test_deadline_cancels_running_clone(self, tmp_path):
        slow_git = tmp_path / "slow-git"
        slow_git.write_text("#!/bin/sh\nexec sleep 30\n")
        slow_git.chmod(0o755)
        service = SyncService(GitClient(git=str(slow_git)))
        target = tmp_path / "repos" / "lime-app"

        started = time.monotonic()
        outcome = service.ensure(resolved_for("https://example.org/lime-app.git"), target,
                                 cancel=CancelToken(timeout=0.3))

        assert outcome.state == SyncState.CANCELLED
        assert outcome.status == OperationStatus.FAILED
        assert time.monotonic() - started < 10
        assert not target.exists()


@requires_git
class TestStatus:
    """Tests for the read-only status report."""

    def test_absent(self, tmp_path, remote_repo):
        report = SyncService().status(resolved_for(remote_repo.url), tmp_path / "lime-app")
        assert report['sync'] == 'absent'
        assert report['exists'] is False

    def test_up_to_date_and_behind(self, tmp_path, remote_repo):
        service = SyncService()
        target = tmp_path / "lime-app"
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        assert service.status(resolved, target)['sync'] == 'up_to_date'

        remote_repo.commit("upstream work", push=True)
        git(target, "fetch", "-q", "origin")
        report = service.status(resolved, target)
        assert report['sync'] == 'behind'
        assert report['behind'] == 1
        assert report['remote_matches'] is True

    def test_status_does_not_fetch(self, tmp_path, remote_repo):
        service = SyncService()
        target = tmp_path / "lime-app"
        resolved = resolved_for(remote_repo.url)
        service.ensure(resolved, target)
        remote_repo.commit("upstream work", push=True)
        assert service.status(resolved, target)['sync'] == 'up_to_date'


@requires_git
class TestSyncRepos:
    """Tests for bulk synchronization."""

    def test_failure_does_not_stop_others(self, tmp_path, remote_repo):
        service = SyncService()
        repos_dir = tmp_path / "repos"
        repos = [
            resolved_for(str(tmp_path / "missing.git"), repo_id="broken"),
            resolved_for(remote_repo.url, repo_id="lime_app"),
        ]

        messages = list(service.sync_repos(repos, repos_dir))
        result = service.last_result

        assert result.total == 2
        assert result.failed == 1
        assert result.successful == 1
        assert list(result.failures()) == ["broken"]
        assert (repos_dir / "lime-app" / ".git").is_dir()
        assert any("✗ broken" in m for m in messages)

    @pytest.mark.parametrize("parallel", [1, 2])
    def test_disk_errors_do_not_abort_run(self, tmp_path, remote_repo, parallel):
        repos_dir = tmp_path / "repos"
        repos_dir.mkdir()
        (repos_dir / ".locks").write_text("")
        repos = [resolved_for(remote_repo.url, repo_id=name) for name in ("lime_app", "lime_packages")]

        service = SyncService()
        list(service.sync_repos(repos, repos_dir, SyncOptions(parallel=parallel)))
        result = service.last_result

        assert result.total == 2
        assert result.failed == 2
        assert {d.state for d in result.details} == {SyncState.CLONE_FAILED}

    def test_parallel(self, tmp_path, remote_repo):
        service = SyncService()
        repos = [resolved_for(remote_repo.url, repo_id=f"repo_{i}") for i in range(3)]
        list(service.sync_repos(repos, tmp_path / "repos", SyncOptions(parallel=3)))
        assert service.last_result.successful == 3
        assert sorted(d.repo_name for d in service.last_result.details) == ["repo-0", "repo-1", "repo-2"]

    def test_empty(self, tmp_path):
        service = SyncService()
        messages = list(service.sync_repos([], tmp_path))
        assert messages == ["No repositories to synchronize"]
        assert service.last_result.total == 0
