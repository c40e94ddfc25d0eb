"""
Tests for the upstream contribution workflow.
"""

import os
import stat
import subprocess

import pytest

from limedev.catalog import ExclusionSection, UpstreamEntry
from limedev.domain.operation import OperationStatus
from limedev.errors import InvalidBranchName
from limedev.services.upstream_service import (
    ALIAS_CATALOG,
    ALL_STEPS,
    STEP_ALIASES,
    STEP_HOOK,
    UpstreamService,
    render_aliases,
    render_exclusions,
    render_hook,
    validate_branch,
)

from conftest import requires_git, git


def make_entry(url="https://github.com/libremesh/lime-app.git", branch="master"):
    return UpstreamEntry(
        name="lime-app",
        url=url,
        branch=branch,
        exclusions=(
            ExclusionSection("Development infrastructure", ("tools/", "*.dev.*")),
            ExclusionSection("Build artifacts", ("node_modules/",)),
        ),
    )


class TestAliasRendering:
    """Tests for the alias catalog."""

    def test_catalog_names(self):
        names = [alias.name for alias in ALIAS_CATALOG]
        assert names == [
            "upstream-status", "upstream-sync", "upstream-merge", "upstream-rebase",
            "feature-start", "feature-sync", "feature-finish", "clean-for-upstream",
            "create-patch", "review-changes", "review-commits",
        ]

    def test_upstream_sync_expansion(self):
        """The sync alias expands literally for a plain branch name."""
        aliases = render_aliases("master")
        assert aliases["upstream-sync"] == (
            "!git checkout master && git pull upstream master && git push origin master"
        )

    def test_shell_positional_survives_template(self):
        """$1 in the shell function is not treated as a template field."""
        assert '"$1"' in render_aliases("main")["feature-start"]

    def test_every_alias_mentions_branch(self):
        for name, command in render_aliases("develop").items():
            assert "develop" in command, name

    @pytest.mark.parametrize("branch", [
        "master; rm -rf /", "main && echo", "$(whoami)", "a..b", "with space",
        "-dash", "", "trailing/", "x.lock", "a//b", "a/.hidden",
    ])
    def test_invalid_branch_rejected(self, branch):
        with pytest.raises(InvalidBranchName):
            validate_branch(branch, "lime-app")

    @pytest.mark.parametrize("branch", ["master", "main", "openwrt-24.10", "release/v1.0"])
    def test_valid_branch_accepted(self, branch):
        assert validate_branch(branch) == branch


class TestFileRendering:
    """Tests for exclusion file and hook content."""

    def test_exclusions_content(self):
        content = render_exclusions(make_entry())
        lines = content.splitlines()
        assert lines[0] == "# lime-app upstream exclusions"
        assert "# Development infrastructure" in lines
        assert "tools/" in lines
        assert "node_modules/" in lines
        assert content.endswith("\n")

    def test_hook_runs_validator_only_for_marker(self, tmp_path):
        validator = tmp_path / "tools" / "upstream" / "validate-commit.sh"
        hook = render_hook("lime-app", validator)
        assert hook.startswith("#!/bin/sh\n")
        assert "grep -qF '[upstream]'" in hook
        assert f"VALIDATOR={validator}" in hook
        assert 'exec "$VALIDATOR" --repo "$REPO_NAME" --staged' in hook
        assert hook.rstrip().endswith("exit 0")

    def test_hook_quotes_repo_name(self, tmp_path):
        hook = render_hook("odd name", tmp_path / "v.sh")
        assert "REPO_NAME='odd name'" in hook


class TestServiceWithoutGit:
    """Tests that need no repository."""

    def test_paths(self, tmp_path):
        service = UpstreamService(tmp_path / "tools", catalog={"lime-app": make_entry()})
        assert service.exclusion_file("lime-app") == tmp_path / "tools" / "upstream" / "configs" / "lime-app.exclude"
        assert service.validator_path == tmp_path / "tools" / "upstream" / "validate-commit.sh"

    def test_entry_by_id(self, tmp_path):
        service = UpstreamService(tmp_path, catalog={"lime-app": make_entry()})
        assert service.entry("lime_app").name == "lime-app"
        assert service.entry("unknown") is None

    def test_describe_aliases(self, tmp_path):
        service = UpstreamService(tmp_path, catalog={"lime-app": make_entry()})
        described = service.describe_aliases("lime-app")
        assert len(described) == len(ALIAS_CATALOG)
        sync = next(a for a in described if a["alias"] == "upstream-sync")
        assert sync["repo"] == "lime-app"
        assert "git pull upstream master" in sync["command"]
        assert service.describe_aliases("unknown") == []

    def test_unknown_repository_skipped(self, tmp_path):
        service = UpstreamService(tmp_path, catalog={})
        outcomes = service.provision("kconfig-utils", tmp_path / "kconfig-utils")
        assert len(outcomes) == 1
        assert outcomes[0].status == OperationStatus.SKIPPED

    def test_not_a_repository_fails(self, tmp_path):
        target = tmp_path / "lime-app"
        target.mkdir()
        service = UpstreamService(tmp_path, catalog={"lime-app": make_entry()})
        outcomes = service.provision("lime-app", target)
        assert outcomes[0].status == OperationStatus.FAILED
        assert "not a git repository" in outcomes[0].error


@requires_git
class TestProvision:
    """Tests against a real clone."""

    @pytest.fixture
    def workspace(self, tmp_path, remote_repo):
        repos = tmp_path / "repos"
        repos.mkdir()
        git(repos, "clone", "-q", remote_repo.url, "lime-app")
        service = UpstreamService(
            tmp_path / "tools",
            catalog={"lime-app": make_entry(url=remote_repo.url)},
        )
        return service, repos / "lime-app"

    def test_first_run_changes_everything(self, workspace):
        service, path = workspace
        outcomes = service.provision("lime-app", path)
        assert [o.step for o in outcomes] == list(ALL_STEPS)
        assert all(o.status == OperationStatus.SUCCESS for o in outcomes), outcomes

    def test_second_run_is_unchanged(self, workspace):
        service, path = workspace
        service.provision("lime-app", path)
        outcomes = service.provision("lime-app", path)
        assert all(o.status == OperationStatus.UNCHANGED for o in outcomes), outcomes

    def test_remote_configured_and_fetched(self, workspace, remote_repo):
        service, path = workspace
        service.provision("lime-app", path, steps=["remote"])
        assert git(path, "remote", "get-url", "upstream") == remote_repo.url
        assert git(path, "rev-parse", "upstream/master") == remote_repo.head()

    def test_remote_repointed(self, workspace, tmp_path):
        service, path = workspace
        git(path, "remote", "add", "upstream", str(tmp_path / "elsewhere.git"))
        outcomes = service.provision("lime-app", path, steps=["remote"])
        assert outcomes[0].status == OperationStatus.SUCCESS
        assert git(path, "remote", "get-url", "upstream") == service.entry("lime-app").url

    def test_aliases_installed(self, workspace):
        service, path = workspace
        service.provision("lime-app", path, steps=[STEP_ALIASES])
        assert git(path, "config", "--get", "alias.upstream-sync") == (
            "!git checkout master && git pull upstream master && git push origin master"
        )

    def test_aliases_overwrite_stale_values(self, workspace):
        service, path = workspace
        service.provision("lime-app", path, steps=[STEP_ALIASES])
        git(path, "config", "alias.upstream-sync", "!echo stale")

        outcomes = service.provision("lime-app", path, steps=[STEP_ALIASES])
        assert outcomes[0].status == OperationStatus.SUCCESS
        assert outcomes[0].message == "1 of 11 aliases written"
        assert "git pull upstream master" in git(path, "config", "--get", "alias.upstream-sync")

    def test_invalid_branch_fails_only_alias_step(self, tmp_path, remote_repo):
        repos = tmp_path / "repos"
        repos.mkdir()
        git(repos, "clone", "-q", remote_repo.url, "lime-app")
        entry = make_entry(url=remote_repo.url, branch="master; touch pwned")
        service = UpstreamService(tmp_path / "tools", catalog={"lime-app": entry})

        outcomes = {o.step: o for o in service.provision("lime-app", repos / "lime-app")}
        assert outcomes["aliases"].status == OperationStatus.FAILED
        assert outcomes["aliases"].action == "alias_install_failed"
        assert outcomes["exclusions"].status == OperationStatus.SUCCESS
        assert outcomes["hook"].status == OperationStatus.SUCCESS

    def test_exclusion_file_written(self, workspace):
        service, path = workspace
        service.provision("lime-app", path, steps=["exclusions"])
        content = service.exclusion_file("lime-app").read_text()
        assert content == render_exclusions(service.entry("lime-app"))

    def test_hook_installed_executable(self, workspace):
        service, path = workspace
        outcomes = service.provision("lime-app", path, steps=[STEP_HOOK])
        hook = path / ".git" / "hooks" / "pre-commit"
        assert outcomes[0].file_path == str(hook)
        assert os.stat(hook).st_mode & stat.S_IXUSR
        assert str(service.validator_path) in hook.read_text()

    def test_hook_lets_unmarked_commit_through(self, workspace):
        """A commit without the marker is not blocked by the hook."""
        service, path = workspace
        service.provision("lime-app", path, steps=[STEP_HOOK])
        (path / "change.txt").write_text("x\n")
        git(path, "add", "change.txt")
        git(path, "commit", "-q", "-m", "local change")
        assert git(path, "log", "-1", "--pretty=%s") == "local change"

    def test_provision_repos_skips_absent(self, workspace, tmp_path):
        service, path = workspace
        service.catalog["lime-packages"] = UpstreamEntry(
            name="lime-packages", url="https://github.com/libremesh/lime-packages.git", branch="master",
        )
        messages = list(service.provision_repos(path.parent, steps=["exclusions"]))
        result = service.last_result
        assert result.total == 1
        assert result.details[0].repo_name == "lime-app"
        assert any("lime-app" in m for m in messages)

    def test_hook_runs_validator_after_marked_commit(self, workspace):
        """Once the last commit carries the marker, the validator gates the next commit."""
        service, path = workspace
        service.provision("lime-app", path, steps=[STEP_HOOK])
        calls = path.parent / "validator-calls.txt"
        validator = service.validator_path
        validator.parent.mkdir(parents=True)
        validator.write_text(f'#!/bin/sh\necho "$@" >> {calls}\nexit 1\n')
        validator.chmod(0o755)

        (path / "first.txt").write_text("1\n")
        git(path, "add", "first.txt")
        git(path, "commit", "-q", "-m", "[upstream] fix mesh config")
        assert not calls.exists()

        (path / "second.txt").write_text("2\n")
        git(path, "add", "second.txt")
        blocked = subprocess.run(["git", "commit", "-q", "-m", "follow-up"], cwd=path,
                                 capture_output=True, text=True)
        assert blocked.returncode != 0
        assert calls.read_text().strip() == "--repo lime-app --staged"
        assert git(path, "log", "-1", "--pretty=%s") == "[upstream] fix mesh config"

    def test_lock_failure_reported(self, workspace):
        service, path = workspace
        (path.parent / ".locks").write_text("")
        outcomes = service.provision("lime-app", path)
        assert len(outcomes) == 1
        assert outcomes[0].status == OperationStatus.FAILED
        assert outcomes[0].action == "lock_failed"

    def test_step_disk_failure_does_not_stop_other_steps(self, workspace):
        service, path = workspace
        service.configs_dir.parent.mkdir(parents=True)
        service.configs_dir.write_text("")
        outcomes = {o.step: o for o in service.provision("lime-app", path, steps=["exclusions", STEP_HOOK])}
        assert outcomes["exclusions"].status == OperationStatus.FAILED
        assert outcomes["exclusions"].action == "exclusions_failed"
        assert outcomes["hook"].status == OperationStatus.SUCCESS
