"""
Upstream contribution workflow for limedev.

Prepares a local fork for sending work back to its public project with
four independent steps:

- remote:     an ``upstream`` remote pointing at the public project
- aliases:    git aliases for syncing, feature branches and patch creation
- exclusions: the list of local-only patterns that must not go upstream
- hook:       a pre-commit hook that validates commits marked ``[upstream]``

Every step converges on the same end state however often it runs, and
reports ``unchanged`` when there was nothing to do.
"""

import logging
import re
import shlex
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Dict, Generator, Iterable, List, Optional

from ..catalog import UpstreamEntry, load_catalog
from ..domain.operation import OperationStatus, OperationSummary, ProvisionOutcome
from ..errors import (
    AliasInstallFailed,
    FetchFailed,
    HookInstallFailed,
    InvalidBranchName,
    LimeDevError,
    RemoteMismatch,
)
from ..infra.file_store import write_if_changed
from ..infra.git_client import CancelToken, GitClient, OperationCancelled
from ..infra.locks import LockUnavailable, repository_lock

logger = logging.getLogger(__name__)

UPSTREAM_REMOTE = "upstream"
UPSTREAM_MARKER = "[upstream]"

STEP_REMOTE = "remote"
STEP_ALIASES = "aliases"
STEP_EXCLUSIONS = "exclusions"
STEP_HOOK = "hook"
ALL_STEPS = (STEP_REMOTE, STEP_ALIASES, STEP_EXCLUSIONS, STEP_HOOK)

SAFE_BRANCH_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._/+-]*$')


def validate_branch(branch: str, repo: str = "") -> str:
    """
    Reject branch names that git would refuse or a shell could misread.

    Raises:
        InvalidBranchName: If the name is unsafe
    """
    problems = (
        not SAFE_BRANCH_RE.match(branch or ''),
        '..' in branch,
        '//' in branch,
        branch.endswith(('/', '.', '.lock')),
        '/.' in branch,
    )
    if any(problems):
        raise InvalidBranchName(repo or "?", f"unsafe branch name: {branch!r}")
    return branch


@dataclass(frozen=True)
class AliasDefinition:
    """A git alias whose command is filled in with the main branch."""
    name: str
    description: str
    template: Template

    def render(self, branch: str) -> str:
        return self.template.substitute(branch=shlex.quote(validate_branch(branch)))


def _alias(name: str, description: str, command: str) -> AliasDefinition:
    return AliasDefinition(name=name, description=description, template=Template(command))


ALIAS_CATALOG = (
    _alias("upstream-status", "Show commits in upstream not in origin",
           "!git log --oneline --graph origin/${branch}..upstream/${branch}"),
    _alias("upstream-sync", "Sync main branch with upstream",
           "!git checkout ${branch} && git pull upstream ${branch} && git push origin ${branch}"),
    _alias("upstream-merge", "Merge upstream changes",
           "!git checkout ${branch} && git merge upstream/${branch}"),
    _alias("upstream-rebase", "Rebase on upstream",
           "!git checkout ${branch} && git rebase upstream/${branch}"),
    _alias("feature-start", "Start new feature branch from upstream",
           '!f() { git checkout ${branch} && git pull upstream ${branch} && git checkout -b "$$1"; }; f'),
    _alias("feature-sync", "Sync feature branch with upstream",
           "!git fetch upstream && git rebase upstream/${branch}"),
    _alias("feature-finish", "Merge feature branch and clean up",
           '!f() { git checkout ${branch} && git merge --no-ff "$$1" && git branch -d "$$1"; }; f'),
    _alias("clean-for-upstream", "Sync with upstream and delete merged branches",
           "!f() { git checkout ${branch} && git pull upstream ${branch} && git push origin ${branch} && "
           "git branch --merged | grep -v -e '^\\*' -e '^  '${branch}'$$' | xargs -r -n 1 git branch -d; }; f"),
    _alias("create-patch", "Create patch files for upstream",
           '!f() { git format-patch upstream/${branch}.."$${1:-HEAD}" --output-directory=patches/; }; f'),
    _alias("review-changes", "Review changes vs upstream",
           "!git diff upstream/${branch}...HEAD"),
    _alias("review-commits", "List commits not in upstream",
           "!git log --oneline upstream/${branch}..HEAD"),
)

HOOK_TEMPLATE = Template("""\
#!/bin/sh
# Pre-commit hook for upstream contribution readiness (installed by limedev)

REPO_NAME=${repo}
VALIDATOR=${validator}

if git log -1 --pretty=%B 2>/dev/null | grep -qF '${marker}'; then
    echo "Checking upstream readiness..."
    if [ -x "$$VALIDATOR" ]; then
        exec "$$VALIDATOR" --repo "$$REPO_NAME" --staged
    fi
fi
exit 0
""")


def render_aliases(branch: str) -> Dict[str, str]:
    """Expanded alias commands for a main branch, keyed by alias name."""
    return {alias.name: alias.render(branch) for alias in ALIAS_CATALOG}


def render_exclusions(entry: UpstreamEntry) -> str:
    """Exclusion file content for one catalog entry."""
    lines = [
        f"# {entry.name} upstream exclusions",
        "# Files and patterns that should not be included in upstream contributions",
    ]
    for section in entry.exclusions:
        lines.append("")
        lines.append(f"# {section.title}")
        lines.extend(section.patterns)
    return "\n".join(lines) + "\n"


def render_hook(repo_name: str, validator: Path) -> str:
    """Pre-commit hook script for one repository."""
    return HOOK_TEMPLATE.substitute(
        repo=shlex.quote(repo_name),
        validator=shlex.quote(str(validator)),
        marker=UPSTREAM_MARKER,
    )


class UpstreamService:
    """
    Provisions repositories for upstream contribution.

    Example:
        service = UpstreamService(tools_dir=build_dir / "tools")
        for message in service.provision_repos(repos_dir):
            print(message)
        print(service.last_result.failed)
    """

    def __init__(
        self,
        tools_dir: Path,
        catalog: Optional[Dict[str, UpstreamEntry]] = None,
        git_client: Optional[GitClient] = None,
    ):
        self.tools_dir = Path(tools_dir)
        self.catalog = catalog if catalog is not None else load_catalog()
        self.git = git_client or GitClient()
        self.last_result: Optional[OperationSummary] = None

    @property
    def configs_dir(self) -> Path:
        return self.tools_dir / 'upstream' / 'configs'

    @property
    def validator_path(self) -> Path:
        return self.tools_dir / 'upstream' / 'validate-commit.sh'

    def exclusion_file(self, name: str) -> Path:
        return self.configs_dir / f"{name}.exclude"

    def entry(self, name: str) -> Optional[UpstreamEntry]:
        return self.catalog.get(name.replace('_', '-'))

    def describe_aliases(self, name: str) -> List[Dict[str, str]]:
        """The alias catalog for a repository, with expanded commands."""
        entry = self.entry(name)
        if entry is None:
            return []
        return [
            {'repo': entry.name, 'alias': alias.name,
             'description': alias.description, 'command': alias.render(entry.branch)}
            for alias in ALIAS_CATALOG
        ]

    # -- steps ------------------------------------------------------------

    def _outcome(self, entry: UpstreamEntry, path: Path, step: str, changed: bool,
                 message: str, file_path: Optional[Path] = None) -> ProvisionOutcome:
        return ProvisionOutcome(
            repo_path=str(path),
            repo_name=entry.name,
            status=OperationStatus.SUCCESS if changed else OperationStatus.UNCHANGED,
            action=step,
            step=step,
            message=message,
            file_path=str(file_path) if file_path else None,
        )

    def provision_remote(self, entry: UpstreamEntry, path: Path,
                         cancel: Optional[CancelToken] = None) -> ProvisionOutcome:
        current = self.git.remote_url(path, UPSTREAM_REMOTE)
        changed = current != entry.url
        if current is None:
            logger.info(f"{entry.name}: adding upstream remote {entry.url}")
            result = self.git.add_remote(path, UPSTREAM_REMOTE, entry.url)
        elif changed:
            logger.warning(f"{entry.name}: upstream remote was {current}, updating to {entry.url}")
            result = self.git.set_remote_url(path, UPSTREAM_REMOTE, entry.url)
        else:
            result = None
        if result is not None and not result.ok:
            raise RemoteMismatch(entry.name, result.error)

        fetch = self.git.fetch(path, UPSTREAM_REMOTE, cancel=cancel)
        if not fetch.ok:
            raise FetchFailed(entry.name, fetch.error)

        message = f"upstream -> {entry.url}" if changed else "upstream remote already configured"
        return self._outcome(entry, path, STEP_REMOTE, changed, message)

    def provision_aliases(self, entry: UpstreamEntry, path: Path) -> ProvisionOutcome:
        try:
            commands = render_aliases(entry.branch)
        except InvalidBranchName as e:
            raise AliasInstallFailed(entry.name, e.cause)

        written = []
        for name, command in commands.items():
            key = f"alias.{name}"
            if self.git.config_get(path, key) == command:
                continue
            result = self.git.config_set(path, key, command)
            if not result.ok:
                raise AliasInstallFailed(entry.name, f"{name}: {result.error}")
            written.append(name)

        if written:
            logger.info(f"{entry.name}: installed {len(written)} git aliases")
        message = f"{len(written)} of {len(commands)} aliases written"
        return self._outcome(entry, path, STEP_ALIASES, bool(written), message)

    def provision_exclusions(self, entry: UpstreamEntry, path: Path) -> ProvisionOutcome:
        target = self.exclusion_file(entry.name)
        changed = write_if_changed(target, render_exclusions(entry))
        if changed:
            logger.info(f"{entry.name}: exclusion configuration written to {target}")
        message = f"{len(entry.patterns)} patterns"
        return self._outcome(entry, path, STEP_EXCLUSIONS, changed, message, target)

    def provision_hook(self, entry: UpstreamEntry, path: Path) -> ProvisionOutcome:
        hook = self.git.git_path(path, 'hooks') / 'pre-commit'
        try:
            changed = write_if_changed(hook, render_hook(entry.name, self.validator_path), mode=0o755)
        except OSError as e:
            raise HookInstallFailed(entry.name, str(e))
        if changed:
            logger.info(f"{entry.name}: pre-commit hook installed")
        return self._outcome(entry, path, STEP_HOOK, changed, "pre-commit hook", hook)

    # -- orchestration ----------------------------------------------------

    def provision(
        self,
        name: str,
        path: Path,
        steps: Iterable[str] = ALL_STEPS,
        cancel: Optional[CancelToken] = None,
    ) -> List[ProvisionOutcome]:
        """
        Run the requested steps on one repository.

        A failing step does not stop the others; each gets its own outcome.
        """
        path = Path(path)
        entry = self.entry(name)
        if entry is None:
            return [ProvisionOutcome(
                repo_path=str(path), repo_name=name, status=OperationStatus.SKIPPED,
                action="provision", message="no upstream project configured",
            )]
        if not self.git.is_git_repo(path):
            return [ProvisionOutcome(
                repo_path=str(path), repo_name=entry.name, status=OperationStatus.FAILED,
                action="provision", error=f"{path} is not a git repository",
            )]

        runners = {
            STEP_REMOTE: lambda: self.provision_remote(entry, path, cancel),
            STEP_ALIASES: lambda: self.provision_aliases(entry, path),
            STEP_EXCLUSIONS: lambda: self.provision_exclusions(entry, path),
            STEP_HOOK: lambda: self.provision_hook(entry, path),
        }

        outcomes: List[ProvisionOutcome] = []
        try:
            with repository_lock(path):
                for step in steps:
                    try:
                        outcomes.append(runners[step]())
                    except OperationCancelled as e:
                        outcomes.append(self._failed(entry, path, step, "cancelled", str(e)))
                    except LimeDevError as e:
                        logger.error(str(e))
                        outcomes.append(self._failed(entry, path, step, getattr(e, 'kind', step),
                                                     getattr(e, 'cause', str(e))))
                    except OSError as e:
                        logger.error(f"{entry.name}: {step}: {e}")
                        outcomes.append(self._failed(entry, path, step, f"{step}_failed", str(e)))
        except LockUnavailable as e:
            outcomes.append(self._failed(entry, path, "provision", "busy", str(e)))
        except OSError as e:
            logger.error(f"{entry.name}: cannot lock {path}: {e}")
            outcomes.append(self._failed(entry, path, "provision", "lock_failed", str(e)))
        return outcomes

    def _failed(self, entry: UpstreamEntry, path: Path, step: str, kind: str,
                error: str) -> ProvisionOutcome:
        return ProvisionOutcome(
            repo_path=str(path), repo_name=entry.name, status=OperationStatus.FAILED,
            action=kind, step=step, error=error,
        )

    def provision_repos(
        self,
        repos_dir: Path,
        names: Optional[List[str]] = None,
        steps: Iterable[str] = ALL_STEPS,
    ) -> Generator[str, None, OperationSummary]:
        """
        Provision every catalog repository present under ``repos_dir``.

        Args:
            repos_dir: Directory holding the working directories
            names: Restrict to these repositories (all catalog entries if empty)
            steps: Steps to run

        Yields:
            Progress messages

        Returns:
            OperationSummary with one ProvisionOutcome per step and repository
        """
        result = OperationSummary(operation="upstream_setup")
        self.last_result = result
        repos_dir = Path(repos_dir)
        steps = tuple(steps)

        selected = [n.replace('_', '-') for n in names] if names else sorted(self.catalog)
        for name in selected:
            path = repos_dir / name
            if not names and not path.is_dir():
                continue
            yield f"Setting up {name} for upstream contribution..."
            for outcome in self.provision(name, path, steps):
                result.add_detail(outcome)
                if outcome.failed:
                    yield f"  ✗ {name} {outcome.step or outcome.action}: {outcome.error}"
                else:
                    yield f"  ✓ {name} {outcome.step or outcome.action}: {outcome.status.value}"

        if result.total == 0:
            yield f"No upstream repositories found in {repos_dir}"
        return result
