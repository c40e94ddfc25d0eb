"""
Git client infrastructure for limedev.

Provides a clean abstraction over git command execution.
All git operations go through this client, making them:
- Easy to mock for testing
- Consistent in error handling
- Isolated from business logic

Commands are passed to git as argument lists, never through a shell, so
branch names and URLs from the configuration cannot inject commands.
"""

import os
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class OperationCancelled(Exception):
    """A git command was aborted because its cancel token fired."""


class CancelToken:
    """
    Cooperative cancellation for long-running git commands.

    A token is cancelled explicitly with cancel(), or implicitly once its
    optional timeout has elapsed.

    Example:
        token = CancelToken(timeout=600)
        service.ensure(repo, path, cancel=token)
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self.deadline = time.monotonic() + timeout if timeout else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline


@dataclass
class GitResult:
    """Outcome of a single git invocation."""
    args: Tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return self.stdout.strip()

    @property
    def error(self) -> str:
        """Best available description of a failure."""
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"git {' '.join(self.args)} exited with {self.returncode}"


class GitClient:
    """
    Abstraction over git commands.

    Provides methods for the git operations limedev needs with consistent
    error handling and return types.

    Example:
        client = GitClient()
        if client.is_git_repo("/path/to/repo"):
            print(client.current_branch("/path/to/repo"))
    """

    POLL_INTERVAL = 0.1

    def __init__(self, git: str = "git", timeout: Optional[float] = None):
        """
        Initialize GitClient.

        Args:
            git: git executable
            timeout: Per-command timeout in seconds (None = rely on git's own
                network timeouts)
        """
        self.git = git
        self.timeout = timeout

    def _env(self) -> Dict[str, str]:
        env = dict(os.environ)
        # Never block on an interactive credential prompt.
        env['GIT_TERMINAL_PROMPT'] = '0'
        return env

    def _run(
        self,
        args: List[str],
        cwd: PathLike,
        cancel: Optional[CancelToken] = None,
    ) -> GitResult:
        """
        Run a git command.

        Args:
            args: Arguments after ``git``
            cwd: Working directory
            cancel: Token polled while the command runs

        Returns:
            GitResult (non-zero returncode on failure)

        Raises:
            OperationCancelled: If the token fired or the timeout elapsed
        """
        cmd = [self.git, *args]
        logger.debug(f"Running in {cwd}: {' '.join(cmd)}")
        started = time.monotonic()

        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                env=self._env(),
            )
        except OSError as e:
            logger.error(f"Git command failed to start: {' '.join(cmd)} - {e}")
            return GitResult(tuple(args), 127, "", str(e))

        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self.POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                timed_out = self.timeout is not None and time.monotonic() - started > self.timeout
                if timed_out or (cancel is not None and cancel.cancelled):
                    proc.terminate()
                    try:
                        proc.communicate(timeout=5)
                    except subprocess.TimeoutExpired:
                        proc.kill()
                        proc.communicate()
                    reason = "timed out" if timed_out else "cancelled"
                    logger.warning(f"Git command {reason}: {' '.join(cmd)}")
                    raise OperationCancelled(f"git {args[0]} {reason}")

        return GitResult(tuple(args), proc.returncode, stdout or "", stderr or "")

    # -- inspection -------------------------------------------------------

    def is_git_repo(self, path: PathLike) -> bool:
        """Check if path is a git working tree."""
        return (Path(path) / ".git").exists()

    def current_branch(self, path: PathLike) -> Optional[str]:
        """Get the checked-out branch name, or None when HEAD is detached."""
        result = self._run(["symbolic-ref", "--quiet", "--short", "HEAD"], cwd=path)
        if result.ok and result.output:
            return result.output
        return None

    def rev_parse(self, path: PathLike, ref: str) -> Optional[str]:
        """Resolve a ref to a commit id, or None if it does not exist."""
        result = self._run(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd=path)
        if result.ok and result.output:
            return result.output
        return None

    def head_commit(self, path: PathLike) -> Optional[str]:
        return self.rev_parse(path, "HEAD")

    def has_uncommitted_changes(self, path: PathLike, include_untracked: bool = True) -> bool:
        """Check if the working tree has changes."""
        args = ["status", "--porcelain"]
        if not include_untracked:
            args.append("--untracked-files=no")
        result = self._run(args, cwd=path)
        return bool(result.ok and result.output)

    def remotes(self, path: PathLike) -> Dict[str, str]:
        """Map of remote name to fetch URL."""
        result = self._run(["config", "--get-regexp", r"^remote\..*\.url$"], cwd=path)
        remotes: Dict[str, str] = {}
        if not result.ok:
            return remotes
        for line in result.output.splitlines():
            key, _, url = line.partition(' ')
            name = key[len("remote."):-len(".url")]
            if name:
                remotes[name] = url.strip()
        return remotes

    def remote_url(self, path: PathLike, remote: str = "origin") -> Optional[str]:
        """
        Get remote URL.

        Returns:
            Remote URL or None if not found
        """
        return self.remotes(path).get(remote)

    def is_ancestor(self, path: PathLike, ancestor: str, descendant: str) -> bool:
        """True if ``ancestor`` is reachable from ``descendant``."""
        result = self._run(["merge-base", "--is-ancestor", ancestor, descendant], cwd=path)
        return result.ok

    def ahead_behind(self, path: PathLike, local: str, remote: str) -> Optional[Tuple[int, int]]:
        """Count commits only in ``local`` and only in ``remote``."""
        result = self._run(["rev-list", "--left-right", "--count", f"{local}...{remote}"], cwd=path)
        if not result.ok:
            return None
        parts = result.output.split()
        if len(parts) != 2:
            return None
        try:
            return int(parts[0]), int(parts[1])
        except ValueError:
            return None

    def git_path(self, path: PathLike, name: str) -> Path:
        """Resolve a path inside the repository's git directory (e.g. ``hooks``)."""
        result = self._run(["rev-parse", "--git-path", name], cwd=path)
        location = Path(result.output) if result.ok and result.output else Path(".git") / name
        if not location.is_absolute():
            location = Path(path) / location
        return location

    def config_get(self, path: PathLike, key: str) -> Optional[str]:
        result = self._run(["config", "--local", "--get", key], cwd=path)
        if result.ok:
            return result.stdout.rstrip('\n')
        return None

    def fetch_refspecs(self, path: PathLike, remote: str) -> List[str]:
        """Configured fetch refspecs of a remote, without the force prefix."""
        result = self._run(["config", "--local", "--get-all", f"remote.{remote}.fetch"], cwd=path)
        if not result.ok:
            return []
        return [line.strip().lstrip('+') for line in result.output.splitlines() if line.strip()]

    # -- mutation ---------------------------------------------------------

    def clone(
        self,
        url: str,
        path: PathLike,
        branch: Optional[str] = None,
        remote: str = "origin",
        single_branch: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> GitResult:
        """Clone ``url`` into ``path``, creating parent directories."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone", "--origin", remote]
        if branch:
            args += ["--branch", branch]
        if single_branch:
            args.append("--single-branch")
        args += ["--", url, str(target)]
        return self._run(args, cwd=target.parent, cancel=cancel)

    def fetch(
        self,
        path: PathLike,
        remote: str = "origin",
        tags: bool = False,
        cancel: Optional[CancelToken] = None,
    ) -> GitResult:
        """Fetch from remote."""
        args = ["fetch", "--prune"]
        if tags:
            args.append("--tags")
        args.append(remote)
        return self._run(args, cwd=path, cancel=cancel)

    def add_remote(self, path: PathLike, name: str, url: str) -> GitResult:
        return self._run(["remote", "add", name, url], cwd=path)

    def set_remote_url(self, path: PathLike, name: str, url: str) -> GitResult:
        return self._run(["remote", "set-url", name, url], cwd=path)

    def track_remote_branch(self, path: PathLike, remote: str, branch: str) -> GitResult:
        """Add ``branch`` to the branches fetched from ``remote``."""
        return self._run(["remote", "set-branches", "--add", remote, branch], cwd=path)

    def create_tracking_branch(self, path: PathLike, branch: str, remote: str) -> GitResult:
        return self._run(["branch", "--track", branch, f"{remote}/{branch}"], cwd=path)

    def checkout(self, path: PathLike, ref: str, detach: bool = False) -> GitResult:
        args = ["checkout"]
        if detach:
            args.append("--detach")
        args.append(ref)
        return self._run(args, cwd=path)

    def merge_ff_only(self, path: PathLike, ref: str) -> GitResult:
        return self._run(["merge", "--ff-only", ref], cwd=path)

    def update_ref(self, path: PathLike, ref: str, new: str, old: str) -> GitResult:
        """Move ``ref`` to ``new`` only if it still points at ``old``."""
        return self._run(["update-ref", ref, new, old], cwd=path)

    def config_set(self, path: PathLike, key: str, value: str) -> GitResult:
        return self._run(["config", "--local", key, value], cwd=path)
