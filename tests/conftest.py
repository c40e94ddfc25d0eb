"""
Shared fixtures for limedev tests.

Git-backed fixtures build real repositories under tmp_path: a "source"
working tree that stands in for upstream development, and a bare clone of
it that plays the role of the remote the workspace clones from.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


SAMPLE_CONFIG = """\
# LibreMesh workspace
[repositories]
lime_app=https://github.com/libremesh/lime-app.git|develop|origin
lime_packages=https://github.com/libremesh/lime-packages.git|master|origin
openwrt=https://git.openwrt.org/openwrt/openwrt.git|v24.10.1|

[release_overrides]
lime_app_release=https://github.com/libremesh/lime-app.git|master|origin
lime_packages_release=|v2024.1|

[firmware_versions]
openwrt_version=v24.10.1
libremesh_version=2024.1

[build_targets]
default_target=librerouter-v1
development_target=x86_64

[qemu_config]
bridge_ip=10.13.0.1   # host side of the bridge

[future_section]
free form text
"""


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path_factory):
    """Keep tests independent of the caller's git identity and LIME_* settings."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Lime Tester")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "tester@example.org")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Lime Tester")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "tester@example.org")
    for var in ("LIME_CONFIG", "LIME_BUILD_DIR", "LIME_RELEASE_MODE", "LIME_MODE",
                "LIME_UPSTREAM_CATALOG", "LIME_FORMAT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def sample_config_text():
    return SAMPLE_CONFIG


def git(cwd, *args) -> str:
    """Run git in cwd and return its stripped stdout."""
    result = subprocess.run(
        ["git", *args], cwd=str(cwd), check=True,
        stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
    )
    return result.stdout.strip()


class RemoteRepo:
    """A bare repository plus a working tree that pushes to it."""

    def __init__(self, root: Path, branch: str = "master"):
        self.branch = branch
        self.source = root / "source"
        self.bare = root / "remote.git"
        self.source.mkdir(parents=True)
        git(self.source, "init", "-q")
        git(self.source, "symbolic-ref", "HEAD", f"refs/heads/{branch}")
        self.commit("initial commit", "README")
        git(root, "clone", "-q", "--bare", str(self.source), str(self.bare))

    @property
    def url(self) -> str:
        return str(self.bare)

    def commit(self, message: str, filename: str = "file.txt", push: bool = False) -> str:
        path = self.source / filename
        with open(path, "a") as f:
            f.write(message + "\n")
        git(self.source, "add", filename)
        git(self.source, "commit", "-q", "-m", message)
        if push:
            self.push()
        return git(self.source, "rev-parse", "HEAD")

    def push(self, ref: str = None):
        git(self.source, "push", "-q", str(self.bare), ref or self.branch)

    def tag(self, name: str):
        git(self.source, "tag", name)
        self.push(name)

    def head(self) -> str:
        return git(self.bare, "rev-parse", self.branch)


@pytest.fixture
def remote_repo(tmp_path):
    """A bare remote with one commit on master."""
    return RemoteRepo(tmp_path / "upstream")


def commit_in(path: Path, message: str, filename: str = "local.txt") -> str:
    """Create a commit in an existing working tree."""
    with open(path / filename, "a") as f:
        f.write(message + "\n")
    git(path, "add", filename)
    git(path, "commit", "-q", "-m", message)
    return git(path, "rev-parse", "HEAD")
