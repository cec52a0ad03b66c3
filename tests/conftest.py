from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

GIT_AVAILABLE = shutil.which("git") is not None


def _run(cmd: list[str], cwd: Path | None = None, env: dict[str, str] | None = None) -> str:
    result = subprocess.run(
        cmd, cwd=str(cwd) if cwd else None, check=True, capture_output=True, text=True, env=env
    )
    return result.stdout.strip()


class Repo:
    """A scratch repository driven through the git CLI."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def git(self, *args: str, when: int | None = None) -> str:
        env = None
        if when is not None:
            date = f"@{when} +0000"
            env = {**os.environ, "GIT_AUTHOR_DATE": date, "GIT_COMMITTER_DATE": date}
        return _run(["git", "-C", str(self.path), *args], env=env)

    def write(self, name: str, text: str = "x\n") -> Path:
        path = self.path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    def commit(self, message: str, name: str | None = None, when: int | None = None) -> str:
        self.write(name or f"{message}.txt", f"{message}\n")
        self.git("add", "-A")
        self.git("commit", "-q", "-m", message, when=when)
        return self.git("rev-parse", "HEAD")

    def track_fake_origin(self, upstream_oid: str, branch: str = "main") -> None:
        """Point refs/remotes/origin/<branch> at a commit and make it the upstream."""
        self.git("remote", "add", "origin", str(self.path.parent / "nowhere.git"))
        self.git("update-ref", f"refs/remotes/origin/{branch}", upstream_oid)
        self.git("config", f"branch.{branch}.remote", "origin")
        self.git("config", f"branch.{branch}.merge", f"refs/heads/{branch}")


@pytest.fixture(autouse=True)
def _isolated_git(tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch) -> None:
    home = tmp_path_factory.mktemp("home")
    gitconfig = home / ".gitconfig"
    gitconfig.write_text(
        "[user]\n\temail = test@example.com\n\tname = Test\n"
        "[commit]\n\tgpgsign = false\n"
        "[init]\n\tdefaultBranch = main\n"
    )
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.delenv("GIT_FU_CONFIG", raising=False)
    monkeypatch.delenv("NO_COLOR", raising=False)


@pytest.fixture
def make_repo() -> Callable[..., Repo]:
    if not GIT_AVAILABLE:
        pytest.skip("git missing")

    def _make(path: Path, initial_commit: bool = True) -> Repo:
        path.mkdir(parents=True, exist_ok=True)
        _run(["git", "init", "-q", "-b", "main", str(path)])
        repo = Repo(path)
        if initial_commit:
            repo.commit("init", name="README.md")
        return repo

    return _make


@pytest.fixture
def repo(tmp_path: Path, make_repo: Callable[..., Repo]) -> Repo:
    return make_repo(tmp_path / "repo")
