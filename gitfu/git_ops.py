"""Git repository queries (pygit2) and the fetch subprocess."""

import logging
import os
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pygit2

from gitfu.models import BranchState, DetachedHead, DirtyState, NamedBranch, Position

logger = logging.getLogger(__name__)

ORIGIN = "origin"

_WORKTREE_FLAGS = (
    pygit2.GIT_STATUS_WT_NEW
    | pygit2.GIT_STATUS_WT_MODIFIED
    | pygit2.GIT_STATUS_WT_DELETED
    | pygit2.GIT_STATUS_WT_RENAMED
    | pygit2.GIT_STATUS_WT_TYPECHANGE
)


class GitFuError(Exception):
    """Base class for git-fu failures."""


class NotARepositoryError(GitFuError):
    """The path has no .git directory of its own."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"No .git directory found at {path}")


class GitError(GitFuError):
    """A repository query failed."""


@contextmanager
def _library_errors() -> Iterator[None]:
    """Re-raise pygit2 failures as GitError, keeping the library message."""
    try:
        yield
    except (pygit2.GitError, KeyError, ValueError) as exc:
        raise GitError(str(exc) or type(exc).__name__) from exc


def open_repo(path: Path) -> pygit2.Repository:
    """Open the repository whose .git directory sits directly in ``path``.

    A directory without its own ``.git`` is not a repository, even when an
    ancestor is. Once that check passes, discovery follows normal git rules.
    """
    if not (path / ".git").is_dir():
        raise NotARepositoryError(path)
    with _library_errors():
        git_dir = pygit2.discover_repository(str(path))
        if git_dir is None:
            raise GitError(f"Cannot open repository at {path}")
        return pygit2.Repository(git_dir)


def get_workdir(repo: pygit2.Repository) -> Path:
    """Get the working tree directory of a repository."""
    if repo.workdir is None:
        raise GitError("Cannot find workdir")
    return Path(repo.workdir)


def is_head_unborn(repo: pygit2.Repository) -> bool:
    """Check if HEAD names a branch that has no commits yet."""
    with _library_errors():
        return repo.head_is_unborn


def get_head_oid(repo: pygit2.Repository) -> str:
    """Get the commit id HEAD points at."""
    with _library_errors():
        return str(repo.head.target)


def get_branch_state(repo: pygit2.Repository) -> BranchState:
    """Get the branch HEAD points at, or DetachedHead."""
    with _library_errors():
        if repo.head_is_unborn:
            target = repo.references["HEAD"].target
            return NamedBranch(str(target).removeprefix("refs/heads/"))
        head = repo.head
        if not head.name.startswith("refs/heads/"):
            return DetachedHead()
        shorthand = head.shorthand
    if not shorthand:
        raise GitError("No name for a named branch")
    return NamedBranch(shorthand)


def count_dirty(repo: pygit2.Repository) -> DirtyState:
    """Count changed files in the working tree and in the index.

    Untracked files count as worktree changes; ignored files do not count.
    A file changed in both places counts in both buckets. A staged rename
    counts once.
    """
    with _library_errors():
        entries = repo.status(untracked_files="all", ignored=False)
        index = _count_index_changes(repo)
    worktree = sum(1 for flags in entries.values() if flags & _WORKTREE_FLAGS)
    return DirtyState(worktree=worktree, index=index)


def _count_index_changes(repo: pygit2.Repository) -> int:
    # repo.status() does no rename detection, so diff HEAD against the index.
    if repo.head_is_unborn:
        return len({entry.path for entry in repo.index})
    diff = repo.index.diff_to_tree(repo.head.peel(pygit2.Tree))
    diff.find_similar()
    return len(diff)


def count_ahead_behind(repo: pygit2.Repository, local: pygit2.Oid, other: pygit2.Oid) -> Position:
    """Count commits reachable only from ``local`` and only from ``other``."""
    with _library_errors():
        ahead, behind = repo.ahead_behind(local, other)
    return Position(ahead=ahead, behind=behind)


def get_local_position(repo: pygit2.Repository, branch: BranchState) -> Position | None:
    """Get the position of a branch against its upstream, as last fetched."""
    if not isinstance(branch, NamedBranch):
        return None
    with _library_errors():
        local = repo.branches.local.get(branch.name)
        if local is None:
            return None
        upstream = local.upstream
        if upstream is None:
            return None
        local_oid = local.target
        upstream_oid = upstream.target
    return count_ahead_behind(repo, local_oid, upstream_oid)


def get_remote_position(repo: pygit2.Repository, branch_name: str) -> Position | None:
    """Get the position of HEAD against ``refs/remotes/origin/<branch>``."""
    with _library_errors():
        remote_ref = repo.references.get(f"refs/remotes/{ORIGIN}/{branch_name}")
        if remote_ref is None:
            return None
        head_oid = repo.head.target
        remote_oid = remote_ref.resolve().target
    return count_ahead_behind(repo, head_oid, remote_oid)


def list_branch_tips(repo: pygit2.Repository) -> list[tuple[str, int]]:
    """List local branch names with the commit time of their tips."""
    tips: list[tuple[str, int]] = []
    with _library_errors():
        for name in repo.branches.local:
            commit = repo.branches.local[name].peel(pygit2.Commit)
            tips.append((name, commit.commit_time))
    return tips


def fetch_with_timeout(workdir: Path, remote: str, timeout_ms: int) -> bool:
    """Fetch ``remote`` into ``workdir``, giving up after ``timeout_ms``.

    Returns True when git finished in time (whatever its exit status) and
    False when it had to be killed.
    """
    env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
    proc = subprocess.Popen(
        ["git", "-C", str(workdir), "fetch", "--prune", "--quiet", remote],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        env=env,
    )
    try:
        returncode = proc.wait(timeout=timeout_ms / 1000)
    except subprocess.TimeoutExpired:
        logger.warning("git fetch in %s timed out after %d ms", workdir, timeout_ms)
        proc.kill()
        proc.wait()
        return False
    if returncode != 0:
        logger.warning("git fetch in %s exited with status %d", workdir, returncode)
    return True
