"""Status assembly for one repository or a directory of repositories."""

import datetime as dt
import logging
import time
from pathlib import Path

import pygit2

from gitfu import git_ops
from gitfu.models import (
    ZERO_OID,
    BranchInfo,
    BrokenStatus,
    HealthyStatus,
    NamedBranch,
    RemoteStatus,
    RepoStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 2500
BROKEN_HEAD = "broken-head"


def _ago(count: int, unit: str) -> str:
    return f"{count} {unit if count == 1 else unit + 's'} ago"


def format_commit_age(commit_time: int, now: int | None = None) -> str:
    """Format the time elapsed since ``commit_time`` as a rough age."""
    if now is None:
        now = int(time.time())
    seconds = now - commit_time
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _ago(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _ago(hours, "hour")
    days = hours // 24
    if days < 7:
        return _ago(days, "day")
    if days < 30:
        return _ago(days // 7, "week")
    if days < 365:
        return _ago(days // 30, "month")
    return _ago(days // 365, "year")


def format_iso_date(commit_time: int) -> str:
    return dt.datetime.fromtimestamp(commit_time, dt.UTC).strftime("%Y-%m-%d %H:%M:%S")


def load_remote_status(
    repo: pygit2.Repository, branch_name: str, *, fetch: bool, timeout_ms: int
) -> RemoteStatus:
    """Compare HEAD with the origin copy of its branch, fetching first if asked."""
    refreshed = False
    if fetch:
        workdir = git_ops.get_workdir(repo)
        refreshed = git_ops.fetch_with_timeout(workdir, git_ops.ORIGIN, timeout_ms)
    position = git_ops.get_remote_position(repo, branch_name)
    return RemoteStatus(position=position, refreshed=refreshed)


def load_repo_status(
    repo: pygit2.Repository,
    *,
    remote_status: bool = False,
    fetch: bool = False,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> HealthyStatus:
    """Load branch, dirty counts and positions for a repository."""
    branch = git_ops.get_branch_state(repo)
    dirty = git_ops.count_dirty(repo)
    if git_ops.is_head_unborn(repo):
        return HealthyStatus(branch=branch, dirty=dirty, position=None, head_oid=ZERO_OID)

    head_oid = git_ops.get_head_oid(repo)
    position = git_ops.get_local_position(repo, branch)
    remote = None
    if remote_status and isinstance(branch, NamedBranch):
        remote = load_remote_status(repo, branch.name, fetch=fetch, timeout_ms=timeout_ms)
    return HealthyStatus(
        branch=branch,
        dirty=dirty,
        position=position,
        head_oid=head_oid,
        remote_status=remote,
    )


def load_branches(repo: pygit2.Repository, now: int | None = None) -> list[BranchInfo]:
    """Load local branches, most recently committed first."""
    tips = git_ops.list_branch_tips(repo)
    tips.sort(key=lambda tip: tip[1], reverse=True)
    return [
        BranchInfo(
            name=name,
            commit_time=commit_time,
            iso_date=format_iso_date(commit_time),
            delta=format_commit_age(commit_time, now=now),
        )
        for name, commit_time in tips
    ]


def _subdirectories(parent: Path) -> list[Path]:
    # Sorted so that which repositories still get to fetch does not depend
    # on filesystem enumeration order.
    return sorted((path for path in parent.iterdir() if path.is_dir()), key=lambda p: p.name)


def _status_for_directory(
    directory: Path, fetch: bool, timeout_ms: int
) -> tuple[RepoStatus | None, bool]:
    """Return the status of one directory and the fetch flag for the next one."""
    try:
        repo = git_ops.open_repo(directory)
        status = load_repo_status(repo, remote_status=True, fetch=fetch, timeout_ms=timeout_ms)
    except git_ops.NotARepositoryError:
        logger.debug("Skipping %s: not a git repository", directory)
        return None, fetch
    except (git_ops.GitError, OSError) as exc:
        logger.warning("Cannot read status of %s: %s", directory, exc)
        return BrokenStatus(BROKEN_HEAD), fetch

    if status.remote_status is None:
        return status, fetch
    return status, fetch and status.remote_status.refreshed


def collect_directory_status(
    parent: Path, *, fetch: bool = False, timeout_ms: int = DEFAULT_TIMEOUT_MS
) -> dict[str, RepoStatus] | None:
    """Collect the status of every repository directly under ``parent``.

    Directories are visited in name order. Once a fetch times out, the
    remaining repositories skip fetching and report stale remote status.
    Returns None when no repository was found.
    """
    results: dict[str, RepoStatus] = {}
    fetch_enabled = fetch
    for directory in _subdirectories(parent):
        if fetch and not fetch_enabled:
            logger.debug("Not fetching in %s after an earlier timeout", directory)
        status, fetch_enabled = _status_for_directory(directory, fetch_enabled, timeout_ms)
        if status is not None:
            results[directory.name] = status
    return results or None
