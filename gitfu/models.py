"""Data models for git-fu."""

from dataclasses import dataclass

ZERO_OID = "0" * 40


@dataclass(frozen=True)
class NamedBranch:
    """HEAD points at a local branch."""

    name: str


@dataclass(frozen=True)
class DetachedHead:
    """HEAD points directly at a commit."""


BranchState = NamedBranch | DetachedHead


@dataclass(frozen=True)
class Position:
    """Commit counts ahead/behind a comparison ref."""

    ahead: int
    behind: int

    @property
    def in_sync(self) -> bool:
        return self.ahead == 0 and self.behind == 0


@dataclass(frozen=True)
class DirtyState:
    """Number of changed files in the working tree and in the index."""

    worktree: int
    index: int

    @property
    def is_clean(self) -> bool:
        return self.worktree == 0 and self.index == 0


@dataclass(frozen=True)
class RemoteStatus:
    """Position relative to the fetched remote branch."""

    position: Position | None
    refreshed: bool


@dataclass(frozen=True)
class HealthyStatus:
    """Status of a repository that could be fully inspected."""

    branch: BranchState
    dirty: DirtyState
    position: Position | None
    head_oid: str
    remote_status: RemoteStatus | None = None

    @property
    def short_oid(self) -> str:
        return self.head_oid[:7]

    @property
    def is_detached(self) -> bool:
        return isinstance(self.branch, DetachedHead)


@dataclass(frozen=True)
class BrokenStatus:
    """A directory that looks like a repository but could not be inspected."""

    reason: str
    head_oid: str = ZERO_OID


RepoStatus = HealthyStatus | BrokenStatus


@dataclass(frozen=True)
class BranchInfo:
    """A local branch and the age of its tip commit."""

    name: str
    commit_time: int
    iso_date: str
    delta: str
