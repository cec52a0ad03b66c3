"""Rendering of repository statuses and branch lists.

Every ``render_*`` function is pure: it takes the data and a
``RenderOptions`` and returns the text to print, with ANSI colors only when
``options.color`` is set.
"""

from __future__ import annotations

import io
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from rich import box
from rich.console import Console, RenderableType
from rich.table import Table
from rich.text import Text

from gitfu.models import (
    BranchInfo,
    BrokenStatus,
    DirtyState,
    HealthyStatus,
    NamedBranch,
    Position,
    RepoStatus,
)

CLEAN_MARK = "✔"
DIRTY_MARK = "●"
AHEAD_MARK = "↑"
BEHIND_MARK = "↓"

REPO_HEADERS = ["Repo", "Branch", "Dirty", "Position", "Remote"]
BRANCH_HEADERS = ["Last commit", "Age", "Branch name"]


@dataclass(frozen=True)
class RenderOptions:
    """How to render: colors on or off, bordered or plain tables."""

    color: bool = True
    plain_tables: bool = False
    width: int = 120


def _render(renderable: RenderableType, options: RenderOptions, soft_wrap: bool = False) -> str:
    console = Console(
        file=io.StringIO(),
        width=options.width,
        color_system="standard" if options.color else None,
        force_terminal=options.color,
        no_color=not options.color,
        highlight=False,
        markup=False,
        emoji=False,
        legacy_windows=False,
    )
    console.print(renderable, end="", soft_wrap=soft_wrap)
    output = console.file.getvalue()
    return output.rstrip("\n")


def _markers(position: Position) -> tuple[str, str]:
    ahead = f"{AHEAD_MARK}{position.ahead}" if position.ahead else ""
    behind = f"{BEHIND_MARK}{position.behind}" if position.behind else ""
    return ahead, behind


def _branch_label(status: HealthyStatus) -> str:
    if isinstance(status.branch, NamedBranch):
        return status.branch.name
    return status.short_oid


def branch_text(status: HealthyStatus) -> Text:
    style = "magenta" if isinstance(status.branch, NamedBranch) else "cyan"
    return Text(_branch_label(status), style=style)


def position_text(status: HealthyStatus) -> Text:
    """Local ahead/behind markers, then remote markers when they add information."""
    text = Text()
    if status.position is not None:
        ahead, behind = _markers(status.position)
        if ahead:
            text.append(ahead, style="green")
        if behind:
            if text.plain:
                text.append(" ")
            text.append(behind, style="red")

    remote = status.remote_status
    if remote is None or remote.position is None:
        return text
    if remote.position.in_sync or remote.position == status.position:
        return text
    ahead, behind = _markers(remote.position)
    # yellow marks a comparison against a remote ref that was not refreshed
    text.append(f"[{ahead}|{behind}]", style="blue" if remote.refreshed else "yellow")
    return text


def dirty_text(dirty: DirtyState) -> Text:
    if dirty.is_clean:
        return Text(CLEAN_MARK, style="green")
    text = Text(DIRTY_MARK, style="red")
    if dirty.worktree:
        text.append(str(dirty.worktree), style="yellow")
    if dirty.index:
        text.append(f"+{dirty.index}", style="yellow")
    return text


def prompt_text(status: RepoStatus) -> Text:
    if isinstance(status, BrokenStatus):
        return Text.assemble("(", (status.reason, "red"), ")")
    return Text.assemble(
        "(",
        branch_text(status),
        "|",
        position_text(status),
        dirty_text(status.dirty),
        ")",
    )


def render_prompt(status: RepoStatus, options: RenderOptions | None = None) -> str:
    """Render a status as ``(branch|<position><dirty>)`` for a shell prompt."""
    return _render(prompt_text(status), options or RenderOptions(), soft_wrap=True)


def _compact_position(position: Position | None) -> str:
    if position is None or position.in_sync:
        return ""
    return f"{AHEAD_MARK}{position.ahead}{BEHIND_MARK}{position.behind}"


def _new_table(headers: Iterable[str], options: RenderOptions) -> Table:
    if options.plain_tables:
        table = Table(box=None, show_edge=False, pad_edge=False, header_style="bold")
    else:
        table = Table(box=box.ROUNDED, header_style="bold")
    for header in headers:
        table.add_column(header)
    return table


def repo_row(name: str, status: RepoStatus) -> list[Text]:
    """Cells of one repository table row."""
    if isinstance(status, BrokenStatus):
        return [
            Text(name, style="magenta"),
            Text(status.reason, style="magenta"),
            Text(""),
            Text(""),
            Text(""),
        ]

    dirty = status.dirty
    dirty_cell = "" if dirty.is_clean else f"{DIRTY_MARK}{dirty.worktree}+{dirty.index}"
    position_cell = _compact_position(status.position)

    remote_cell = Text("")
    if status.remote_status is not None:
        remote_cell = Text(
            _compact_position(status.remote_status.position),
            style="green" if status.remote_status.refreshed else "yellow",
        )

    row_style = "yellow" if dirty_cell or position_cell else ""
    return [
        Text(name, style=row_style),
        Text(_branch_label(status), style=row_style),
        Text(dirty_cell, style="red"),
        Text(position_cell, style="green"),
        remote_cell,
    ]


def render_repo_table(
    results: Mapping[str, RepoStatus] | None, options: RenderOptions | None = None
) -> str:
    """Render one row per repository, sorted by repository name."""
    if not results:
        return ""
    options = options or RenderOptions()
    table = _new_table(REPO_HEADERS, options)
    for name in sorted(results):
        table.add_row(*repo_row(name, results[name]))
    return _render(table, options)


def render_branch_table(
    branches: Iterable[BranchInfo], options: RenderOptions | None = None
) -> str:
    """Render one row per branch, in the order given."""
    options = options or RenderOptions()
    table = _new_table(BRANCH_HEADERS, options)
    for info in branches:
        table.add_row(
            Text(info.iso_date, style="green"),
            Text(info.delta, style="blue"),
            Text(info.name),
        )
    return _render(table, options)
