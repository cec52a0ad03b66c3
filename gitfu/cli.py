import logging
import os
import shutil
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from gitfu import git_ops, services
from gitfu.git_ops import GitFuError
from gitfu.settings import SettingsError, load_default_map
from gitfu.ui import RenderOptions, render_branch_table, render_prompt, render_repo_table

logger = logging.getLogger(__name__)


@dataclass
class CliState:
    repo_path: Path
    color: bool

    def render_options(self, plain_tables: bool = False) -> RenderOptions:
        width = shutil.get_terminal_size((120, 24)).columns
        return RenderOptions(color=self.color, plain_tables=plain_tables, width=width)


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_time=False, show_path=False)],
        force=True,
    )


def _silence_stdout() -> None:
    # The interpreter flushes stdout once more at exit.
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, sys.stdout.fileno())


def _echo(text: str) -> None:
    """Print to stdout; a reader that went away ends the program quietly."""
    try:
        click.echo(text)
        sys.stdout.flush()
    except BrokenPipeError:
        _silence_stdout()
        raise SystemExit(0)


@contextmanager
def _exit_on_error() -> Iterator[None]:
    try:
        yield
    except (GitFuError, OSError) as exc:
        click.echo(f"git-fu: {exc}", err=True)
        raise SystemExit(1) from exc


def _color_default() -> bool:
    return not os.environ.get("NO_COLOR")


timeout_option = click.option(
    "-t",
    "--timeout",
    type=click.IntRange(min=0),
    default=services.DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Give up on git fetch after this many milliseconds.",
)
fetch_option = click.option(
    "-f", "--fetch", is_flag=True, help="Run git fetch before comparing with origin."
)
plain_tables_option = click.option(
    "-p", "--plain-tables", is_flag=True, help="Draw tables without borders."
)


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-d",
    "--repo-path",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Repository (or, for dir-status, parent directory) to inspect.",
)
@click.option("--color/--no-color", default=_color_default, help="Colorize output.")
@click.option("-v", "--verbose", count=True, help="Log more to stderr (repeat for debug).")
@click.pass_context
def main(ctx: click.Context, repo_path: Path, color: bool, verbose: int) -> None:
    """git-fu: compact git status for shell prompts."""
    _configure_logging(verbose)
    ctx.obj = CliState(repo_path=repo_path, color=color)


@main.command("prompt")
@fetch_option
@timeout_option
@click.option(
    "-r", "--remote-status", is_flag=True, help="Compare with origin/<branch> as well."
)
@click.pass_obj
def prompt(state: CliState, fetch: bool, timeout: int, remote_status: bool) -> None:
    """Print the status of the repository in one line."""
    with _exit_on_error():
        try:
            repo = git_ops.open_repo(state.repo_path)
        except git_ops.NotARepositoryError:
            return
        status = services.load_repo_status(
            repo, remote_status=remote_status or fetch, fetch=fetch, timeout_ms=timeout
        )
    _echo(render_prompt(status, state.render_options()))


@main.command("branches")
@plain_tables_option
@click.pass_obj
def branches(state: CliState, plain_tables: bool) -> None:
    """Print local branches, most recently committed first."""
    with _exit_on_error():
        try:
            repo = git_ops.open_repo(state.repo_path)
        except git_ops.NotARepositoryError:
            return
        infos = services.load_branches(repo)
    if not infos:
        return
    _echo(render_branch_table(infos, state.render_options(plain_tables)))


@main.command("dir-status")
@fetch_option
@timeout_option
@plain_tables_option
@click.pass_obj
def dir_status(state: CliState, fetch: bool, timeout: int, plain_tables: bool) -> None:
    """Print the status of every repository directly under the path."""
    with _exit_on_error():
        results = services.collect_directory_status(
            state.repo_path, fetch=fetch, timeout_ms=timeout
        )
    if results is None:
        logger.info("No git repositories found under %s", state.repo_path)
        return
    _echo(render_repo_table(results, state.render_options(plain_tables)))


@main.command("shell-init")
def shell_init() -> None:
    """Print prompt integration for bash, zsh and fish."""
    bash = r'''__git_fu_ps1() {
  command git-fu prompt 2>/dev/null
}
PS1='$(__git_fu_ps1) '"$PS1"
'''
    zsh = r'''setopt PROMPT_SUBST
PROMPT='$(command git-fu prompt 2>/dev/null) '"$PROMPT"
'''
    fish = r'''function fish_right_prompt
  command git-fu prompt 2>/dev/null
end
'''
    _echo("# bash\n" + bash + "\n# zsh\n" + zsh + "\n# fish\n" + fish)


def run() -> None:
    """Entry point: read the settings file, then dispatch."""
    try:
        default_map = load_default_map()
    except (SettingsError, OSError) as exc:
        click.echo(f"git-fu: {exc}", err=True)
        raise SystemExit(1) from exc
    main(default_map=default_map)


if __name__ == "__main__":
    run()
