from __future__ import annotations

import json
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from gitfu import cli


def _invoke(*args: str, **kwargs):
    return CliRunner().invoke(cli.main, list(args), **kwargs)


def test_prompt_outside_repository_prints_nothing(tmp_path: Path) -> None:
    result = _invoke("-d", str(tmp_path), "prompt")
    assert result.exit_code == 0
    assert result.output == ""


def test_prompt_missing_path_prints_nothing(tmp_path: Path) -> None:
    result = _invoke("-d", str(tmp_path / "missing"), "prompt")
    assert result.exit_code == 0
    assert result.output == ""


def test_prompt_plain(repo) -> None:
    repo.write("new.txt")
    result = _invoke("-d", str(repo.path), "--no-color", "prompt")
    assert result.exit_code == 0, result.output
    assert result.output == "(main|●1)\n"


def test_prompt_remote_status(repo) -> None:
    base = repo.git("rev-parse", "HEAD")
    repo.commit("ahead")
    repo.track_fake_origin(base)
    result = _invoke("-d", str(repo.path), "--no-color", "prompt", "--remote-status")
    assert result.exit_code == 0, result.output
    assert result.output == "(main|↑1✔)\n"


def test_prompt_color_follows_no_color_env(repo) -> None:
    plain = _invoke("-d", str(repo.path), "prompt", env={"NO_COLOR": "1"})
    assert "\x1b[" not in plain.output
    forced = _invoke("-d", str(repo.path), "--color", "prompt", env={"NO_COLOR": "1"})
    assert "\x1b[" in forced.output


def test_prompt_broken_repository_fails(tmp_path: Path, make_repo) -> None:
    broken = make_repo(tmp_path / "broken")
    (broken.path / ".git" / "HEAD").write_text("this is not a ref\n")
    result = _invoke("-d", str(broken.path), "prompt")
    assert result.exit_code == 1
    assert "git-fu:" in result.output


def test_branches_outside_repository_prints_nothing(tmp_path: Path) -> None:
    result = _invoke("-d", str(tmp_path), "branches")
    assert result.exit_code == 0
    assert result.output == ""


def test_branches_most_recent_first(repo) -> None:
    repo.git("checkout", "-q", "-b", "stale")
    repo.commit("stale work", when=1_500_000_000)
    repo.git("checkout", "-q", "main")

    result = _invoke("-d", str(repo.path), "--no-color", "branches", "--plain-tables")
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert "Branch name" in lines[0]
    assert "main" in lines[1]
    assert "stale" in lines[2]
    assert "2017-07-14 02:40:00" in lines[2]


def test_dir_status_table(tmp_path: Path, make_repo) -> None:
    make_repo(tmp_path / "alpha")
    make_repo(tmp_path / "beta").write("dirty.txt")
    (tmp_path / "notes").mkdir()

    result = _invoke("-d", str(tmp_path), "--no-color", "dir-status")
    assert result.exit_code == 0, result.output
    assert "╭" in result.output
    assert "alpha" in result.output
    assert "●1+0" in result.output
    assert "notes" not in result.output


def test_dir_status_without_repositories(tmp_path: Path) -> None:
    (tmp_path / "notes").mkdir()
    result = _invoke("-d", str(tmp_path), "dir-status")
    assert result.exit_code == 0
    assert result.output == ""


def test_dir_status_missing_directory(tmp_path: Path) -> None:
    result = _invoke("-d", str(tmp_path / "missing"), "dir-status")
    assert result.exit_code == 1
    assert "git-fu:" in result.output


def test_dir_status_defaults_from_settings(tmp_path: Path, make_repo) -> None:
    make_repo(tmp_path / "alpha")
    default_map = {"color": False, "dir-status": {"plain_tables": True}}
    result = _invoke("-d", str(tmp_path), "dir-status", default_map=default_map)
    assert result.exit_code == 0, result.output
    assert "alpha" in result.output
    assert "╭" not in result.output
    assert "\x1b[" not in result.output


def test_broken_pipe_exits_quietly(repo, monkeypatch: pytest.MonkeyPatch) -> None:
    def closed_pipe(*args, **kwargs) -> None:
        raise BrokenPipeError

    monkeypatch.setattr(click, "echo", closed_pipe)
    monkeypatch.setattr(cli, "_silence_stdout", lambda: None)
    result = _invoke("-d", str(repo.path), "prompt")
    assert result.exit_code == 0


def test_shell_init() -> None:
    result = _invoke("shell-init")
    assert result.exit_code == 0
    assert "git-fu prompt" in result.output
    assert "# fish" in result.output


def test_run_reports_bad_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({"prompt": {"colour": True}}))
    monkeypatch.setenv("GIT_FU_CONFIG", str(config))
    with pytest.raises(SystemExit) as excinfo:
        cli.run()
    assert excinfo.value.code == 1
    assert "Unknown prompt option" in capsys.readouterr().err
