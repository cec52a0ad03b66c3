"""Settings file loading.

The settings file supplies option defaults through click's ``default_map``::

    {
      "color": true,
      "prompt": {"remote_status": true, "timeout": 1500},
      "dir-status": {"plain_tables": true}
    }
"""

import json
import os
from pathlib import Path
from typing import cast

from gitfu.git_ops import GitFuError

CONFIG_ENV = "GIT_FU_CONFIG"

GROUP_OPTIONS = {"repo_path", "color", "verbose"}
COMMAND_OPTIONS = {
    "prompt": {"fetch", "timeout", "remote_status"},
    "branches": {"plain_tables"},
    "dir-status": {"fetch", "timeout", "plain_tables"},
}


class SettingsError(GitFuError):
    """Settings file is missing or malformed."""


def settings_path() -> tuple[Path, bool]:
    """Return the settings path and whether it was named explicitly."""
    explicit = os.environ.get(CONFIG_ENV)
    if explicit:
        return Path(explicit).expanduser(), True
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "git-fu" / "settings.json", False


def _load_settings(path: Path) -> dict[str, object]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Invalid JSON in {path}") from exc

    if not isinstance(raw, dict):
        raise SettingsError(f"Invalid settings format in {path}")
    return raw


def _expect_command_section(value: object, command: str, path: Path) -> dict[str, object]:
    if not isinstance(value, dict):
        raise SettingsError(f"Invalid {command} section in {path}")
    section = cast(dict[str, object], value)
    unknown = sorted(set(section) - COMMAND_OPTIONS[command])
    if unknown:
        raise SettingsError(f"Unknown {command} option(s) in {path}: {', '.join(unknown)}")
    return section


def load_default_map(path: Path | None = None) -> dict[str, object]:
    """Read the settings file into a click default_map.

    A missing file at the default location means no overrides; a missing
    file named by GIT_FU_CONFIG is an error.
    """
    explicit = path is not None
    if path is None:
        path, explicit = settings_path()
    if not path.is_file():
        if explicit:
            raise SettingsError(f"Settings file not found: {path}")
        return {}

    default_map: dict[str, object] = {}
    for key, value in _load_settings(path).items():
        if key in COMMAND_OPTIONS:
            default_map[key] = _expect_command_section(value, key, path)
        elif key in GROUP_OPTIONS:
            default_map[key] = value
        else:
            raise SettingsError(f"Unknown setting '{key}' in {path}")
    return default_map
