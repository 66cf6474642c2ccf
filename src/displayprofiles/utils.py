"""Utility helpers: XDG paths, file I/O."""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path


APP_NAME = "display-profiles"


def config_dir() -> Path:
    """Return ~/.config/display-profiles, creating it if needed."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    d = base / APP_NAME
    d.mkdir(parents=True, exist_ok=True)
    return d


def settings_path() -> Path:
    """Return the path to the settings file."""
    return config_dir() / "settings.json"


def is_xrandr_installed() -> bool:
    """Return True if the xrandr binary is available on the system."""
    return shutil.which("xrandr") is not None


def has_x_display() -> bool:
    return bool(os.environ.get("DISPLAY"))


def read_json(path: Path) -> dict | list | None:
    """Read and parse a JSON file, returning None on failure."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None


def write_json(path: Path, data: dict | list) -> None:
    """Write data as formatted JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    tmp.replace(path)
