"""Persistent settings stored in a JSON file, with change notification."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from .utils import read_json, settings_path, write_json

log = logging.getLogger(__name__)

KEY_PROFILES = "profiles"
KEY_CURRENT_PROFILE = "current-profile"
KEY_RESTORE_ROTATION = "restore-rotation"
KEY_BACKEND = "backend"
KEY_KEYBINDING_PROFILE = "keybinding-profile-"

MAX_KEYBINDINGS = 9

DEFAULTS: dict = {
    KEY_PROFILES: "",
    KEY_CURRENT_PROFILE: "",
    KEY_RESTORE_ROTATION: True,
    KEY_BACKEND: "auto",
    **{f"{KEY_KEYBINDING_PROFILE}{i}": [] for i in range(1, MAX_KEYBINDINGS + 1)},
}


def keybinding_key(index: int) -> str:
    """Settings key of the shortcut for the *index*-th profile (0-based)."""
    return f"{KEY_KEYBINDING_PROFILE}{index + 1}"


class SettingsStore:
    """Key/value settings backed by a JSON object on disk.

    Values are re-read from disk on every ``reload()`` so changes made by other
    processes (the CLI, an editor) become visible to the daemon.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or settings_path()
        self._values: dict = {}
        self._monitor = None
        self.reload()

    @property
    def path(self) -> Path:
        return self._path

    def reload(self) -> None:
        data = read_json(self._path)
        if data is not None and not isinstance(data, dict):
            log.warning("Ignoring malformed settings file %s", self._path)
            data = None
        self._values = dict(data or {})

    def get(self, key: str):
        return self._values.get(key, DEFAULTS.get(key))

    def get_string(self, key: str) -> str:
        value = self.get(key)
        return value if isinstance(value, str) else ""

    def get_boolean(self, key: str) -> bool:
        return bool(self.get(key))

    def get_strv(self, key: str) -> list[str]:
        value = self.get(key)
        if isinstance(value, str):
            return [value] if value else []
        if isinstance(value, list):
            return [v for v in value if isinstance(v, str) and v]
        return []

    def set(self, key: str, value) -> bool:
        """Store *value* under *key*. Returns False if nothing changed."""
        self.reload()
        if key in self._values and self._values[key] == value:
            return False
        self._values[key] = value
        write_json(self._path, self._values)
        return True

    def set_string(self, key: str, value: str) -> bool:
        return self.set(key, value)

    def watch(self, callback: Callable[[], None]):
        """Call *callback* whenever the settings file changes on disk.

        Uses a Gio.FileMonitor, so it must be called from the thread that runs
        the GLib main loop.  Returns the monitor (keep a reference).
        """
        import gi
        gi.require_version("Gio", "2.0")
        from gi.repository import Gio

        gfile = Gio.File.new_for_path(str(self._path))
        monitor = gfile.monitor_file(Gio.FileMonitorFlags.WATCH_MOVES, None)
        relevant = {
            Gio.FileMonitorEvent.CHANGES_DONE_HINT,
            Gio.FileMonitorEvent.CREATED,
            Gio.FileMonitorEvent.DELETED,
            Gio.FileMonitorEvent.RENAMED,
            Gio.FileMonitorEvent.MOVED_IN,
        }

        def _on_changed(_monitor, _file, _other, event_type) -> None:
            if event_type in relevant:
                callback()

        monitor.connect("changed", _on_changed)
        self._monitor = monitor
        log.debug("Watching %s", self._path)
        return monitor
