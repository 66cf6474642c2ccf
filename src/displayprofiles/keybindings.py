"""Keyboard shortcuts: binding N applies the Nth profile of the list."""

from __future__ import annotations

import logging
from typing import Protocol

from .settings import MAX_KEYBINDINGS, SettingsStore, keybinding_key
from .utils import APP_NAME

log = logging.getLogger(__name__)

MEDIA_KEYS_SCHEMA = "org.gnome.settings-daemon.plugins.media-keys"
CUSTOM_SCHEMA = "org.gnome.settings-daemon.plugins.media-keys.custom-keybinding"
CUSTOM_PATH = "/org/gnome/settings-daemon/plugins/media-keys/custom-keybindings/"


class Registrar(Protocol):
    def add(self, index: int, name: str, accelerator: str, command: str) -> None: ...

    def remove(self, index: int) -> None: ...


def apply_command(index: int) -> str:
    """Shell command that applies the profile at *index* (0-based)."""
    return f"{APP_NAME} apply --index {index + 1}"


class Keybindings:
    """Tracks which profile shortcuts are registered and keeps them in sync.

    Only applicable profiles among the first nine get a shortcut; unchanged
    bindings are left alone so repeated refreshes have no side effect.
    """

    def __init__(self, settings: SettingsStore, registrar: Registrar | None = None) -> None:
        self._settings = settings
        self._registrar = registrar
        self._registered: dict[int, tuple[str, str]] = {}

    @property
    def registered(self) -> dict[int, tuple[str, str]]:
        """index -> (profile name, accelerator)."""
        return dict(self._registered)

    def wanted(self, entries) -> dict[int, tuple[str, str]]:
        bindings: dict[int, tuple[str, str]] = {}
        for entry in entries:
            if entry.index >= MAX_KEYBINDINGS or not entry.applicable:
                continue
            accels = self._settings.get_strv(keybinding_key(entry.index))
            if accels:
                bindings[entry.index] = (entry.name, accels[0])
        return bindings

    def update(self, entries) -> bool:
        """Register shortcuts for *entries*. Returns True if anything changed."""
        wanted = self.wanted(entries)
        if wanted == self._registered:
            return False
        self.clear()
        for index, (name, accel) in sorted(wanted.items()):
            log.info("Binding %s to profile %d (%s)", accel, index + 1, name)
            if self._registrar is not None:
                self._registrar.add(index, name, accel, apply_command(index))
        self._registered = wanted
        return True

    def clear(self) -> None:
        for index in sorted(self._registered):
            if self._registrar is not None:
                self._registrar.remove(index)
        self._registered = {}


class GnomeKeybindings:
    """Registers shortcuts as GNOME custom keybindings via GSettings."""

    def __init__(self) -> None:
        import gi
        gi.require_version("Gio", "2.0")
        from gi.repository import Gio

        self._gio = Gio
        self._media_keys = Gio.Settings.new(MEDIA_KEYS_SCHEMA)

    @classmethod
    def create(cls) -> GnomeKeybindings | None:
        """Return a registrar, or None if the GNOME schemas are not installed."""
        try:
            import gi
            gi.require_version("Gio", "2.0")
            from gi.repository import Gio
        except (ImportError, ValueError):
            log.info("GLib not available, keyboard shortcuts disabled")
            return None
        source = Gio.SettingsSchemaSource.get_default()
        if source is None or source.lookup(CUSTOM_SCHEMA, True) is None:
            log.info("GNOME media-keys schema not installed, keyboard shortcuts disabled")
            return None
        return cls()

    def _path(self, index: int) -> str:
        return f"{CUSTOM_PATH}{APP_NAME}-{index + 1}/"

    def add(self, index: int, name: str, accelerator: str, command: str) -> None:
        path = self._path(index)
        entry = self._gio.Settings.new_with_path(CUSTOM_SCHEMA, path)
        entry.set_string("name", f"Display profile: {name}")
        entry.set_string("command", command)
        entry.set_string("binding", accelerator)
        paths = list(self._media_keys.get_strv("custom-keybindings"))
        if path not in paths:
            paths.append(path)
            self._media_keys.set_strv("custom-keybindings", paths)

    def remove(self, index: int) -> None:
        path = self._path(index)
        entry = self._gio.Settings.new_with_path(CUSTOM_SCHEMA, path)
        for key in ("name", "command", "binding"):
            entry.reset(key)
        paths = [p for p in self._media_keys.get_strv("custom-keybindings") if p != path]
        self._media_keys.set_strv("custom-keybindings", paths)
