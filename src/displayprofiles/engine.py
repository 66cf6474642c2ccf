"""Reconciliation engine: keeps the profile list, live topology and shortcuts in sync."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .capture import capture_profile
from .codec import encode_profile
from .errors import ConfigurationRejected
from .keybindings import Keybindings
from .models import Profile, Topology, describe_profile, is_applicable, profiles_equal
from .profile_manager import ProfileManager
from .reconcile import build_configuration
from .settings import (
    KEY_CURRENT_PROFILE, KEY_RESTORE_ROTATION, MAX_KEYBINDINGS, keybinding_key,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileEntry:
    """One line of the profile list as a menu would show it."""

    index: int
    name: str
    applicable: bool
    active: bool
    description: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.index + 1}. {self.name}"


class Engine:
    """Recomputes entries on hardware and settings events and applies profiles.

    The engine never applies anything on its own: an event only leads to a
    fresh snapshot and re-rendered entries, so the configuration it applied
    itself converges without further action.
    """

    def __init__(
        self,
        source,
        profiles: ProfileManager,
        keybindings: Keybindings | None = None,
    ) -> None:
        self._source = source
        self._profiles = profiles
        self._keybindings = keybindings
        self.topology: Topology | None = None
        self.current: Profile | None = None
        self.entries: tuple[ProfileEntry, ...] = ()

    @property
    def source(self):
        return self._source

    @property
    def profiles(self) -> ProfileManager:
        return self._profiles

    @property
    def restore_rotation(self) -> bool:
        return self._profiles.settings.get_boolean(KEY_RESTORE_ROTATION)

    # ── Event handlers ──────────────────────────────────────────────

    def on_monitors_changed(self) -> None:
        """Hardware may have changed: refetch everything and re-render."""
        self.refresh()

    def on_settings_changed(self) -> None:
        """Stored profiles, shortcuts or the rotation policy may have changed.

        Our own current-profile write touches none of them and is ignored.
        """
        before = self._binding_state()
        if self._profiles.reload():
            log.info("Profile list changed (%d profiles)", len(self._profiles.list_all()))
            self.refresh()
        elif self._binding_state() != before:
            log.info("Shortcut or rotation settings changed")
            self.rebuild()
        else:
            log.debug("Settings changed, nothing relevant")

    def _binding_state(self) -> tuple:
        settings = self._profiles.settings
        accels = tuple(
            tuple(settings.get_strv(keybinding_key(i))) for i in range(MAX_KEYBINDINGS)
        )
        return settings.get_boolean(KEY_RESTORE_ROTATION), accels

    def refresh(self) -> None:
        self.topology = self._source.get_topology()
        self.rebuild()

    def rebuild(self) -> None:
        if self.topology is None:
            return
        topology = self.topology
        current = capture_profile(topology, record_rotation=self.restore_rotation)
        self.current = current
        if self._profiles.settings.set_string(KEY_CURRENT_PROFILE, encode_profile(current)):
            log.info("Current layout: %s", "; ".join(describe_profile(current)) or "none")

        entries: list[ProfileEntry] = []
        for i, p in enumerate(self._profiles.list_all()):
            applicable = is_applicable(p, topology)
            entries.append(ProfileEntry(
                index=i,
                name=p.name,
                applicable=applicable,
                active=applicable and profiles_equal(p, current),
                description=describe_profile(p),
            ))
        self.entries = tuple(entries)
        if self._keybindings is not None:
            self._keybindings.update(self.entries)

    # ── Queries ─────────────────────────────────────────────────────

    def active_entry(self) -> ProfileEntry | None:
        for entry in self.entries:
            if entry.active:
                return entry
        return None

    # ── Apply ───────────────────────────────────────────────────────

    def apply(self, profile: Profile) -> bool:
        """Apply *profile* against a fresh snapshot. Returns False if not sent/refused.

        When the entries were built from an earlier snapshot, the hardware must
        not have changed since, or the command is refused as stale.
        """
        topology = self._source.get_topology()
        if not is_applicable(profile, topology):
            log.warning("Profile %s does not fit the connected displays", profile.name)
            return False
        seen = self.topology.serial if self.topology is not None else None
        log.info("Applying profile: %s", profile.name)
        try:
            command = build_configuration(
                profile, topology,
                expected_serial=seen,
                restore_rotation=self.restore_rotation,
            )
            self._source.apply_configuration(command)
        except ConfigurationRejected as e:
            log.error("Could not apply profile %s: %s", profile.name, e.message)
            return False
        return True

    def apply_index(self, index: int) -> bool:
        profile = self._profiles.get(index)
        if profile is None:
            log.warning("No profile number %d", index + 1)
            return False
        return self.apply(profile)

    def apply_name(self, name: str) -> bool:
        profile = self._profiles.load(name)
        if profile is None:
            log.warning("No profile named %s", name)
            return False
        return self.apply(profile)

    def shutdown(self) -> None:
        """Unregister shortcuts; the engine stays usable for queries."""
        if self._keybindings is not None:
            self._keybindings.clear()
