"""Profile management: save, load, delete and list stored profiles."""

from __future__ import annotations

import logging

from .codec import decode_profiles, encode_profiles
from .errors import ProfileFormatError
from .models import Profile, validate_profile
from .settings import KEY_PROFILES, SettingsStore

log = logging.getLogger(__name__)


class ProfileManager:
    """Ordered list of display profiles kept in the settings store.

    The decoded list is cached and only replaced as a whole by ``reload()``.
    """

    def __init__(self, settings: SettingsStore | None = None) -> None:
        self._settings = settings or SettingsStore()
        self._raw: str | None = None
        self._profiles: tuple[Profile, ...] = ()
        self.reload()

    @property
    def settings(self) -> SettingsStore:
        return self._settings

    def reload(self) -> bool:
        """Re-read the stored list. Returns True if the stored text changed."""
        self._settings.reload()
        raw = self._settings.get_string(KEY_PROFILES)
        if raw == self._raw:
            return False
        try:
            profiles = decode_profiles(raw)
        except ProfileFormatError as e:
            log.error("Ignoring stored profiles: %s", e)
            profiles = []
        self._raw = raw
        self._profiles = tuple(profiles)
        return True

    def list_all(self) -> list[Profile]:
        """Return the profiles in list order."""
        return list(self._profiles)

    def list_profiles(self) -> list[str]:
        """Return the profile names in list order."""
        return [p.name for p in self._profiles]

    def load(self, name: str) -> Profile | None:
        """Load a profile by name."""
        for p in self._profiles:
            if p.name == name:
                return p
        return None

    def get(self, index: int) -> Profile | None:
        """Return the profile at *index* (0-based), or None."""
        if 0 <= index < len(self._profiles):
            return self._profiles[index]
        return None

    def save(self, profile: Profile) -> None:
        """Store a profile, replacing one with the same name in place."""
        validate_profile(profile)
        profiles = self.list_all()
        for i, p in enumerate(profiles):
            if p.name == profile.name:
                profiles[i] = profile
                break
        else:
            profiles.append(profile)
        self._store(profiles)

    def delete(self, name: str) -> bool:
        """Delete a profile. Returns True if it existed."""
        profiles = [p for p in self._profiles if p.name != name]
        if len(profiles) == len(self._profiles):
            return False
        self._store(profiles)
        return True

    def _store(self, profiles: list[Profile]) -> None:
        raw = encode_profiles(profiles)
        self._settings.set_string(KEY_PROFILES, raw)
        self._raw = raw
        self._profiles = tuple(profiles)
