"""Text encoding of profiles for the settings store.

Profiles are stored as a JSON array so names containing separator characters
survive a round trip unchanged.
"""

from __future__ import annotations

import json

from .errors import ProfileFormatError
from .models import Profile, validate_profile


def encode_profile(profile: Profile) -> str:
    return json.dumps(profile.to_dict(), ensure_ascii=False)


def decode_profile(text: str) -> Profile | None:
    """Decode a single profile; an empty string means "no profile"."""
    if not text.strip():
        return None
    data = _loads(text)
    if not isinstance(data, dict):
        raise ProfileFormatError("Expected a profile object")
    return _profile_from(data)


def encode_profiles(profiles: list[Profile]) -> str:
    return json.dumps([p.to_dict() for p in profiles], ensure_ascii=False)


def decode_profiles(text: str) -> list[Profile]:
    """Decode the stored profile list; an empty string is an empty list."""
    if not text.strip():
        return []
    data = _loads(text)
    if not isinstance(data, list):
        raise ProfileFormatError("Expected a list of profiles")
    profiles = []
    for item in data:
        if not isinstance(item, dict):
            raise ProfileFormatError(f"Expected a profile object, got {type(item).__name__}")
        profiles.append(_profile_from(item))
    return profiles


def _loads(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ProfileFormatError(f"Invalid profile text: {e}") from e


def _profile_from(data: dict) -> Profile:
    try:
        profile = Profile.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise ProfileFormatError(f"Invalid profile {data.get('name', '')!r}: {e}") from e
    validate_profile(profile)
    return profile
