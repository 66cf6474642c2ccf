"""Data models: OutputSetting, Profile, live topology and configuration commands."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import ClassVar

from .errors import ProfileFormatError


UNNAMED = "Unnamed"


# ── Enums ────────────────────────────────────────────────────────────────

class Transform(Enum):
    NORMAL = 0
    ROTATE_90 = 1
    ROTATE_180 = 2
    ROTATE_270 = 3
    FLIPPED = 4
    FLIPPED_90 = 5
    FLIPPED_180 = 6
    FLIPPED_270 = 7

    @classmethod
    def coerce(cls, value: int) -> Transform:
        """Map an arbitrary backend transform code, falling back to NORMAL."""
        try:
            return cls(value)
        except ValueError:
            return cls.NORMAL


# ── Profile ──────────────────────────────────────────────────────────────

@dataclass
class OutputSetting:
    connector_name: str = ""    # e.g. "HDMI-1", "eDP-1"
    display_name: str = ""      # e.g. "Acme 24"
    x: int = 0
    y: int = 0
    width: int = 1920
    height: int = 1080
    refresh_rate: int = 60      # rounded Hz
    rotation: int = 0           # Transform value
    primary: bool = False

    _FIELDS: ClassVar[tuple[str, ...]] = (
        "connector_name", "display_name", "x", "y", "width", "height",
        "refresh_rate", "rotation", "primary",
    )

    @property
    def transform(self) -> Transform:
        return Transform.coerce(self.rotation)

    def describe(self) -> str:
        return f"{self.display_name} - {self.width}x{self.height}@{self.refresh_rate}Hz"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> OutputSetting:
        kwargs = {k: v for k, v in d.items() if k in cls._FIELDS}
        for key in ("x", "y", "width", "height", "refresh_rate", "rotation"):
            if key in kwargs:
                kwargs[key] = int(kwargs[key])
        if "primary" in kwargs:
            kwargs["primary"] = bool(kwargs["primary"])
        return cls(**kwargs)


@dataclass
class Profile:
    name: str = ""
    clone: bool = False
    outputs: list[OutputSetting] = field(default_factory=list)

    @property
    def connector_names(self) -> list[str]:
        return [o.connector_name for o in self.outputs]

    def output_for(self, connector_name: str) -> OutputSetting | None:
        for o in self.outputs:
            if o.connector_name == connector_name:
                return o
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "clone": self.clone,
            "outputs": [o.to_dict() for o in self.outputs],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Profile:
        return cls(
            name=str(d.get("name", "")),
            clone=bool(d.get("clone", False)),
            outputs=[OutputSetting.from_dict(o) for o in d.get("outputs", [])],
        )


# ── Live topology ────────────────────────────────────────────────────────

@dataclass
class Mode:
    id: int
    width: int
    height: int
    refresh_rate: float


@dataclass
class Crtc:
    id: int
    mode_id: int | None = None          # None = disabled
    x: int = 0
    y: int = 0
    transform: int = 0
    connector_ids: list[int] = field(default_factory=list)
    width: int = 0
    height: int = 0

    @property
    def enabled(self) -> bool:
        return self.mode_id is not None


@dataclass
class Connector:
    id: int
    name: str
    current_crtc: int | None = None
    display_name: str = ""
    primary: bool = False
    mode_ids: list[int] = field(default_factory=list)
    possible_crtcs: list[int] = field(default_factory=list)
    connected: bool = True


@dataclass
class Topology:
    """A point-in-time read of the display hardware.

    ``serial`` is the backend generation counter; every command derived from
    this snapshot must carry it unchanged.
    """

    serial: int = 0
    connectors: list[Connector] = field(default_factory=list)
    crtcs: list[Crtc] = field(default_factory=list)
    modes: list[Mode] = field(default_factory=list)
    clone: bool | None = None

    def connector_by_name(self, name: str) -> Connector | None:
        for c in self.connectors:
            if c.name == name:
                return c
        return None

    def crtc_by_id(self, crtc_id: int | None) -> Crtc | None:
        if crtc_id is None:
            return None
        for c in self.crtcs:
            if c.id == crtc_id:
                return c
        return None


# ── Configuration command ────────────────────────────────────────────────

@dataclass
class CrtcUpdate:
    crtc_id: int
    mode_id: int | None
    x: int
    y: int
    transform: int
    connector_ids: list[int] = field(default_factory=list)
    properties: dict = field(default_factory=dict)

    @property
    def disables(self) -> bool:
        return self.mode_id is None


@dataclass
class OutputUpdate:
    output_id: int
    properties: dict = field(default_factory=dict)


@dataclass
class ConfigurationCommand:
    serial: int
    persistent: bool = True
    crtc_updates: list[CrtcUpdate] = field(default_factory=list)
    output_updates: list[OutputUpdate] = field(default_factory=list)

    def crtc_update_for(self, connector_id: int) -> CrtcUpdate | None:
        for u in self.crtc_updates:
            if connector_id in u.connector_ids:
                return u
        return None

    def output_update_for(self, connector_id: int) -> OutputUpdate | None:
        for u in self.output_updates:
            if u.output_id == connector_id:
                return u
        return None


# ── Predicates ───────────────────────────────────────────────────────────

def profiles_equal(a: Profile, b: Profile) -> bool:
    """True if *a* and *b* describe the same layout, ignoring output order and name."""
    if len(a.outputs) != len(b.outputs) or a.clone != b.clone:
        return False
    left = sorted(a.outputs, key=lambda o: o.connector_name)
    right = sorted(b.outputs, key=lambda o: o.connector_name)
    return all(
        getattr(x, f) == getattr(y, f)
        for x, y in zip(left, right)
        for f in OutputSetting._FIELDS
    )


def is_applicable(profile: Profile, topology: Topology) -> bool:
    """True if every output the profile needs is connected with the same monitor."""
    for output in profile.outputs:
        connector = topology.connector_by_name(output.connector_name)
        if connector is None or not connector.connected:
            return False
        if connector.display_name != output.display_name:
            return False
    return True


def validate_profile(profile: Profile) -> None:
    """Raise ProfileFormatError unless connectors are unique and exactly one output is primary."""
    names = profile.connector_names
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ProfileFormatError(
            f"Profile {profile.name!r} lists {', '.join(duplicates)} more than once"
        )
    primaries = sum(1 for o in profile.outputs if o.primary)
    if profile.outputs and primaries != 1:
        raise ProfileFormatError(
            f"Profile {profile.name!r} has {primaries} primary outputs, expected 1"
        )


def describe_profile(profile: Profile) -> list[str]:
    """Human readable one-line summaries of each output."""
    suffix = " (Cloned)" if profile.clone else ""
    return [o.describe() + suffix for o in profile.outputs]
