"""Exception hierarchy shared by the engine, the backends and the CLI."""

from __future__ import annotations


class DisplayProfilesError(Exception):
    """Base class for all display-profiles errors."""


class TopologyUnavailable(DisplayProfilesError):
    """No display backend is reachable (D-Bus name missing, xrandr absent)."""


class ConfigurationRejected(DisplayProfilesError):
    """The backend refused a configuration command as a whole."""

    def __init__(self, message: str, *, serial: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.serial = serial


class StaleTopologyError(ConfigurationRejected):
    """A command was built or sent against an outdated topology serial."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Topology serial {actual} does not match expected {expected}",
            serial=actual,
        )
        self.expected = expected
        self.actual = actual


class ProfileFormatError(DisplayProfilesError, ValueError):
    """Stored profile text could not be decoded."""
