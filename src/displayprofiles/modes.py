"""Mode table lookups between (width, height, rate) triples and backend mode ids."""

from __future__ import annotations

from collections.abc import Collection, Sequence

from .models import Mode


def find_mode(
    modes: Sequence[Mode],
    allowed_mode_ids: Collection[int],
    width: int,
    height: int,
    refresh_rate: int,
) -> int | None:
    """Return the id of the first allowed mode matching the requested geometry.

    Rates are compared after rounding, hardware reports sub-Hz jitter.
    Returns None when the connector offers no such mode.
    """
    for mode in modes:
        if mode.id not in allowed_mode_ids:
            continue
        if (mode.width, mode.height, round(mode.refresh_rate)) == (width, height, refresh_rate):
            return mode.id
    return None


def decode_mode(modes: Sequence[Mode], mode_id: int | None) -> tuple[int, int, int] | None:
    """Return ``(width, height, rounded_rate)`` for *mode_id*, or None if unknown."""
    if mode_id is None:
        return None
    for mode in modes:
        if mode.id == mode_id:
            return mode.width, mode.height, round(mode.refresh_rate)
    return None
