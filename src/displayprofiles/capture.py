"""Snapshot capture: turn the live topology into a Profile."""

from __future__ import annotations

import dataclasses
import logging

from .models import UNNAMED, OutputSetting, Profile, Topology, Transform
from .modes import decode_mode

log = logging.getLogger(__name__)


def capture_profile(topology: Topology, *, record_rotation: bool = True) -> Profile:
    """Describe what is active right now as an unnamed Profile.

    Only connected connectors driven by an enabled CRTC are recorded.  When
    *record_rotation* is False the neutral transform is stored instead of the
    live one, mirroring a reconciler that does not restore rotation.
    """
    outputs: list[OutputSetting] = []
    for connector in topology.connectors:
        if not connector.connected:
            continue
        crtc = topology.crtc_by_id(connector.current_crtc)
        if crtc is None or not crtc.enabled:
            continue

        decoded = decode_mode(topology.modes, crtc.mode_id)
        if decoded is None:
            log.warning(
                "Skipping %s: CRTC %d uses unknown mode %s",
                connector.name, crtc.id, crtc.mode_id,
            )
            continue
        width, height, rate = decoded

        outputs.append(OutputSetting(
            connector_name=connector.name,
            display_name=connector.display_name,
            x=crtc.x,
            y=crtc.y,
            width=width,
            height=height,
            refresh_rate=rate,
            rotation=crtc.transform if record_rotation else Transform.NORMAL.value,
            primary=connector.primary,
        ))

    # A layout always has a primary; hardware may not report one
    if outputs and not any(o.primary for o in outputs):
        outputs[0] = dataclasses.replace(outputs[0], primary=True)

    return Profile(name=UNNAMED, clone=bool(topology.clone), outputs=outputs)
