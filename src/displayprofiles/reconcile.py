"""Translate a stored Profile plus the live topology into a configuration command."""

from __future__ import annotations

import logging

from .errors import StaleTopologyError
from .models import (
    ConfigurationCommand,
    Connector,
    CrtcUpdate,
    OutputSetting,
    OutputUpdate,
    Profile,
    Topology,
    Transform,
)
from .modes import find_mode

log = logging.getLogger(__name__)


def _resolve_targets(
    profile: Profile, topology: Topology,
) -> dict[int, tuple[OutputSetting, int]]:
    """Map connector id -> (requested setting, mode id) for outputs that can be enabled."""
    targets: dict[int, tuple[OutputSetting, int]] = {}
    for connector in topology.connectors:
        wanted = profile.output_for(connector.name)
        if wanted is None:
            continue
        mode_id = find_mode(
            topology.modes, connector.mode_ids,
            wanted.width, wanted.height, wanted.refresh_rate,
        )
        if mode_id is None:
            log.warning(
                "No mode %dx%d@%dHz on %s, disabling it",
                wanted.width, wanted.height, wanted.refresh_rate, connector.name,
            )
            continue
        targets[connector.id] = (wanted, mode_id)
    return targets


def _assign_crtcs(
    topology: Topology, enabled_ids: set[int],
) -> dict[int, int]:
    """Pick one distinct CRTC per connector.

    A connector keeps its current CRTC unless another enabled connector
    already claimed it. Disabled connectors hold on to their current CRTC so
    it can be switched off explicitly. Enabled connectors without a CRTC then
    take the first idle CRTC they are able to use, and only take over a CRTC
    that is being switched off when no idle one is left.
    """
    assigned: dict[int, int] = {}
    claimed: dict[int, int] = {}    # crtc id -> connector id

    for connector in topology.connectors:
        if connector.id in enabled_ids and connector.current_crtc is not None \
                and connector.current_crtc not in claimed:
            assigned[connector.id] = connector.current_crtc
            claimed[connector.current_crtc] = connector.id

    for connector in topology.connectors:
        if connector.id in enabled_ids:
            continue
        if connector.current_crtc is not None and connector.current_crtc not in claimed:
            assigned[connector.id] = connector.current_crtc
            claimed[connector.current_crtc] = connector.id

    for connector in topology.connectors:
        if connector.id not in enabled_ids or connector.id in assigned:
            continue
        usable = [c for c in connector.possible_crtcs if topology.crtc_by_id(c) is not None]
        idle = [c for c in usable if c not in claimed]
        releasing = [
            c for c in usable
            if c in claimed and claimed[c] not in enabled_ids
        ]
        if idle:
            crtc_id = idle[0]
        elif releasing:
            crtc_id = releasing[0]
            # The output it drove loses it and is only switched off implicitly
            del assigned[claimed[crtc_id]]
        else:
            continue
        assigned[connector.id] = crtc_id
        claimed[crtc_id] = connector.id

    return assigned


def _disable(
    command: ConfigurationCommand, topology: Topology,
    connector: Connector, crtc_id: int | None,
) -> None:
    crtc = topology.crtc_by_id(crtc_id)
    if crtc is not None:
        command.crtc_updates.append(CrtcUpdate(
            crtc_id=crtc.id,
            mode_id=None,
            x=crtc.x,
            y=crtc.y,
            transform=crtc.transform,
            connector_ids=[connector.id],
        ))
    command.output_updates.append(OutputUpdate(output_id=connector.id))


def build_configuration(
    profile: Profile,
    topology: Topology,
    *,
    expected_serial: int | None = None,
    restore_rotation: bool = True,
) -> ConfigurationCommand:
    """Build the command that makes *topology* look like *profile*.

    Every connector of the topology receives an explicit update: outputs the
    profile does not mention, or whose mode is unavailable, are switched off.
    Raises StaleTopologyError if *expected_serial* does not match the snapshot.
    """
    if expected_serial is not None and expected_serial != topology.serial:
        raise StaleTopologyError(expected_serial, topology.serial)

    targets = _resolve_targets(profile, topology)
    crtcs = _assign_crtcs(topology, set(targets))
    command = ConfigurationCommand(serial=topology.serial, persistent=True)

    for connector in topology.connectors:
        target = targets.get(connector.id)
        crtc_id = crtcs.get(connector.id)
        if target is None:
            _disable(command, topology, connector, crtc_id)
            continue
        if crtc_id is None:
            log.warning("No free CRTC for %s, disabling it", connector.name)
            _disable(command, topology, connector, None)
            continue

        wanted, mode_id = target
        transform = wanted.rotation if restore_rotation else Transform.NORMAL.value
        command.crtc_updates.append(CrtcUpdate(
            crtc_id=crtc_id,
            mode_id=mode_id,
            x=wanted.x,
            y=wanted.y,
            transform=transform,
            connector_ids=[connector.id],
        ))
        command.output_updates.append(OutputUpdate(
            output_id=connector.id,
            properties={"primary": wanted.primary},
        ))

    return command
