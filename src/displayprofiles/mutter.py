"""Mutter DisplayConfig backend over D-Bus."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .errors import ConfigurationRejected, StaleTopologyError, TopologyUnavailable
from .models import ConfigurationCommand, Connector, Crtc, Mode, Topology

log = logging.getLogger(__name__)

BUS_NAME = "org.gnome.Mutter.DisplayConfig"
OBJECT_PATH = "/org/gnome/Mutter/DisplayConfig"
INTERFACE = "org.gnome.Mutter.DisplayConfig"

APPLY_SIGNATURE = "(uba(uiiiuaua{sv})a(ua{sv}))"


def topology_from_resources(resources: tuple) -> Topology:
    """Build a Topology from an unpacked ``GetResources`` reply.

    crtcs:   (id, winsys_id, x, y, width, height, current_mode, current_transform, transforms, props)
    outputs: (id, winsys_id, current_crtc, possible_crtcs, name, modes, clones, props)
    modes:   (id, winsys_id, width, height, frequency[, flags])
    """
    serial, raw_crtcs, raw_outputs, raw_modes = resources[:4]

    modes = [
        Mode(id=m[0], width=m[2], height=m[3], refresh_rate=float(m[4]))
        for m in raw_modes
    ]

    connectors: list[Connector] = []
    for o in raw_outputs:
        props = o[7] or {}
        current = o[2]
        connectors.append(Connector(
            id=o[0],
            name=o[4],
            current_crtc=current if current >= 0 else None,
            display_name=props.get("display-name", ""),
            primary=bool(props.get("primary", False)),
            mode_ids=list(o[5]),
            possible_crtcs=list(o[3]),
            # GetResources only reports connected outputs
            connected=True,
        ))

    crtcs: list[Crtc] = []
    for c in raw_crtcs:
        mode = c[6]
        crtcs.append(Crtc(
            id=c[0],
            mode_id=mode if mode >= 0 else None,
            x=c[2],
            y=c[3],
            width=c[4],
            height=c[5],
            transform=c[7],
            connector_ids=[k.id for k in connectors if k.current_crtc == c[0]],
        ))

    # No global mirror flag in this API
    return Topology(serial=serial, connectors=connectors, crtcs=crtcs, modes=modes, clone=None)


def configuration_args(command: ConfigurationCommand) -> tuple:
    """Flatten a command into the ``ApplyConfiguration`` argument tuple."""
    crtcs = [
        (
            u.crtc_id,
            -1 if u.mode_id is None else u.mode_id,
            u.x,
            u.y,
            u.transform,
            list(u.connector_ids),
            dict(u.properties),
        )
        for u in command.crtc_updates
    ]
    outputs = [(u.output_id, dict(u.properties)) for u in command.output_updates]
    return command.serial, command.persistent, crtcs, outputs


class MutterDisplayConfig:
    """Read and apply monitor configuration through ``org.gnome.Mutter.DisplayConfig``."""

    name = "Mutter"

    def __init__(self, *, bus_type: Any = None) -> None:
        try:
            import gi
            gi.require_version("Gio", "2.0")
            from gi.repository import Gio, GLib
        except (ImportError, ValueError) as e:
            raise TopologyUnavailable(f"GLib bindings not available: {e}") from e

        self._gio = Gio
        self._glib = GLib
        self._bus_type = bus_type if bus_type is not None else Gio.BusType.SESSION
        self._subscription: int | None = None
        try:
            self._proxy = Gio.DBusProxy.new_for_bus_sync(
                self._bus_type,
                Gio.DBusProxyFlags.DO_NOT_LOAD_PROPERTIES,
                None,
                BUS_NAME,
                OBJECT_PATH,
                INTERFACE,
                None,
            )
        except GLib.Error as e:
            raise TopologyUnavailable(f"Cannot reach {BUS_NAME}: {e.message}") from e
        if self._proxy.get_name_owner() is None:
            raise TopologyUnavailable(f"{BUS_NAME} is not running")

    def get_resources(self) -> tuple:
        """Call ``GetResources`` and return the unpacked reply."""
        try:
            result = self._proxy.call_sync(
                "GetResources", None, self._gio.DBusCallFlags.NONE, -1, None,
            )
        except self._glib.Error as e:
            raise TopologyUnavailable(f"GetResources failed: {e.message}") from e
        return result.unpack()

    def get_topology(self) -> Topology:
        return topology_from_resources(self.get_resources())

    def apply_configuration(self, command: ConfigurationCommand) -> None:
        """Send the command; Mutter rejects it wholesale on a stale serial."""
        GLib = self._glib
        serial, persistent, crtcs, outputs = configuration_args(command)
        crtcs = [
            (cid, mode, x, y, transform, ids, _variant_dict(GLib, props))
            for cid, mode, x, y, transform, ids, props in crtcs
        ]
        outputs = [(oid, _variant_dict(GLib, props)) for oid, props in outputs]
        params = GLib.Variant(APPLY_SIGNATURE, (serial, persistent, crtcs, outputs))
        log.info(
            "ApplyConfiguration serial=%d crtcs=%d outputs=%d",
            serial, len(crtcs), len(outputs),
        )
        try:
            self._proxy.call_sync(
                "ApplyConfiguration", params, self._gio.DBusCallFlags.NONE, -1, None,
            )
        except GLib.Error as e:
            message = e.message.lower()
            if "stale" in message or "serial" in message:
                current = self.get_resources()[0]
                raise StaleTopologyError(serial, current) from e
            raise ConfigurationRejected(e.message, serial=serial) from e

    def watch(self, callback: Callable[[], None]) -> None:
        """Invoke *callback* on every ``MonitorsChanged`` signal.

        Must be called from the thread running the GLib main loop.
        """
        Gio = self._gio
        bus = Gio.bus_get_sync(self._bus_type)

        def _on_signal(_conn, _sender, _path, _iface, _signal, _params, _ud):
            log.debug("MonitorsChanged")
            callback()

        self._bus = bus
        self._subscription = bus.signal_subscribe(
            None, INTERFACE, "MonitorsChanged", OBJECT_PATH,
            None, Gio.DBusSignalFlags.NONE, _on_signal, None,
        )

    def close(self) -> None:
        if self._subscription is not None:
            self._bus.signal_unsubscribe(self._subscription)
            self._subscription = None


def _variant_dict(GLib, props: dict) -> dict:
    wrapped = {}
    for key, value in props.items():
        if isinstance(value, bool):
            wrapped[key] = GLib.Variant("b", value)
        elif isinstance(value, int):
            wrapped[key] = GLib.Variant("i", value)
        else:
            wrapped[key] = GLib.Variant("s", str(value))
    return wrapped
