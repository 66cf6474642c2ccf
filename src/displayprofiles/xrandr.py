"""Legacy XRandR backend: parses ``xrandr --verbose`` and applies through the xrandr CLI."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import Callable

import pyudev

from .errors import ConfigurationRejected, StaleTopologyError, TopologyUnavailable
from .models import ConfigurationCommand, Connector, Crtc, Mode, Topology, Transform
from .utils import has_x_display, is_xrandr_installed

log = logging.getLogger(__name__)

# Transform value -> (xrandr --rotate, --reflect)
XRANDR_TRANSFORMS: dict[int, tuple[str, str]] = {
    0: ("normal", "normal"),
    1: ("left", "normal"),
    2: ("inverted", "normal"),
    3: ("right", "normal"),
    4: ("normal", "x"),
    5: ("left", "x"),
    6: ("inverted", "x"),
    7: ("right", "x"),
}

_ROTATION_STEPS = {"normal": 0, "left": 1, "inverted": 2, "right": 3}

_HEADLINE_RE = re.compile(
    r"^(?P<name>\S+) (?P<state>connected|disconnected|unknown connection)"
    r"(?P<primary> primary)?"
    r"(?: (?P<width>\d+)x(?P<height>\d+)(?P<x>[+-]\d+)(?P<y>[+-]\d+)"
    r"(?: \((?P<mode>0x[0-9a-fA-F]+)\))?"
    r" (?P<rotation>normal|left|inverted|right)"
    r"(?: (?P<reflect>X and Y axis|X axis|Y axis))?)?"
)
_MODE_RE = re.compile(r"^\s{2}(?P<name>\S+) \((?P<id>0x[0-9a-fA-F]+)\)")
_CLOCK_RE = re.compile(r"^\s+v:.*clock\s+(?P<rate>[\d.]+)\s*Hz")


def transform_from_xrandr(rotation: str, reflect: str | None) -> int:
    """Map xrandr rotation/reflection names to a Transform value."""
    steps = _ROTATION_STEPS.get(rotation, 0)
    if reflect == "X axis":
        return 4 + steps
    if reflect == "Y axis":
        # A Y flip is an X flip rotated by 180°
        return 4 + (steps + 2) % 4
    if reflect == "X and Y axis":
        return (steps + 2) % 4
    return steps


def edid_monitor_name(edid_hex: str) -> str:
    """Return the monitor name descriptor (tag 0xFC) of an EDID, or ""."""
    if not edid_hex or len(edid_hex) < 256:
        return ""
    # Four 18-byte descriptors start at byte 54
    for i in range(4):
        char_off = (54 + i * 18) * 2
        if edid_hex[char_off:char_off + 6] != "000000":
            continue
        try:
            tag = int(edid_hex[char_off + 6:char_off + 8], 16)
            text = bytes.fromhex(edid_hex[char_off + 10:char_off + 36])
        except ValueError:
            continue
        if tag == 0xFC:
            return text.split(b"\x0a")[0].decode("ascii", errors="replace").strip()
    return ""


def parse_verbose(output: str, serial: int = 0) -> Topology:
    """Parse ``xrandr --verbose`` output into a Topology."""
    connectors: list[Connector] = []
    modes: dict[int, Mode] = {}
    crtc_ids: set[int] = set()
    active: dict[int, Crtc] = {}

    current: Connector | None = None
    current_geometry: dict | None = None
    pending_mode: tuple[int, int, int] | None = None
    edid: list[str] | None = None

    def _finish_connector() -> None:
        nonlocal edid
        if current is None:
            return
        if edid is not None:
            current.display_name = edid_monitor_name("".join(edid)) or current.display_name
            edid = None
        if current_geometry is not None and current.current_crtc is not None:
            crtc = active.setdefault(current.current_crtc, Crtc(
                id=current.current_crtc,
                mode_id=current_geometry["mode"],
                x=current_geometry["x"],
                y=current_geometry["y"],
                width=current_geometry["width"],
                height=current_geometry["height"],
                transform=current_geometry["transform"],
            ))
            crtc.connector_ids.append(current.id)

    for line in output.splitlines():
        if line.startswith("Screen "):
            continue

        if line and not line[0].isspace():
            _finish_connector()
            m = _HEADLINE_RE.match(line)
            if m is None:
                log.debug("Unrecognized xrandr line: %r", line)
                current = None
                current_geometry = None
                continue
            current = Connector(
                id=len(connectors),
                name=m["name"],
                primary=bool(m["primary"]),
                connected=m["state"] != "disconnected",
                display_name="",
            )
            connectors.append(current)
            if m["width"] and m["mode"]:
                current_geometry = {
                    "mode": int(m["mode"], 16),
                    "x": int(m["x"]),
                    "y": int(m["y"]),
                    "width": int(m["width"]),
                    "height": int(m["height"]),
                    "transform": transform_from_xrandr(m["rotation"], m["reflect"]),
                }
            else:
                current_geometry = None
            continue

        if current is None:
            continue

        if line.startswith("\t"):
            stripped = line.strip()
            if edid is not None:
                if re.fullmatch(r"[0-9a-fA-F]+", stripped):
                    edid.append(stripped)
                    continue
                current.display_name = edid_monitor_name("".join(edid)) or current.display_name
                edid = None
            key, _, value = stripped.partition(":")
            value = value.strip()
            if key == "EDID":
                edid = []
            elif key == "Identifier" and value:
                current.id = int(value, 16)
            elif key == "CRTC" and value:
                current.current_crtc = int(value)
                crtc_ids.add(current.current_crtc)
            elif key == "CRTCs" and value:
                current.possible_crtcs = [int(v) for v in value.split()]
                crtc_ids.update(current.possible_crtcs)
            continue

        mode_match = _MODE_RE.match(line)
        if mode_match:
            width, _, height = mode_match["name"].partition("x")
            height = re.match(r"\d+", height)
            mode_id = int(mode_match["id"], 16)
            if width.isdigit() and height:
                pending_mode = (mode_id, int(width), int(height.group()))
                current.mode_ids.append(mode_id)
            continue

        clock_match = _CLOCK_RE.match(line)
        if clock_match and pending_mode is not None:
            mode_id, width, height = pending_mode
            modes.setdefault(mode_id, Mode(
                id=mode_id, width=width, height=height,
                refresh_rate=float(clock_match["rate"]),
            ))
            pending_mode = None

    _finish_connector()

    for connector in connectors:
        if not connector.display_name:
            connector.display_name = "Unknown display"
        # Outputs that are off keep no CRTC of their own
        if connector.current_crtc is not None and connector.current_crtc not in active:
            connector.current_crtc = None

    crtcs = [active.get(cid, Crtc(id=cid)) for cid in sorted(crtc_ids)]
    return Topology(
        serial=serial,
        connectors=connectors,
        crtcs=crtcs,
        modes=list(modes.values()),
        clone=_is_cloned(list(active.values())),
    )


def _is_cloned(crtcs: list[Crtc]) -> bool:
    """Cloned when two or more outputs are lit and all share one geometry."""
    outputs = [c for c in crtcs for _ in c.connector_ids]
    if len(outputs) < 2:
        return False
    first = outputs[0]
    return all(
        (c.x, c.y, c.width, c.height) == (first.x, first.y, first.width, first.height)
        for c in outputs
    )


def command_to_args(command: ConfigurationCommand, topology: Topology) -> list[str]:
    """Translate a configuration command into one xrandr argument list."""
    names = {c.id: c.name for c in topology.connectors}
    primary = {
        u.output_id for u in command.output_updates if u.properties.get("primary")
    }
    args: list[str] = []
    handled: set[int] = set()

    # Switch outputs off first so their CRTCs are free for the others
    ordered = sorted(command.crtc_updates, key=lambda u: not u.disables)
    for update in ordered:
        for output_id in update.connector_ids:
            name = names.get(output_id)
            if name is None:
                continue
            handled.add(output_id)
            if update.disables:
                args += ["--output", name, "--off"]
                continue
            rotate, reflect = XRANDR_TRANSFORMS[Transform.coerce(update.transform).value]
            args += [
                "--output", name,
                "--crtc", str(update.crtc_id),
                "--mode", hex(update.mode_id),
                "--pos", f"{update.x}x{update.y}",
                "--rotate", rotate,
                "--reflect", reflect,
            ]
            if output_id in primary:
                args.append("--primary")

    # Outputs that have no CRTC at all can only be switched off
    for update in command.output_updates:
        if update.output_id not in handled and update.output_id in names:
            args += ["--output", names[update.output_id], "--off"]
    return args


class XRandR:
    """Read and apply monitor configuration through the xrandr command."""

    name = "XRandR"

    def __init__(self, display: str | None = None) -> None:
        self.environ = dict(os.environ)
        if display:
            self.environ["DISPLAY"] = display
        if not is_xrandr_installed():
            raise TopologyUnavailable("xrandr is not installed")
        if not display and not has_x_display():
            raise TopologyUnavailable("No X display")
        try:
            self._output("--version")
        except ConfigurationRejected as e:
            raise TopologyUnavailable(e.message) from e
        self._serial = 0
        self._last_output: str | None = None
        self._observer: pyudev.MonitorObserver | None = None

    def _output(self, *args: str) -> str:
        log.info("xrandr %s", " ".join(args))
        proc = subprocess.run(
            ("xrandr",) + args,
            capture_output=True, text=True, env=self.environ,
        )
        if proc.returncode != 0:
            log.error("xrandr exit %d stderr: %s", proc.returncode, proc.stderr.strip())
            raise ConfigurationRejected(
                f"xrandr returned error code {proc.returncode}: {proc.stderr.strip()}",
            )
        if proc.stderr:
            log.warning("xrandr stderr (no error): %s", proc.stderr.strip())
        return proc.stdout

    def get_topology(self) -> Topology:
        try:
            output = self._output("--verbose")
        except ConfigurationRejected as e:
            raise TopologyUnavailable(e.message) from e
        # xrandr has no generation counter, bump ours whenever the state moved
        if output != self._last_output:
            self._serial += 1
            self._last_output = output
        return parse_verbose(output, serial=self._serial)

    def apply_configuration(self, command: ConfigurationCommand) -> None:
        topology = self.get_topology()
        if command.serial != topology.serial:
            raise StaleTopologyError(command.serial, topology.serial)
        args = command_to_args(command, topology)
        if not args:
            return
        self._output(*args)

    def watch(self, callback: Callable[[], None]) -> None:
        """Invoke *callback* on DRM hotplug events (from a pyudev thread)."""
        context = pyudev.Context()
        monitor = pyudev.Monitor.from_netlink(context)
        monitor.filter_by(subsystem="drm")

        def _on_device(device) -> None:
            if device.action in ("change", "add", "remove"):
                log.debug("udev DRM event: %s %s", device.action, device.device_path)
                callback()

        self._observer = pyudev.MonitorObserver(monitor, callback=_on_device, name="drm-monitor")
        self._observer.daemon = True
        self._observer.start()

    def close(self) -> None:
        if self._observer is not None:
            self._observer.send_stop()
            self._observer = None
