#!/usr/bin/env python3
"""Tests for the xrandr backend: verbose output parsing and command building."""

import unittest
from unittest.mock import Mock, patch

from fixtures import docked_profile, dual_profile

from displayprofiles.errors import ConfigurationRejected, StaleTopologyError, TopologyUnavailable
from displayprofiles.models import ConfigurationCommand, CrtcUpdate, OutputUpdate
from displayprofiles.reconcile import build_configuration
from displayprofiles.xrandr import (
    XRandR, command_to_args, edid_monitor_name, parse_verbose, transform_from_xrandr,
)


def make_edid(name):
    """Minimal 128-byte EDID with a detailed timing block and a name descriptor."""
    data = bytearray(128)
    data[0:8] = bytes.fromhex("00ffffffffffff00")
    data[54:56] = b"\x02\x3a"
    data[72 + 3] = 0xFC
    data[72 + 5:72 + 18] = (name.encode("ascii") + b"\n").ljust(13, b" ")
    return data.hex()


def edid_block(name):
    hex_text = make_edid(name)
    return "".join(f"\t\t{hex_text[i:i + 32]}\n" for i in range(0, len(hex_text), 32))


VERBOSE = (
    "Screen 0: minimum 320 x 200, current 3286 x 1080, maximum 16384 x 16384\n"
    "HDMI-1 connected primary 1920x1080+0+0 (0x4a) normal (normal left inverted right x axis y axis) 527mm x 296mm\n"
    "\tIdentifier: 0x43\n"
    "\tTimestamp:  21395\n"
    "\tSubpixel:   unknown\n"
    "\tGamma:      1.0:1.0:1.0\n"
    "\tBrightness: 1.0\n"
    "\tClones:    \n"
    "\tCRTC:       0\n"
    "\tCRTCs:      0 1\n"
    "\tTransform:  1.000000 0.000000 0.000000\n"
    "\t            0.000000 1.000000 0.000000\n"
    "\t            0.000000 0.000000 1.000000\n"
    "\t           filter: \n"
    "\tEDID: \n"
    + edid_block("Acme 24") +
    "\tBroadcast RGB: Automatic \n"
    "\t\tsupported: Automatic, Full, Limited 16:235\n"
    "  1920x1080 (0x4a) 148.500MHz +HSync +VSync *current +preferred\n"
    "        h: width  1920 start 2008 end 2052 total 2200 skew    0 clock  67.50KHz\n"
    "        v: height 1080 start 1084 end 1089 total 1125           clock  60.00Hz\n"
    "  1920x1080 (0x4b) 148.352MHz +HSync +VSync\n"
    "        h: width  1920 start 2008 end 2052 total 2200 skew    0 clock  67.43KHz\n"
    "        v: height 1080 start 1084 end 1089 total 1125           clock  59.94Hz\n"
    "  1280x720 (0x4c) 74.250MHz +HSync +VSync\n"
    "        h: width  1280 start 1390 end 1430 total 1650 skew    0 clock  45.00KHz\n"
    "        v: height  720 start  725 end  730 total  750           clock  60.00Hz\n"
    "eDP-1 connected 1366x768+1920+0 (0x48) normal (normal left inverted right x axis y axis) 309mm x 174mm\n"
    "\tIdentifier: 0x42\n"
    "\tCRTC:       1\n"
    "\tCRTCs:      0 1\n"
    "\tEDID: \n"
    + edid_block("Laptop") +
    "  1366x768 (0x48) 76.300MHz -HSync -VSync *current +preferred\n"
    "        h: width  1366 start 1414 end 1446 total 1610 skew    0 clock  47.39KHz\n"
    "        v: height  768 start  771 end  777 total  790           clock  59.99Hz\n"
    "  1280x720 (0x4c) 74.250MHz +HSync +VSync\n"
    "        h: width  1280 start 1390 end 1430 total 1650 skew    0 clock  45.00KHz\n"
    "        v: height  720 start  725 end  730 total  750           clock  60.00Hz\n"
    "DP-1 disconnected (normal left inverted right x axis y axis)\n"
    "\tIdentifier: 0x44\n"
    "\tCRTCs:      0 1\n"
)


class TestHelpers(unittest.TestCase):

    def test_edid_monitor_name(self):
        self.assertEqual(edid_monitor_name(make_edid("Acme 24")), "Acme 24")

    def test_edid_without_name(self):
        data = bytearray(128)
        self.assertEqual(edid_monitor_name(data.hex()), "")
        self.assertEqual(edid_monitor_name("00ff"), "")

    def test_transforms(self):
        self.assertEqual(transform_from_xrandr("normal", None), 0)
        self.assertEqual(transform_from_xrandr("left", None), 1)
        self.assertEqual(transform_from_xrandr("right", None), 3)
        self.assertEqual(transform_from_xrandr("normal", "X axis"), 4)
        self.assertEqual(transform_from_xrandr("normal", "Y axis"), 6)
        self.assertEqual(transform_from_xrandr("normal", "X and Y axis"), 2)


class TestParseVerbose(unittest.TestCase):

    def setUp(self):
        self.topology = parse_verbose(VERBOSE, serial=4)

    def test_connectors(self):
        names = [(c.name, c.id, c.connected) for c in self.topology.connectors]
        self.assertEqual(names, [
            ("HDMI-1", 0x43, True), ("eDP-1", 0x42, True), ("DP-1", 0x44, False),
        ])
        self.assertEqual(self.topology.serial, 4)

    def test_display_names(self):
        hdmi = self.topology.connector_by_name("HDMI-1")
        self.assertEqual(hdmi.display_name, "Acme 24")
        self.assertEqual(self.topology.connector_by_name("eDP-1").display_name, "Laptop")
        self.assertEqual(self.topology.connector_by_name("DP-1").display_name, "Unknown display")

    def test_crtcs(self):
        hdmi = self.topology.connector_by_name("HDMI-1")
        self.assertEqual(hdmi.current_crtc, 0)
        self.assertTrue(hdmi.primary)
        self.assertEqual(hdmi.possible_crtcs, [0, 1])
        crtc = self.topology.crtc_by_id(1)
        self.assertEqual((crtc.mode_id, crtc.x, crtc.y), (0x48, 1920, 0))
        self.assertEqual(crtc.connector_ids, [0x42])
        self.assertIsNone(self.topology.connector_by_name("DP-1").current_crtc)

    def test_modes(self):
        hdmi = self.topology.connector_by_name("HDMI-1")
        self.assertEqual(hdmi.mode_ids, [0x4a, 0x4b, 0x4c])
        rates = {m.id: m.refresh_rate for m in self.topology.modes}
        self.assertAlmostEqual(rates[0x4b], 59.94)
        self.assertEqual(len(self.topology.modes), 4)

    def test_not_cloned(self):
        self.assertFalse(self.topology.clone)

    def test_cloned(self):
        text = VERBOSE.replace("1366x768+1920+0 (0x48)", "1920x1080+0+0 (0x4a)")
        self.assertTrue(parse_verbose(text).clone)

    def test_rotated_reflected_headline(self):
        text = VERBOSE.replace("1366x768+1920+0 (0x48) normal", "768x1366+1920+0 (0x48) left X axis")
        crtc = parse_verbose(text).crtc_by_id(1)
        self.assertEqual(crtc.transform, 5)


class TestCommandToArgs(unittest.TestCase):

    def test_docked(self):
        topology = parse_verbose(VERBOSE)
        args = command_to_args(build_configuration(docked_profile(), topology), topology)
        self.assertEqual(args, [
            "--output", "eDP-1", "--off",
            "--output", "HDMI-1", "--crtc", "0", "--mode", "0x4a", "--pos", "0x0",
            "--rotate", "normal", "--reflect", "normal", "--primary",
            "--output", "DP-1", "--off",
        ])

    def test_rotation_and_reflection(self):
        topology = parse_verbose(VERBOSE)
        command = ConfigurationCommand(serial=0, crtc_updates=[
            CrtcUpdate(1, 0x48, 1920, 0, 7, [0x42]),
        ], output_updates=[OutputUpdate(0x42, {"primary": False})])
        self.assertEqual(command_to_args(command, topology), [
            "--output", "eDP-1", "--crtc", "1", "--mode", "0x48", "--pos", "1920x0",
            "--rotate", "right", "--reflect", "x",
        ])

    def test_unknown_output_ignored(self):
        topology = parse_verbose(VERBOSE)
        command = ConfigurationCommand(serial=0, output_updates=[OutputUpdate(0x99)])
        self.assertEqual(command_to_args(command, topology), [])


class TestXRandR(unittest.TestCase):

    def setUp(self):
        # Bypass binary and display probing
        self.xrandr = object.__new__(XRandR)
        self.xrandr.environ = {}
        self.xrandr._serial = 0
        self.xrandr._last_output = None
        self.xrandr._observer = None
        self.xrandr._output = Mock(return_value=VERBOSE)

    def test_serial_bumps_only_on_change(self):
        first = self.xrandr.get_topology().serial
        self.assertEqual(self.xrandr.get_topology().serial, first)
        self.xrandr._output.return_value = VERBOSE.replace("+1920+0", "+1920+100")
        self.assertEqual(self.xrandr.get_topology().serial, first + 1)

    def test_apply(self):
        topology = self.xrandr.get_topology()
        command = build_configuration(dual_profile(), topology, expected_serial=topology.serial)
        self.xrandr.apply_configuration(command)
        args = self.xrandr._output.call_args.args
        self.assertIn("--primary", args)
        self.assertEqual(args[:2], ("--output", "HDMI-1"))

    def test_apply_stale(self):
        topology = self.xrandr.get_topology()
        command = build_configuration(dual_profile(), topology)
        self.xrandr._output.return_value = VERBOSE.replace("+1920+0", "+0+1080")
        with self.assertRaises(StaleTopologyError):
            self.xrandr.apply_configuration(command)

    def test_query_failure_is_unavailable(self):
        self.xrandr._output.side_effect = ConfigurationRejected("Can't open display")
        with self.assertRaises(TopologyUnavailable):
            self.xrandr.get_topology()

    @patch("displayprofiles.xrandr.subprocess.run")
    def test_nonzero_exit_rejected(self, run):
        run.return_value = Mock(returncode=1, stderr="BadMatch", stdout="")
        with self.assertRaises(ConfigurationRejected) as cm:
            XRandR._output(self.xrandr, "--output", "HDMI-1", "--off")
        self.assertIn("BadMatch", cm.exception.message)

    @patch("displayprofiles.xrandr.is_xrandr_installed", return_value=False)
    def test_missing_binary(self, _installed):
        with self.assertRaises(TopologyUnavailable):
            XRandR()


if __name__ == '__main__':
    unittest.main()
