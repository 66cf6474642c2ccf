#!/usr/bin/env python3
"""Tests for capturing the live topology as a profile."""

import unittest

from fixtures import CRTC_A, CRTC_B, dual_profile, laptop_dock

from displayprofiles.capture import capture_profile
from displayprofiles.models import UNNAMED, profiles_equal


class TestCaptureProfile(unittest.TestCase):

    def test_both_outputs_lit(self):
        profile = capture_profile(laptop_dock())
        self.assertEqual(profile.name, UNNAMED)
        self.assertFalse(profile.clone)
        self.assertTrue(profiles_equal(profile, dual_profile()))

    def test_disabled_crtc_is_skipped(self):
        profile = capture_profile(laptop_dock(edp_on=False))
        self.assertEqual(profile.connector_names, ["HDMI-1"])

    def test_disconnected_connector_is_skipped(self):
        topology = laptop_dock()
        topology.connector_by_name("eDP-1").connected = False
        self.assertEqual(capture_profile(topology).connector_names, ["HDMI-1"])

    def test_first_output_made_primary(self):
        topology = laptop_dock(hdmi_on=False)
        profile = capture_profile(topology)
        self.assertEqual(profile.connector_names, ["eDP-1"])
        self.assertTrue(profile.outputs[0].primary)

    def test_single_primary_kept(self):
        profile = capture_profile(laptop_dock())
        self.assertEqual([o.primary for o in profile.outputs], [True, False])

    def test_unknown_mode_is_skipped(self):
        topology = laptop_dock()
        topology.crtc_by_id(CRTC_B).mode_id = 99
        with self.assertLogs("displayprofiles.capture", level="WARNING"):
            profile = capture_profile(topology)
        self.assertEqual(profile.connector_names, ["HDMI-1"])

    def test_rotation_recorded(self):
        topology = laptop_dock()
        topology.crtc_by_id(CRTC_A).transform = 3
        self.assertEqual(capture_profile(topology).outputs[0].rotation, 3)
        self.assertEqual(
            capture_profile(topology, record_rotation=False).outputs[0].rotation, 0,
        )

    def test_clone_flag_follows_topology(self):
        topology = laptop_dock()
        topology.clone = True
        self.assertTrue(capture_profile(topology).clone)
        topology.clone = None
        self.assertFalse(capture_profile(topology).clone)

    def test_nothing_lit(self):
        profile = capture_profile(laptop_dock(edp_on=False, hdmi_on=False))
        self.assertEqual(profile.outputs, [])


if __name__ == '__main__':
    unittest.main()
