"""Shared topologies for the test modules."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from displayprofiles.models import (
    Connector, Crtc, Mode, OutputSetting, Profile, Topology,
)

HDMI = 10
EDP = 11
DP = 12

CRTC_A = 20
CRTC_B = 21

MODE_1080_60 = 1
MODE_1080_5994 = 2
MODE_1440_60 = 3
MODE_768_60 = 4


def laptop_dock(serial=7, edp_on=True, hdmi_on=True):
    """Laptop panel plus an external 24" monitor, both lit side by side."""
    modes = [
        Mode(MODE_1080_60, 1920, 1080, 60.0),
        Mode(MODE_1080_5994, 1920, 1080, 59.94),
        Mode(MODE_1440_60, 2560, 1440, 60.0),
        Mode(MODE_768_60, 1366, 768, 60.02),
    ]
    crtcs = [
        Crtc(CRTC_A, mode_id=MODE_1080_60 if hdmi_on else None,
             x=0, y=0, width=1920, height=1080,
             connector_ids=[HDMI] if hdmi_on else []),
        Crtc(CRTC_B, mode_id=MODE_768_60 if edp_on else None,
             x=1920, y=0, width=1366, height=768,
             connector_ids=[EDP] if edp_on else []),
    ]
    connectors = [
        Connector(HDMI, "HDMI-1", current_crtc=CRTC_A if hdmi_on else None,
                  display_name="Acme 24", primary=hdmi_on,
                  mode_ids=[MODE_1080_60, MODE_1080_5994, MODE_1440_60],
                  possible_crtcs=[CRTC_A, CRTC_B]),
        Connector(EDP, "eDP-1", current_crtc=CRTC_B if edp_on else None,
                  display_name="Laptop",
                  mode_ids=[MODE_768_60, MODE_1080_60],
                  possible_crtcs=[CRTC_A, CRTC_B]),
    ]
    return Topology(serial=serial, connectors=connectors, crtcs=crtcs, modes=modes)


def docked_profile(name="Docked"):
    """External monitor only, laptop panel off."""
    return Profile(name=name, clone=False, outputs=[
        OutputSetting("HDMI-1", "Acme 24", 0, 0, 1920, 1080, 60, 0, True),
    ])


def dual_profile(name="Dual"):
    return Profile(name=name, clone=False, outputs=[
        OutputSetting("HDMI-1", "Acme 24", 0, 0, 1920, 1080, 60, 0, True),
        OutputSetting("eDP-1", "Laptop", 1920, 0, 1366, 768, 60, 0, False),
    ])


def missing_dp_profile(name="Presentation"):
    return Profile(name=name, clone=False, outputs=[
        OutputSetting("DP-1", "Projector", 0, 0, 1920, 1080, 60, 0, True),
    ])
