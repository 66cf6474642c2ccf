"""Command line entry point: list, apply and manage display profiles."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from .engine import Engine
from .errors import DisplayProfilesError, TopologyUnavailable
from .models import describe_profile
from .profile_manager import ProfileManager
from .settings import KEY_BACKEND, SettingsStore

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_BACKEND = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="display-profiles",
        description="Save and restore monitor layouts.",
    )
    parser.add_argument(
        "--backend", choices=("auto", "mutter", "xrandr"), default=None,
        help="display backend (default: from settings, else auto)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log progress")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("list", help="list profiles, marking the active one")
    sub.add_parser("current", help="describe the active layout")

    apply = sub.add_parser("apply", help="apply a stored profile")
    target = apply.add_mutually_exclusive_group(required=True)
    target.add_argument("name", nargs="?", help="profile name")
    target.add_argument("--index", type=int, help="profile number (1-based)")

    save = sub.add_parser("save", help="store the active layout as a profile")
    save.add_argument("name")

    delete = sub.add_parser("delete", help="remove a stored profile")
    delete.add_argument("name")

    sub.add_parser("daemon", help="track monitor changes and keep shortcuts registered")
    return parser


def _engine(settings: SettingsStore, backend: str | None) -> Engine:
    from .daemon import detect_backend

    source = detect_backend(backend or settings.get_string(KEY_BACKEND))
    if source is None:
        raise TopologyUnavailable("No display backend available")
    engine = Engine(source, ProfileManager(settings))
    engine.refresh()
    return engine


def cmd_list(engine: Engine) -> int:
    if not engine.entries:
        print("No profiles defined")
        return EXIT_OK
    for entry in engine.entries:
        marker = "*" if entry.active else (" " if entry.applicable else "-")
        print(f"{marker} {entry.label}")
        for line in entry.description:
            print(f"     {line}")
    return EXIT_OK


def cmd_current(engine: Engine) -> int:
    current = engine.current
    lines = describe_profile(current) if current else []
    if not lines:
        print("No active outputs")
    for line in lines:
        print(line)
    active = engine.active_entry()
    if active is not None:
        print(f"Matches profile: {active.name}")
    return EXIT_OK


def cmd_apply(engine: Engine, name: str | None, index: int | None) -> int:
    if index is not None:
        ok = engine.apply_index(index - 1)
    else:
        ok = engine.apply_name(name)
    return EXIT_OK if ok else EXIT_FAILED


def cmd_save(engine: Engine, name: str) -> int:
    captured = engine.current
    if captured is None or not captured.outputs:
        print("No active outputs to save", file=sys.stderr)
        return EXIT_FAILED
    engine.profiles.save(dataclasses.replace(captured, name=name))
    print(f"Saved profile {name!r}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "daemon":
        from .daemon import main as daemon_main
        daemon_main(backend=args.backend)
        return EXIT_OK

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(message)s",
    )

    settings = SettingsStore()
    if args.command == "delete":
        if ProfileManager(settings).delete(args.name):
            print(f"Deleted profile {args.name!r}")
            return EXIT_OK
        print(f"No profile named {args.name!r}", file=sys.stderr)
        return EXIT_FAILED

    try:
        engine = _engine(settings, args.backend)
        if args.command == "apply":
            return cmd_apply(engine, args.name, args.index)
        if args.command == "save":
            return cmd_save(engine, args.name)
        if args.command == "current":
            return cmd_current(engine)
        return cmd_list(engine)
    except TopologyUnavailable as e:
        print(f"Display profiles unavailable: {e}", file=sys.stderr)
        return EXIT_NO_BACKEND
    except DisplayProfilesError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
