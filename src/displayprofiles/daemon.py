"""Background daemon that tracks monitor and profile changes and keeps shortcuts registered."""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from typing import Callable

from .engine import Engine
from .errors import TopologyUnavailable
from .keybindings import GnomeKeybindings, Keybindings
from .mutter import MutterDisplayConfig
from .profile_manager import ProfileManager
from .settings import KEY_BACKEND, SettingsStore
from .xrandr import XRandR

log = logging.getLogger(__name__)

DEBOUNCE_MS = 500
RETRY_S = 5

EVENT_MONITORS = "monitors-changed"
EVENT_SETTINGS = "settings-changed"

BACKENDS: dict[str, type] = {
    "mutter": MutterDisplayConfig,
    "xrandr": XRandR,
}


def detect_backend(preference: str = "auto") -> MutterDisplayConfig | XRandR | None:
    """Return the first usable topology source.

    Mutter's DisplayConfig is preferred; the xrandr command is the fallback.
    """
    if preference in BACKENDS:
        candidates = [BACKENDS[preference]]
    else:
        if preference != "auto":
            log.warning("Unknown backend %r, probing all", preference)
        candidates = [MutterDisplayConfig, XRandR]

    for cls in candidates:
        try:
            source = cls()
        except TopologyUnavailable as e:
            log.info("%s backend unavailable: %s", cls.__name__, e)
            continue
        log.info("Using %s backend", source.name)
        return source
    return None


class ProfileDaemon:
    """Serializes hardware and settings events into one engine."""

    def __init__(self, settings: SettingsStore | None = None, backend: str | None = None) -> None:
        self._settings = settings or SettingsStore()
        self._backend = backend
        self._queue: asyncio.Queue[str] | None = None
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._glib_loop = None
        self._asyncio_loop: asyncio.AbstractEventLoop | None = None
        self.engine: Engine | None = None

    async def run(self) -> None:
        log.info("Starting display-profiles daemon")
        self._asyncio_loop = asyncio.get_running_loop()

        while True:
            try:
                source = detect_backend(self._backend or self._settings.get_string(KEY_BACKEND))
                if source is None:
                    log.warning("No display backend available. Retrying in %ds...", RETRY_S)
                    await asyncio.sleep(RETRY_S)
                    continue
                await self._listen(source)
            except TopologyUnavailable as e:
                log.warning("Lost display backend: %s. Retrying in %ds...", e, RETRY_S)
                await asyncio.sleep(RETRY_S)
            except Exception as e:
                log.error("Unexpected error: %s. Retrying in %ds...", e, RETRY_S)
                await asyncio.sleep(RETRY_S)
            finally:
                self._shutdown_listeners()

    async def _listen(self, source) -> None:
        self._queue = asyncio.Queue()
        keybindings = Keybindings(self._settings, GnomeKeybindings.create())
        self.engine = Engine(source, ProfileManager(self._settings), keybindings)

        setups: list[Callable[[], None]] = [
            lambda: self._settings.watch(lambda: self._notify(EVENT_SETTINGS)),
        ]
        if isinstance(source, MutterDisplayConfig):
            setups.append(lambda: source.watch(lambda: self._notify(EVENT_MONITORS)))
        else:
            source.watch(lambda: self._notify(EVENT_MONITORS))
        self._start_glib_thread(setups)

        self.engine.refresh()
        self._log_state()
        while True:
            event = await self._queue.get()
            self._handle(event)

    def _handle(self, event: str) -> None:
        """Run one event to completion; only backend loss escapes."""
        engine = self.engine
        if engine is None:
            return
        try:
            if event == EVENT_MONITORS:
                log.info("Monitors changed")
                engine.on_monitors_changed()
            elif event == EVENT_SETTINGS:
                engine.on_settings_changed()
        except TopologyUnavailable:
            raise
        except Exception as e:
            log.error("Failed to handle %s: %s", event, e)
            return
        self._log_state()

    def _log_state(self) -> None:
        engine = self.engine
        if engine is None:
            return
        active = engine.active_entry()
        log.info(
            "%d profiles, %d applicable, active: %s",
            len(engine.entries),
            sum(1 for e in engine.entries if e.applicable),
            active.name if active else "none",
        )

    # ── Event plumbing ──────────────────────────────────────────────

    def _notify(self, event: str) -> None:
        """Thread-safe entry point for GLib and udev callbacks."""
        if self._asyncio_loop is not None:
            self._asyncio_loop.call_soon_threadsafe(self._post, event)

    def _post(self, event: str) -> None:
        if self._queue is None:
            return
        if event != EVENT_MONITORS:
            self._queue.put_nowait(event)
            return
        # Hotplug and our own ApplyConfiguration both arrive in bursts
        if self._debounce_handle:
            self._debounce_handle.cancel()
        queue = self._queue
        self._debounce_handle = asyncio.get_running_loop().call_later(
            DEBOUNCE_MS / 1000.0, queue.put_nowait, EVENT_MONITORS,
        )

    def _start_glib_thread(self, setups: list[Callable[[], None]]) -> None:
        """Run GLib signal sources (D-Bus, file monitors) in a background thread."""
        try:
            import gi
            gi.require_version("GLib", "2.0")
            from gi.repository import GLib
        except (ImportError, ValueError):
            log.info("GLib not available, settings and D-Bus notifications disabled")
            return

        context = GLib.MainContext.new()
        loop = GLib.MainLoop.new(context, False)
        self._glib_loop = loop

        def _run() -> None:
            context.push_thread_default()
            try:
                for setup in setups:
                    try:
                        setup()
                    except Exception as e:
                        log.warning("Notification setup failed: %s", e)
                loop.run()
            finally:
                context.pop_thread_default()

        threading.Thread(target=_run, daemon=True, name="glib-events").start()

    def _shutdown_listeners(self) -> None:
        if self._debounce_handle:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._glib_loop is not None:
            self._glib_loop.quit()
            self._glib_loop = None
        if self.engine is not None:
            self.engine.shutdown()
            close = getattr(self.engine.source, "close", None)
            if close is not None:
                close()
        self.engine = None


def main(backend: str | None = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [display-profilesd] %(levelname)s %(message)s",
    )
    daemon = ProfileDaemon(backend=backend)
    loop = asyncio.new_event_loop()

    # Handle signals for clean shutdown
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, loop.stop)

    try:
        loop.run_until_complete(daemon.run())
    except (KeyboardInterrupt, RuntimeError):
        pass
    finally:
        daemon._shutdown_listeners()
        loop.close()
        log.info("Daemon stopped")
