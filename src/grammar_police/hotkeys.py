"""
Global hotkeys. Callbacks run on the pynput listener thread, so each one hands
its work to a short-lived worker thread and returns immediately.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from pynput import keyboard

logger = logging.getLogger(__name__)


def run_in_background(action: Callable[[], None], name: str) -> Callable[[], None]:
    """Wrap ``action`` so calling it starts a daemon thread instead of blocking."""

    def _start() -> None:
        threading.Thread(target=action, name=name, daemon=True).start()

    return _start


class HotkeyListener:
    """Listens for the correction and translation shortcuts."""

    def __init__(self, bindings: Dict[str, Callable[[], None]]) -> None:
        self._bindings = self._wrap(bindings)
        self._listener: Optional[keyboard.GlobalHotKeys] = None

    @staticmethod
    def _wrap(bindings: Dict[str, Callable[[], None]]) -> Dict[str, Callable[[], None]]:
        return {
            combo: run_in_background(action, f"grammar-police-{combo}") for combo, action in bindings.items() if combo
        }

    def start(self) -> None:
        """Begin listening. Invalid combinations are logged and skipped."""
        if self._listener is not None:
            return
        valid = {}
        for combo, callback in self._bindings.items():
            try:
                keyboard.HotKey.parse(combo)
            except ValueError as e:
                logger.error("Ignoring invalid hotkey %r: %s", combo, e)
                continue
            valid[combo] = callback
        self._listener = keyboard.GlobalHotKeys(valid)
        self._listener.start()
        logger.info("Listening for hotkeys: %s", ", ".join(valid) or "none")

    def stop(self) -> None:
        """Stop listening."""
        if self._listener is not None:
            self._listener.stop()
            self._listener = None

    def restart(self, bindings: Dict[str, Callable[[], None]]) -> None:
        """Swap in new bindings, e.g. after a config reload."""
        self.stop()
        self._bindings = self._wrap(bindings)
        self.start()
