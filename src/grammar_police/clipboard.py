"""
Clipboard interface and the lease that guarantees a saved clipboard is put back.
"""

import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


class Clipboard(Protocol):
    """The system clipboard plus the copy/paste keystrokes that drive it."""

    def read(self) -> Optional[str]:
        """Current plain-text contents, or None."""

    def write(self, text: str) -> None:
        """Replace the contents with ``text``."""

    def clear(self) -> None:
        """Empty the clipboard."""

    def change_count(self) -> int:
        """Counter that increases every time the clipboard contents change."""

    def save(self) -> Any:
        """Capture the full contents so they can be restored later."""

    def restore(self, snapshot: Any) -> None:
        """Put back contents captured by ``save``."""

    def synthesize_copy(self) -> None:
        """Send the copy shortcut to the frontmost application."""

    def synthesize_paste(self) -> None:
        """Send the paste shortcut to the frontmost application."""


class ClipboardLease:
    """A saved clipboard that must be restored or released exactly once.

    Acquisition opens a lease when it goes through the clipboard with
    restoration enabled; whoever finishes the operation closes it. Closing an
    already-closed lease is a no-op, so ``finally`` blocks can always call
    ``restore``.
    """

    def __init__(self, clipboard: Clipboard, snapshot: Any) -> None:
        self._clipboard = clipboard
        self._snapshot = snapshot
        self._open = True

    @classmethod
    def take(cls, clipboard: Clipboard) -> "ClipboardLease":
        """Save the clipboard and open a lease on it."""
        lease = cls(clipboard, clipboard.save())
        logger.debug("Clipboard state saved")
        return lease

    @property
    def is_open(self) -> bool:
        """Whether the saved contents are still waiting to be restored or released."""
        return self._open

    def restore(self) -> bool:
        """Restore the saved contents. Returns True if this call did the restore."""
        if not self._open:
            return False
        self._open = False
        self._clipboard.restore(self._snapshot)
        self._snapshot = None
        logger.debug("Clipboard state restored")
        return True

    def release(self) -> None:
        """Drop the saved contents, leaving whatever the clipboard holds now."""
        if self._open:
            self._open = False
            self._snapshot = None
            logger.debug("Clipboard lease released without restore")

    def __enter__(self) -> "ClipboardLease":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.restore()
