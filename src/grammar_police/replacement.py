"""
Replacement execution: put transformed text back where the selection was.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from grammar_police.accessibility import FocusedApp, FocusedTextIO, matches_bundle
from grammar_police.clipboard import Clipboard
from grammar_police.errors import ClipboardError, ReplacementError
from grammar_police.selection import AcquiredSelection

logger = logging.getLogger(__name__)

# Apps whose AX selected-text attribute claims to be settable but drops the write
DEFAULT_UNRELIABLE_WRITE_APPS = [
    "com.google.Chrome",
    "com.microsoft.Word",
    "com.apple.Safari",
]


class ReplacementMethod(Enum):
    """How the text was written back."""

    DIRECT_WRITE = "AX"
    CLIPBOARD_PASTE = "Clipboard+Paste"
    CLIPBOARD_ONLY = "Clipboard"


@dataclass(frozen=True)
class ReplacementOutcome:
    """Which path wrote the text and whether it is known to have landed."""

    method: ReplacementMethod
    succeeded: bool

    @property
    def direct(self) -> bool:
        """True when the text was written in place through the accessibility layer."""
        return self.method is ReplacementMethod.DIRECT_WRITE and self.succeeded


@dataclass
class ReplacementSettings:
    """Timings and policy for writing text back."""

    restore_clipboard: bool = True
    paste_delay: float = 0.05
    restore_delay: float = 0.15
    unreliable_write_apps: List[str] = field(default_factory=lambda: list(DEFAULT_UNRELIABLE_WRITE_APPS))


class ReplacementExecutor:
    """Writes text back with a direct write, falling back to clipboard + Cmd+V."""

    def __init__(
        self,
        text_io: FocusedTextIO,
        clipboard: Clipboard,
        settings: Optional[ReplacementSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.text_io = text_io
        self.clipboard = clipboard
        self.settings = settings or ReplacementSettings()
        self._sleep = sleep

    def can_write_directly(self, app: Optional[FocusedApp]) -> bool:
        """Whether a direct write is worth attempting for this app."""
        if app is None:
            return True
        return not matches_bundle(app.bundle_id, self.settings.unreliable_write_apps)

    def replace(
        self, text: str, selection: AcquiredSelection, app: Optional[FocusedApp] = None
    ) -> ReplacementOutcome:
        """Replace the selection with ``text``.

        A failed direct write is not an error: it falls through to the paste
        path, which always counts as performed because no app confirms a paste.
        """
        if not selection.via_fallback and self.can_write_directly(app):
            if self.text_io.write_selection(text):
                logger.info("Replacement done via AX")
                return ReplacementOutcome(ReplacementMethod.DIRECT_WRITE, succeeded=True)
            logger.debug("AX replacement failed, falling back to clipboard paste")

        self._write_clipboard(text)
        # Let the pasteboard settle before the app reads it
        self._sleep(self.settings.paste_delay)
        self.clipboard.synthesize_paste()
        logger.info("Replacement done via clipboard paste")

        lease = selection.lease
        if lease is not None and lease.is_open:
            if self.settings.restore_clipboard:
                # The target app reads the pasteboard asynchronously after Cmd+V
                self._sleep(self.settings.restore_delay)
                lease.restore()
            else:
                lease.release()

        return ReplacementOutcome(ReplacementMethod.CLIPBOARD_PASTE, succeeded=True)

    def deliver_to_clipboard(self, text: str, selection: Optional[AcquiredSelection] = None) -> ReplacementOutcome:
        """Leave ``text`` on the clipboard for the user to paste."""
        self._write_clipboard(text)
        if selection is not None and selection.lease is not None:
            # The clipboard now holds the result on purpose
            selection.lease.release()
        logger.debug("Result copied to clipboard")
        return ReplacementOutcome(ReplacementMethod.CLIPBOARD_ONLY, succeeded=True)

    def _write_clipboard(self, text: str) -> None:
        try:
            self.clipboard.write(text)
        except (ClipboardError, OSError) as e:
            raise ReplacementError(f"Could not write to the clipboard: {e}") from e
