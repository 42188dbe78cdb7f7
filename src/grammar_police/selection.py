"""
Selection acquisition: get the user's selected text out of the frontmost app.

The accessibility layer is asked first. When it has nothing (or the app is known
to answer badly) the selection is captured by clearing the clipboard, sending
Cmd+C and polling the clipboard change counter until the app has written to it.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Union

from grammar_police.accessibility import FocusedApp, FocusedTextIO, ReadStatus, matches_bundle
from grammar_police.clipboard import Clipboard, ClipboardLease

logger = logging.getLogger(__name__)

# Electron and web-based apps that report an empty selection through AX
DEFAULT_UNRELIABLE_READ_APPS = [
    "com.tinyspeck.slackmacgap",
    "com.microsoft.VSCode",
    "com.hnc.Discord",
    "notion.id",
    "com.microsoft.teams",
]


class AcquisitionFailure(Enum):
    """Why no selection could be acquired."""

    NO_TEXT_SELECTED = "no_text_selected"
    SECURE_FIELD_BLOCKED = "secure_field_blocked"


@dataclass
class AcquiredSelection:
    """Selected text and how it was obtained.

    ``lease`` is set when the clipboard was saved before the copy fallback and
    still has to be restored or released by the caller.
    """

    text: str
    via_fallback: bool
    lease: Optional[ClipboardLease] = None


@dataclass
class AcquisitionSettings:
    """Timings and policy for selection capture."""

    restore_clipboard: bool = True
    copy_timeout: float = 2.0
    poll_interval: float = 0.05
    grace_delay: float = 0.02
    pre_copy_delay: float = 0.05
    unreliable_read_apps: List[str] = field(default_factory=lambda: list(DEFAULT_UNRELIABLE_READ_APPS))
    learn_unreliable_apps: bool = True


class SelectionAcquirer:
    """Captures the current selection using the direct path with a clipboard fallback."""

    def __init__(
        self,
        text_io: FocusedTextIO,
        clipboard: Clipboard,
        settings: Optional[AcquisitionSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        learned_unreliable: Optional[Set[str]] = None,
    ) -> None:
        self.text_io = text_io
        self.clipboard = clipboard
        self.settings = settings or AcquisitionSettings()
        self._sleep = sleep
        self._clock = clock
        # Apps learned this session to need the clipboard path; shared across rebuilds when passed in
        self._learned_unreliable: Set[str] = learned_unreliable if learned_unreliable is not None else set()

    @property
    def learned_unreliable_apps(self) -> Set[str]:
        """Bundle ids that fell back to the clipboard after an unusable direct read."""
        return set(self._learned_unreliable)

    def prefers_clipboard(self, app: Optional[FocusedApp]) -> bool:
        """Whether the direct path should be skipped for this app."""
        if app is None or not app.bundle_id:
            return False
        if app.bundle_id in self._learned_unreliable:
            return True
        return matches_bundle(app.bundle_id, self.settings.unreliable_read_apps)

    def acquire(self, app: Optional[FocusedApp] = None) -> Union[AcquiredSelection, AcquisitionFailure]:
        """Return the selected text, or the reason there is none."""
        if app is not None and self.prefers_clipboard(app):
            logger.debug(
                "App %s is known to have AX issues, using clipboard fallback directly", app.bundle_id
            )
            return self._acquire_via_copy()

        direct = self.text_io.read_selection()

        if direct.status is ReadStatus.SECURE_FIELD:
            logger.warning("Focused element is a secure text field, not reading it")
            return AcquisitionFailure.SECURE_FIELD_BLOCKED

        if direct.status is ReadStatus.SUCCESS and direct.text:
            logger.debug("Got selected text via AX, length: %d", len(direct.text))
            return AcquiredSelection(text=direct.text, via_fallback=False)

        logger.debug("Direct read returned %s, trying copy fallback", direct.status.value)
        result = self._acquire_via_copy()

        if (
            isinstance(result, AcquiredSelection)
            and direct.status is ReadStatus.UNAVAILABLE
            and self.settings.learn_unreliable_apps
            and app is not None
            and app.bundle_id
        ):
            self._learned_unreliable.add(app.bundle_id)
            logger.info("Remembering %s as needing the clipboard fallback", app.bundle_id)

        return result

    def _acquire_via_copy(self) -> Union[AcquiredSelection, AcquisitionFailure]:
        lease = ClipboardLease.take(self.clipboard) if self.settings.restore_clipboard else None

        try:
            text = self.capture_via_copy()
        except Exception:
            # The clipboard was already cleared; put the user's contents back before propagating
            if lease is not None:
                lease.restore()
            raise

        if not text:
            if lease is not None:
                lease.restore()
            logger.debug("Copy fallback: no text captured (clipboard unchanged or empty)")
            return AcquisitionFailure.NO_TEXT_SELECTED

        logger.debug("Captured text via copy fallback, length: %d", len(text))
        return AcquiredSelection(text=text, via_fallback=True, lease=lease)

    def capture_via_copy(self) -> Optional[str]:
        """Send Cmd+C and wait for the clipboard to change. Returns None if nothing arrived."""
        self.clipboard.clear()
        cleared_count = self.clipboard.change_count()
        logger.debug("Clipboard cleared, attempting Cmd+C fallback")

        # Give the frontmost app a moment before the synthetic keystroke
        self._sleep(self.settings.pre_copy_delay)
        self.clipboard.synthesize_copy()

        return self.wait_for_change(cleared_count)

    def wait_for_change(self, baseline: int) -> Optional[str]:
        """Poll the change counter until it moves past ``baseline`` or the timeout elapses."""
        deadline = self._clock() + self.settings.copy_timeout

        while self._clock() < deadline:
            if self.clipboard.change_count() != baseline:
                # Some apps write the clipboard in several steps
                self._sleep(self.settings.grace_delay)
                text = self.clipboard.read()
                if text:
                    return text
            self._sleep(self.settings.poll_interval)

        logger.debug("Clipboard capture timeout reached")
        return self.clipboard.read() or None
