"""
macOS implementations of the OS interfaces: Accessibility (AX) for the focused
element, NSPasteboard for the clipboard, and synthetic Cmd+C / Cmd+V keystrokes.
"""

import sys

# Check if we're on macOS
if sys.platform != "darwin":
    raise ImportError("The macOS backends are only available on macOS.")  # type: ignore[unreachable]

import logging
from typing import Any, List, Optional

import pyperclip
from pynput.keyboard import Controller, Key

try:
    import AppKit  # type: ignore
    import ApplicationServices  # type: ignore
except ImportError as exc:
    raise ImportError(
        "pyobjc is required but not installed. Please install with: pip install -e .[macOS]"
    ) from exc

from grammar_police.accessibility import DirectRead, FocusedApp
from grammar_police.errors import ClipboardError

logger = logging.getLogger(__name__)

SECURE_ROLE = "AXSecureTextField"
AX_SUCCESS = getattr(ApplicationServices, "kAXErrorSuccess", 0)


class MacFocusedTextIO:
    """Reads and writes the focused element's selected text through the AX API."""

    def is_trusted(self) -> bool:
        """Whether this process has accessibility permission."""
        return bool(ApplicationServices.AXIsProcessTrusted())

    def request_trust(self) -> bool:
        """Show the system prompt for accessibility permission."""
        options = {ApplicationServices.kAXTrustedCheckOptionPrompt: True}
        return bool(ApplicationServices.AXIsProcessTrustedWithOptions(options))

    def focused_app(self) -> Optional[FocusedApp]:
        """The frontmost application."""
        front = AppKit.NSWorkspace.sharedWorkspace().frontmostApplication()
        if front is None:
            return None
        return FocusedApp(
            bundle_id=str(front.bundleIdentifier() or ""),
            name=str(front.localizedName() or "Unknown"),
            pid=int(front.processIdentifier()),
        )

    def _focused_element(self) -> Any:
        app = self.focused_app()
        if app is None:
            return None
        app_element = ApplicationServices.AXUIElementCreateApplication(app.pid)
        err, element = ApplicationServices.AXUIElementCopyAttributeValue(
            app_element, ApplicationServices.kAXFocusedUIElementAttribute, None
        )
        if err != AX_SUCCESS or element is None:
            logger.debug("Failed to get focused element: %s", err)
            return None
        return element

    def _attribute(self, element: Any, attribute: Any) -> Any:
        err, value = ApplicationServices.AXUIElementCopyAttributeValue(element, attribute, None)
        return value if err == AX_SUCCESS else None

    def _is_secure(self, element: Any) -> bool:
        role = self._attribute(element, ApplicationServices.kAXRoleAttribute)
        if role is not None and str(role) == SECURE_ROLE:
            return True
        subrole = self._attribute(element, ApplicationServices.kAXSubroleAttribute)
        if subrole is not None:
            subrole = str(subrole)
            return "Secure" in subrole or "Password" in subrole
        return False

    def read_selection(self) -> DirectRead:
        """Read the focused element's selected text."""
        if not self.is_trusted():
            return DirectRead.unavailable()

        element = self._focused_element()
        if element is None:
            return DirectRead.unavailable()

        if self._is_secure(element):
            logger.warning("Detected secure text field, skipping")
            return DirectRead.secure_field()

        err, text = ApplicationServices.AXUIElementCopyAttributeValue(
            element, ApplicationServices.kAXSelectedTextAttribute, None
        )
        if err != AX_SUCCESS or text is None:
            logger.debug("Failed to get selected text: %s", err)
            return DirectRead.unavailable()

        # Always convert to a true Python str (handles objc.pyobjc_unicode)
        text = str(text)
        if not text:
            return DirectRead.no_selection()
        return DirectRead.success(text)

    def write_selection(self, text: str) -> bool:
        """Set the focused element's selected text."""
        if not self.is_trusted():
            return False

        element = self._focused_element()
        if element is None or self._is_secure(element):
            return False

        err, settable = ApplicationServices.AXUIElementIsAttributeSettable(
            element, ApplicationServices.kAXSelectedTextAttribute, None
        )
        if err != AX_SUCCESS or not settable:
            logger.debug("Selected text attribute is not settable")
            return False

        err = ApplicationServices.AXUIElementSetAttributeValue(
            element, ApplicationServices.kAXSelectedTextAttribute, text
        )
        if err != AX_SUCCESS:
            logger.debug("Failed to set selected text: %s", err)
            return False
        return True


class MacClipboard:
    """The general pasteboard plus Cmd+C / Cmd+V synthesis."""

    def __init__(self) -> None:
        self._pasteboard = AppKit.NSPasteboard.generalPasteboard()
        self._keyboard = Controller()

    def read(self) -> Optional[str]:
        """Current plain-text contents."""
        try:
            text = pyperclip.paste()
        except pyperclip.PyperclipException as e:
            raise ClipboardError(str(e)) from e
        return str(text) if text else None

    def write(self, text: str) -> None:
        """Replace the contents with ``text``."""
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            raise ClipboardError(str(e)) from e

    def clear(self) -> None:
        """Empty the pasteboard."""
        self._pasteboard.clearContents()

    def change_count(self) -> int:
        """NSPasteboard change counter."""
        return int(self._pasteboard.changeCount())

    def save(self) -> List[Any]:
        """Deep copy every pasteboard item, all types, so rich content survives."""
        copies = []
        for item in self._pasteboard.pasteboardItems() or []:
            new_item = AppKit.NSPasteboardItem.alloc().init()
            for item_type in item.types():
                data = item.dataForType_(item_type)
                if data is not None:
                    new_item.setData_forType_(data, item_type)
            copies.append(new_item)
        return copies

    def restore(self, snapshot: List[Any]) -> None:
        """Put back items captured by ``save``."""
        self._pasteboard.clearContents()
        if snapshot:
            self._pasteboard.writeObjects_(snapshot)

    def _send_shortcut(self, key: str) -> None:
        with self._keyboard.pressed(Key.cmd):
            self._keyboard.press(key)
            self._keyboard.release(key)

    def synthesize_copy(self) -> None:
        """Send Cmd+C to the frontmost app."""
        self._send_shortcut("c")

    def synthesize_paste(self) -> None:
        """Send Cmd+V to the frontmost app."""
        self._send_shortcut("v")
