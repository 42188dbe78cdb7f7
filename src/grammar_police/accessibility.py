"""
Focused-element text I/O: the interface the core uses to read and write the
current selection without going through the clipboard.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Protocol


class ReadStatus(Enum):
    """Outcome of a direct selection read."""

    SUCCESS = "success"
    NO_SELECTION = "no_selection"
    SECURE_FIELD = "secure_field"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class DirectRead:
    """Result of asking the focused element for its selected text."""

    status: ReadStatus
    text: str = ""

    @classmethod
    def success(cls, text: str) -> "DirectRead":
        """A non-empty selection was read."""
        return cls(ReadStatus.SUCCESS, text)

    @classmethod
    def no_selection(cls) -> "DirectRead":
        """The element exists but nothing is selected."""
        return cls(ReadStatus.NO_SELECTION)

    @classmethod
    def secure_field(cls) -> "DirectRead":
        """The element is a password field."""
        return cls(ReadStatus.SECURE_FIELD)

    @classmethod
    def unavailable(cls) -> "DirectRead":
        """No focused element, no permission, or the element does not expose its selection."""
        return cls(ReadStatus.UNAVAILABLE)


@dataclass(frozen=True)
class FocusedApp:
    """Identity of the frontmost application."""

    bundle_id: str = ""
    name: str = "Unknown"
    pid: int = 0


def matches_bundle(bundle_id: str, prefixes: List[str]) -> bool:
    """True if ``bundle_id`` starts with any of ``prefixes``."""
    return bool(bundle_id) and any(bundle_id.startswith(prefix) for prefix in prefixes if prefix)


class FocusedTextIO(Protocol):
    """Reads and writes the focused element's selection through the OS accessibility layer."""

    def is_trusted(self) -> bool:
        """Whether this process has accessibility permission."""

    def request_trust(self) -> bool:
        """Prompt the user for accessibility permission. Returns the current state."""

    def focused_app(self) -> Optional[FocusedApp]:
        """The frontmost application, if any."""

    def read_selection(self) -> DirectRead:
        """Read the selected text of the focused element."""

    def write_selection(self, text: str) -> bool:
        """Replace the focused element's selection. Returns False if the write was refused."""
