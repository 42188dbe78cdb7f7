"""
User-visible notices. The app shows them as rumps notifications; tests collect them.
"""

from dataclasses import dataclass
from typing import Protocol

APP_TITLE = "Grammar Police"
PREVIEW_LENGTH = 80


@dataclass(frozen=True)
class Notice:
    """One notification: subtitle plus message, under the app title."""

    subtitle: str
    message: str
    is_error: bool = False
    title: str = APP_TITLE


class Notifier(Protocol):
    """Something that can show a notice to the user."""

    def show(self, notice: Notice) -> None:
        """Display ``notice``."""


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Shorten ``text`` to a single-line preview."""
    flat = " ".join(text.split())
    if len(flat) <= length:
        return flat
    return flat[: length - 1] + "…"


def correction_success(text: str, direct: bool) -> Notice:
    """Text corrected and written back."""
    subtitle = "Corrected" if direct else "Corrected (pasted)"
    return Notice(subtitle, preview(text))


def translation_complete(text: str, target_language: str) -> Notice:
    """Translation placed on the clipboard."""
    return Notice(f"Translated to {target_language}, copied to clipboard", preview(text))


def no_text_selected() -> Notice:
    """Nothing selected."""
    return Notice("No text selected", "Select some text and try again.", is_error=True)


def secure_field() -> Notice:
    """Selection is in a password field."""
    return Notice("Secure field", "Grammar Police does not read password fields.", is_error=True)


def text_too_long(current: int, maximum: int) -> Notice:
    """Selection exceeds the configured limit."""
    return Notice("Text too long", f"{current} characters selected, the maximum is {maximum}.", is_error=True)


def accessibility_required() -> Notice:
    """Accessibility permission is missing."""
    return Notice(
        "Accessibility permission required",
        "Enable Grammar Police in System Settings > Privacy & Security > Accessibility.",
        is_error=True,
    )


def not_configured(backend: str) -> Notice:
    """Backend is missing its API key or endpoint."""
    return Notice(f"{backend} not configured", "Set an API key or endpoint in the configuration file.", is_error=True)


def consent_required() -> Notice:
    """Remote backend used before the user agreed to send text off the machine."""
    return Notice(
        "Privacy consent required",
        "Open Grammar Police > Privacy to allow sending text to the remote model.",
        is_error=True,
    )


def busy() -> Notice:
    """Another operation is still running."""
    return Notice("Busy", "Still working on the previous request.", is_error=True)


def error(message: str) -> Notice:
    """Any other failure."""
    return Notice("Error", message, is_error=True)
