#!/usr/bin/env python3
"""
Grammar Police - macOS menu bar app that corrects or translates the selected text
in any application with a language model, keeping protected words intact.
Run directly: python3 app.py
Or build with: python3 setup.py py2app
"""

import sys

# Check if we're on macOS
if sys.platform != "darwin":
    raise ImportError("This app is designed for macOS only.")  # type: ignore[unreachable]

import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from grammar_police.config_manager import GrammarPoliceConfig  # pylint: disable=import-error
from grammar_police.history import HistoryStore
from grammar_police.hotkeys import HotkeyListener, run_in_background
from grammar_police.log_setup import configure_logging, set_debug
from grammar_police.macos import MacClipboard, MacFocusedTextIO
from grammar_police.notifications import Notice
from grammar_police.orchestrator import OperationOrchestrator
from grammar_police.replacement import ReplacementExecutor
from grammar_police.selection import SelectionAcquirer
from grammar_police.words import (
    FLAG_CASE_SENSITIVE,
    FLAG_PARTIAL,
    ProtectedWord,
    ProtectedWordStore,
    parse_word_entry,
)

# macOS-specific imports for window management
try:
    import AppKit  # type: ignore

    # Get the shared application instance
    NS_APP = getattr(AppKit, "NSApplication").sharedApplication()
except ImportError:
    NS_APP = None

# Import rumps (macOS-specific)
try:
    import rumps  # pylint: disable=import-error
except ImportError as exc:
    raise ImportError(
        "rumps is required but not installed. Please install with: pip install -e .[macOS]"
    ) from exc

logger = logging.getLogger(__name__)

EXPORT_DIR = Path.home() / ".grammar_police" / "exports"


def bring_dialog_to_front() -> None:
    """Bring alert dialogs to the front without affecting notification state."""
    if NS_APP is not None:
        try:
            # Only activate for dialogs, not for notifications
            NS_APP.activateIgnoringOtherApps_(True)
        except Exception:  # pylint: disable=broad-except
            pass


class RumpsNotifier:
    """Shows notices as macOS notifications."""

    def show(self, notice: Notice) -> None:
        """Display ``notice``."""
        rumps.notification(title=notice.title, subtitle=notice.subtitle, message=notice.message)


class ConfigFileChangeHandler(FileSystemEventHandler):
    """Handler for config file change events."""

    def __init__(self, app: "GrammarPolice", config_path: Path) -> None:
        super().__init__()
        self.app = app
        self.config_path = config_path

    def on_modified(self, event: Any) -> None:
        """Handle file modification events."""
        if event.src_path == str(self.config_path):
            self.app.reload_config()


class GrammarPolice(rumps.App):
    """macOS menu bar app that corrects and translates the current selection."""

    config: "GrammarPoliceConfig"

    def __init__(
        self,
        config_file: Optional[str] = None,
        words_file: Optional[str] = None,
        history_file: Optional[str] = None,
    ) -> None:
        super().__init__("👮")
        self.config = GrammarPoliceConfig(config_file)
        configure_logging(debug=self.config.debug_logging)

        self.words = ProtectedWordStore(words_file)
        self.history = HistoryStore(history_file, retention_days=self.config.retention_days)
        self.history.purge_older_than(self.config.retention_days)

        # OS collaborators are created once and shared by every operation
        self.text_io = MacFocusedTextIO()
        self.clipboard = MacClipboard()
        self.notifier = RumpsNotifier()
        # Session state that outlives the orchestrators rebuilt on config reload
        self._pipeline_lock = threading.Lock()
        self._learned_apps: Set[str] = set()
        self.orchestrator = self._build_orchestrator()

        self._config_lock = threading.Lock()
        self._observer: Optional[Any] = None
        self._start_config_watcher()

        self.hotkeys = HotkeyListener(self._hotkey_bindings())
        self.hotkeys.start()

        self.menu = [
            "Correct Selection",
            "Translate Selection",
            None,
            "Protected Words",
            "History",
            "Configuration",
            "Privacy",
        ]

        # Set app as background app (no dock icon) - this must be done early
        if NS_APP is not None:
            try:
                # NSApplicationActivationPolicyAccessory = 1 (background app, no dock icon)
                NS_APP.setActivationPolicy_(1)
            except Exception:  # pylint: disable=broad-except
                pass

        if not self.config.get_bool("privacy", "consent_shown"):
            self._ask_privacy_consent()

    def _build_orchestrator(self) -> OperationOrchestrator:
        """Wire the pipeline from the current configuration."""
        return OperationOrchestrator(
            text_io=self.text_io,
            acquirer=SelectionAcquirer(
                self.text_io,
                self.clipboard,
                self.config.acquisition_settings(),
                learned_unreliable=self._learned_apps,
            ),
            replacer=ReplacementExecutor(self.text_io, self.clipboard, self.config.replacement_settings()),
            transformer=self.config.build_transformer(),
            words=self.words,
            history=self.history,
            notifier=self.notifier,
            settings=self.config.orchestrator_settings(),
            pipeline_lock=self._pipeline_lock,
        )

    def _hotkey_bindings(self) -> Dict[str, Callable[[], None]]:
        return {
            str(self.config.get("hotkeys", "correct")): self.correct_selection_now,
            str(self.config.get("hotkeys", "translate")): self.translate_selection_now,
        }

    def correct_selection_now(self) -> None:
        """Run a correction against the current pipeline."""
        self.orchestrator.run_correction()

    def translate_selection_now(self) -> None:
        """Run a translation against the current pipeline."""
        self.orchestrator.run_translation()

    def __del__(self) -> None:
        """Cleanup resources when the app is destroyed."""
        self.cleanup_resources()

    def _start_config_watcher(self) -> None:
        """Start watching the config file for changes."""
        if self._observer is not None:
            return  # Already watching

        config_path = self.config.config_file
        event_handler = ConfigFileChangeHandler(self, config_path)
        observer = Observer()
        observer.schedule(event_handler, str(config_path.parent), recursive=False)
        observer_thread = threading.Thread(target=observer.start, daemon=True)
        observer_thread.start()
        self._observer = observer

    def reload_config(self) -> None:
        """Reload configuration from file and rebuild the pipeline."""
        with self._config_lock:
            self.config.load_config()
            set_debug(self.config.debug_logging)
            self.history.retention_days = self.config.retention_days
            if self.orchestrator.busy:
                # The new orchestrator shares the pipeline lock, so it waits its turn
                logger.info("Config changed during an operation; applying to the next one")
            self.orchestrator = self._build_orchestrator()
            self.hotkeys.restart(self._hotkey_bindings())
        logger.info("Configuration reloaded from %s", self.config.get_config_path())
        rumps.notification(
            title="Grammar Police", subtitle="Config Reloaded", message="Configuration reloaded from file."
        )

    @rumps.clicked("Correct Selection")
    def correct_selection(self, _: Any) -> None:
        """Correct the selected text in the frontmost app."""
        run_in_background(self.correct_selection_now, "grammar-police-menu-correct")()

    @rumps.clicked("Translate Selection")
    def translate_selection(self, _: Any) -> None:
        """Translate the selected text and copy the result."""
        run_in_background(self.translate_selection_now, "grammar-police-menu-translate")()

    @rumps.clicked("Protected Words")
    def protected_words(self, _: Any) -> None:
        """Show the protected words dialog."""
        while True:
            bring_dialog_to_front()
            words = self.words.current_words()
            window = rumps.Window(
                message=self._build_words_display(words)
                + "\nType a word to protect it. Add /case to make it case-sensitive"
                + " or /partial to match inside longer words.\n"
                + 'Remove with "-" and numbers (e.g. "-2 5"), flip flags with "/case 2" or "/partial 2",\n'
                + 'or type "export" / "import <path to csv>":',
                title="Protected Words",
                ok="Apply",
                cancel="Close",
                default_text="",
            )
            response = window.run()
            if response.clicked != 1:
                break
            self._handle_words_input(response.text, words)

    def _build_words_display(self, words: List[ProtectedWord]) -> str:
        """Numbered list of protected words with their matching flags."""
        if not words:
            return "No protected words yet.\n"
        lines = []
        for i, word in enumerate(words, 1):
            flags = []
            if word.case_sensitive:
                flags.append("case-sensitive")
            if not word.whole_word_only:
                flags.append("substring")
            suffix = f"  ({', '.join(flags)})" if flags else ""
            lines.append(f"{i}. {word.text}{suffix}")
        return "\n".join(lines) + "\n"

    def _handle_words_input(self, input_text: str, words: List[ProtectedWord]) -> None:
        """Add a word, remove or re-flag the numbered ones, or export/import CSV."""
        input_text = input_text.strip()
        if not input_text:
            return

        command, _, argument = input_text.partition(" ")
        command = command.lower()
        if command == "export" and not argument:
            path = self._write_export("protected-words", "csv", self.words.export_csv())
            rumps.notification(title="Grammar Police", subtitle="Protected words exported", message=str(path))
            return
        if command == "import" and argument:
            self._import_words(argument.strip())
            return
        if command in (FLAG_CASE_SENSITIVE, FLAG_PARTIAL) and re.fullmatch(r"[\d\s,]+", argument):
            self._toggle_word_flags(command, argument, words)
            return

        if input_text.startswith("-"):
            numbers = [int(n) for n in re.split(r"[^\d]+", input_text) if n]
            removed = []
            for number in sorted(set(numbers), reverse=True):
                if 1 <= number <= len(words):
                    word = words[number - 1]
                    self.words.delete(word.id)
                    removed.append(word.text)
                else:
                    rumps.alert(title="Invalid Number", message=f"Number {number} is out of range (1-{len(words)})")
            if removed:
                rumps.notification(
                    title="Grammar Police", subtitle="Protected words removed", message=", ".join(removed)
                )
            return

        word = parse_word_entry(
            input_text,
            case_sensitive=self.config.get_bool("words", "default_case_sensitive"),
            whole_word_only=self.config.get_bool("words", "default_whole_word"),
        )
        if word is None:
            return
        if self.words.find(word.text) is not None:
            rumps.alert(title="Already Protected", message=f"'{word.text}' is already in the list.")
            return
        self.words.add(word)
        rumps.notification(title="Grammar Police", subtitle="Protected word added", message=word.text)

    def _toggle_word_flags(self, flag: str, numbers_text: str, words: List[ProtectedWord]) -> None:
        """Flip case sensitivity or whole-word matching on the numbered words."""
        for number in dict.fromkeys(int(n) for n in re.split(r"[^\d]+", numbers_text) if n):
            if not 1 <= number <= len(words):
                rumps.alert(title="Invalid Number", message=f"Number {number} is out of range (1-{len(words)})")
                continue
            word = words[number - 1]
            if flag == FLAG_CASE_SENSITIVE:
                self.words.set_flags(word.id, case_sensitive=not word.case_sensitive)
            else:
                self.words.set_flags(word.id, whole_word_only=not word.whole_word_only)

    def _import_words(self, path_text: str) -> None:
        """Import protected words from a CSV file."""
        path = Path(path_text).expanduser()
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Could not read %s: %s", path, e)
            rumps.alert(title="Import Failed", message=f"Could not read {path}: {e}")
            return
        imported = self.words.import_csv(content)
        rumps.notification(
            title="Grammar Police", subtitle="Protected words imported", message=f"{imported} word(s) added"
        )

    @rumps.clicked("History")
    def show_history(self, _: Any) -> None:
        """Show history statistics and export options."""
        bring_dialog_to_front()
        stats = self.history.statistics()
        message = (
            f"Total operations: {stats.total_entries}\n"
            f"Grammar corrections: {stats.grammar_corrections}\n"
            f"Translations: {stats.translations}\n"
            f"Successful: {stats.successful_operations}\n"
            f"Direct replacements: {stats.direct_replacements}\n"
            f"Average latency: {stats.average_latency_ms:.0f} ms\n\n"
            "1. Export CSV\n2. Export JSON\n3. Export for learning\n4. Delete all history\n"
        )
        response = rumps.Window(
            message=message, title="History", ok="Run", cancel="Close", default_text=""
        ).run()
        if response.clicked != 1:
            return

        choice = response.text.strip()
        exports = {
            "1": ("csv", self.history.export_csv),
            "2": ("json", self.history.export_json),
            "3": ("learning.json", self.history.export_for_learning),
        }
        if choice in exports:
            extension, export = exports[choice]
            path = self._write_export("history", extension, export())
            rumps.notification(title="Grammar Police", subtitle="History exported", message=str(path))
        elif choice == "4":
            confirm = rumps.alert(
                title="Delete History",
                message="Delete every history entry? This cannot be undone.",
                ok="Delete",
                cancel="Cancel",
            )
            if confirm == 1:
                self.history.delete_all()
        elif choice:
            rumps.alert(title="Invalid Input", message=f"'{choice}' is not an option.")

    def _write_export(self, name: str, extension: str, content: str) -> Path:
        EXPORT_DIR.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        path = EXPORT_DIR / f"{name}-{stamp}.{extension}"
        path.write_text(content, encoding="utf-8")
        return path

    @rumps.clicked("Configuration")
    def configure(self, _: Any) -> None:
        """Show all toggleable settings in one dialog with option to toggle any of them."""
        while True:
            bring_dialog_to_front()
            all_settings = self.config.get_toggle_settings()

            settings_text = "⚪ 0. Restore Defaults\n\n"
            for i, (_section, _setting, description, value) in enumerate(all_settings, 1):
                settings_text += f"{'🟢' if value else '🔴'} {i}. {description}\n"
            settings_text += f"\nOther settings live in {self.config.get_config_path()}\n"

            window = rumps.Window(
                message=settings_text + '\nEnter numbers to toggle (e.g. "1 3"):',
                title="Configuration",
                ok="Toggle",
                cancel="Close",
                default_text="",
            )
            response = window.run()
            if response.clicked != 1:
                break

            input_text = response.text.strip()
            if input_text == "0":
                self._restore_defaults()
                break

            for number in dict.fromkeys(int(n) for n in re.split(r"[^\d]+", input_text) if n):
                if 1 <= number <= len(all_settings):
                    section, setting, _description, _value = all_settings[number - 1]
                    self.config.toggle(section, setting)
                else:
                    rumps.alert(title="Invalid Number", message=f"Number {number} is out of range (1-{len(all_settings)})")

    def _restore_defaults(self) -> None:
        """Restore all configuration settings to their default values."""
        bring_dialog_to_front()
        confirm = rumps.alert(
            title="Restore Defaults",
            message="Are you sure you want to restore all settings to their default values?",
            ok="Yes, Restore",
            cancel="Cancel",
        )
        if confirm == 1:
            self.config.reset_to_defaults()

    @rumps.clicked("Privacy")
    def privacy(self, _: Any) -> None:
        """Ask again whether text may be sent to a remote model."""
        self._ask_privacy_consent()

    def _ask_privacy_consent(self) -> None:
        bring_dialog_to_front()
        granted = rumps.alert(
            title="Send text to a remote model?",
            message=(
                "With the OpenAI backend, the text you select is sent to OpenAI for correction "
                "or translation. Protected words are replaced by placeholders before sending.\n\n"
                "A local model never sends text off this Mac."
            ),
            ok="Allow",
            cancel="Don't Allow",
        )
        self.config.set("privacy", "consent_shown", True)
        self.config.set("privacy", "consent_granted", granted == 1)

    def cleanup_resources(self) -> None:
        """Clean up resources before shutdown."""
        hotkeys = getattr(self, "hotkeys", None)
        if hotkeys is not None:
            hotkeys.stop()

        # Stop the file observer
        observer = getattr(self, "_observer", None)
        if observer is not None:
            observer.stop()
            # Wait for observer to stop (with timeout)
            if observer.is_alive():
                observer.join(timeout=1.0)
            self._observer = None


def main() -> None:
    """Main entry point for the application."""
    GrammarPolice().run()


if __name__ == "__main__":
    main()
