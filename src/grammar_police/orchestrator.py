"""
Operation orchestration for Grammar Police.

One operation runs at a time:
acquire selection -> check length -> mask -> transform -> unmask -> replace -> record.
Every exit path produces one notice, appends at most one history record, and
leaves the clipboard either restored or holding the result.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol

from grammar_police import notifications
from grammar_police.accessibility import FocusedApp, FocusedTextIO
from grammar_police.clipboard import ClipboardLease
from grammar_police.errors import ReplacementError
from grammar_police.history import OperationRecord
from grammar_police.masking import mask, unmask, validate_no_collisions
from grammar_police.notifications import Notice, Notifier
from grammar_police.replacement import ReplacementExecutor
from grammar_police.selection import AcquiredSelection, AcquisitionFailure, SelectionAcquirer
from grammar_police.transformer import TransformError, TransformKind, Transformer
from grammar_police.words import ProtectedWord

logger = logging.getLogger(__name__)


class WordSource(Protocol):
    """Provides the protected words to mask."""

    def current_words(self) -> List[ProtectedWord]:
        """Snapshot of the configured words."""


class HistorySink(Protocol):
    """Receives finished operation records."""

    def append(self, record: OperationRecord) -> None:
        """Store ``record``."""


@dataclass
class OrchestratorSettings:
    """Gates applied before and during an operation."""

    max_characters: int = 2000
    privacy_consent_granted: bool = False
    target_language: str = "Vietnamese"


class OperationOrchestrator:
    """Runs correction and translation operations against injected collaborators."""

    def __init__(
        self,
        text_io: FocusedTextIO,
        acquirer: SelectionAcquirer,
        replacer: ReplacementExecutor,
        transformer: Transformer,
        words: WordSource,
        history: HistorySink,
        notifier: Notifier,
        settings: Optional[OrchestratorSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        pipeline_lock: Optional[threading.Lock] = None,
    ) -> None:
        self.text_io = text_io
        self.acquirer = acquirer
        self.replacer = replacer
        self.transformer = transformer
        self.words = words
        self.history = history
        self.notifier = notifier
        self.settings = settings or OrchestratorSettings()
        self._clock = clock
        # Only one operation may touch the clipboard and focus at a time. Orchestrators
        # rebuilt after a config reload must share the same lock.
        self._pipeline_lock = pipeline_lock or threading.Lock()

    @property
    def busy(self) -> bool:
        """Whether an operation is in flight."""
        return self._pipeline_lock.locked()

    def run_correction(self) -> None:
        """Correct the selected text and write it back in place."""
        self._run(TransformKind.CORRECT)

    def run_translation(self) -> None:
        """Translate the selected text and put the result on the clipboard."""
        self._run(TransformKind.TRANSLATE)

    def _run(self, kind: TransformKind) -> None:
        if not self._pipeline_lock.acquire(blocking=False):
            logger.warning("Operation already running, ignoring %s request", kind.value)
            self._notify(notifications.busy())
            return
        try:
            self._execute(kind)
        finally:
            self._pipeline_lock.release()

    def _execute(self, kind: TransformKind) -> None:
        started = self._clock()
        app = FocusedApp()
        selection: Optional[AcquiredSelection] = None

        try:
            if not self._check_gates():
                return

            app = self.text_io.focused_app() or FocusedApp()
            logger.info("%s requested in %s", kind.value, app.name)

            acquired = self.acquirer.acquire(app)
            if isinstance(acquired, AcquisitionFailure):
                self._handle_acquisition_failure(kind, app, acquired)
                return

            selection = acquired
            self._process(kind, app, selection)
        except Exception as e:  # pylint: disable=broad-except
            logger.exception("Unexpected error during %s", kind.value)
            self._notify(notifications.error(str(e) or type(e).__name__))
            self._record(kind, app, selection.text if selection is not None else "", "", success=False)
        finally:
            # Restores the user's clipboard unless a step already restored or released it
            if selection is not None and selection.lease is not None:
                self._restore_lease(selection.lease)
            total_ms = int((self._clock() - started) * 1000)
            logger.info("%s finished in %dms", kind.value, total_ms)

    def _restore_lease(self, lease: ClipboardLease) -> None:
        try:
            lease.restore()
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to restore the clipboard")

    def _check_gates(self) -> bool:
        """Pre-acquisition checks. A failed gate notifies and records nothing."""
        if not self.text_io.is_trusted():
            logger.warning("Accessibility permission not granted")
            self._notify(notifications.accessibility_required())
            self.text_io.request_trust()
            return False

        if not self.transformer.is_configured():
            logger.warning("%s backend not configured", self.transformer.backend_name)
            self._notify(notifications.not_configured(self.transformer.backend_name))
            return False

        if self.transformer.requires_consent() and not self.settings.privacy_consent_granted:
            logger.warning("Privacy consent not granted for %s", self.transformer.backend_name)
            self._notify(notifications.consent_required())
            return False

        return True

    def _handle_acquisition_failure(
        self, kind: TransformKind, app: FocusedApp, failure: AcquisitionFailure
    ) -> None:
        if failure is AcquisitionFailure.SECURE_FIELD_BLOCKED:
            self._notify(notifications.secure_field())
        else:
            logger.warning("No text selected")
            self._notify(notifications.no_text_selected())
        self._record(kind, app, "", "", success=False)

    def _process(self, kind: TransformKind, app: FocusedApp, selection: AcquiredSelection) -> None:
        text = selection.text
        logger.debug("Got selected text, length: %d, via fallback: %s", len(text), selection.via_fallback)

        maximum = self.settings.max_characters
        if len(text) > maximum:
            logger.warning("Selection too long: %d > %d", len(text), maximum)
            self._notify(notifications.text_too_long(len(text), maximum))
            self._record(kind, app, text, "", success=False)
            return

        if not validate_no_collisions(text):
            logger.warning("Selection already contains token-shaped text; round trip may alter it")

        masked = mask(text, self.words.current_words())
        logger.debug("Sending to %s with %d masked token(s)", self.transformer.backend_name, masked.token_count)

        result = self.transformer.transform(kind, masked.masked_text)
        if not result.ok:
            logger.error("%s failed: %s", kind.value, result.message)
            if result.error is TransformError.TEXT_TOO_LONG:
                self._notify(notifications.text_too_long(len(text), maximum))
            elif result.error is TransformError.CONSENT_REQUIRED:
                self._notify(notifications.consent_required())
            else:
                self._notify(notifications.error(result.message))
            self._record(kind, app, text, "", success=False, words_used=masked.tokens_used_in_order)
            return

        output = unmask(result.text, masked.mapping)

        if kind is TransformKind.TRANSLATE:
            # Translations are reviewed by the user, never substituted in place
            self.replacer.deliver_to_clipboard(output, selection)
            self._notify(notifications.translation_complete(output, self.settings.target_language))
            self._record(
                kind,
                app,
                text,
                output,
                success=True,
                words_used=masked.tokens_used_in_order,
                latency_ms=result.latency_ms,
            )
            return

        try:
            outcome = self.replacer.replace(output, selection, app)
        except ReplacementError as e:
            logger.error("Replacement failed: %s", e)
            self._notify(notifications.error(str(e)))
            self._record(
                kind,
                app,
                text,
                output,
                success=False,
                words_used=masked.tokens_used_in_order,
                latency_ms=result.latency_ms,
            )
            return

        logger.info("Replacement via %s", outcome.method.value)
        self._notify(notifications.correction_success(output, outcome.direct))
        self._record(
            kind,
            app,
            text,
            output,
            success=True,
            replacement_done=outcome.direct,
            words_used=masked.tokens_used_in_order,
            latency_ms=result.latency_ms,
        )

    def _record(
        self,
        kind: TransformKind,
        app: FocusedApp,
        text: str,
        output: str,
        success: bool,
        replacement_done: bool = False,
        words_used: Optional[List[str]] = None,
        latency_ms: int = 0,
    ) -> None:
        record = OperationRecord(
            input=text,
            output=output,
            kind=kind.value,
            success=success,
            replacement_done=replacement_done,
            protected_words_used=list(words_used or []),
            app_bundle_id=app.bundle_id,
            app_name=app.name,
            source_language="en" if kind is TransformKind.CORRECT else "auto",
            target_language=self.settings.target_language if kind is TransformKind.TRANSLATE else "",
            backend=self.transformer.backend_name,
            latency_ms=latency_ms,
        )
        try:
            self.history.append(record)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to append history record")

    def _notify(self, notice: Notice) -> None:
        try:
            self.notifier.show(notice)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Failed to show notification: %s", notice.subtitle)
