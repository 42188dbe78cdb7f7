"""
In-memory stand-ins for the OS interfaces, the model and the stores, shared by the tests.
"""

import os
import sys
from typing import Any, Callable, List, Optional

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from grammar_police.accessibility import DirectRead, FocusedApp  # noqa: E402
from grammar_police.errors import ClipboardError  # noqa: E402
from grammar_police.history import OperationRecord  # noqa: E402
from grammar_police.notifications import Notice  # noqa: E402
from grammar_police.transformer import TransformKind, TransformResult  # noqa: E402
from grammar_police.words import ProtectedWord  # noqa: E402


class FakeClock:
    """Monotonic clock that only moves when ``sleep`` is called."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def elapsed(self, start: float = 100.0) -> float:
        return self.now - start


class FakeTextIO:
    """Focused element whose selection and write behaviour are set per test."""

    def __init__(
        self,
        read: Optional[DirectRead] = None,
        app: Optional[FocusedApp] = None,
        trusted: bool = True,
        accept_writes: bool = True,
    ) -> None:
        self.read = read or DirectRead.unavailable()
        self.app = app if app is not None else FocusedApp("com.apple.TextEdit", "TextEdit", 42)
        self.trusted = trusted
        self.accept_writes = accept_writes
        self.read_calls = 0
        self.trust_requests = 0
        self.written: List[str] = []

    def is_trusted(self) -> bool:
        return self.trusted

    def request_trust(self) -> bool:
        self.trust_requests += 1
        return self.trusted

    def focused_app(self) -> Optional[FocusedApp]:
        return self.app

    def read_selection(self) -> DirectRead:
        self.read_calls += 1
        return self.read

    def write_selection(self, text: str) -> bool:
        if not self.accept_writes:
            return False
        self.written.append(text)
        return True


class FakeClipboard:
    """Clipboard with a change counter and a simulated frontmost app.

    ``copy_source`` is what the app puts on the clipboard when it receives
    Cmd+C (None means the app ignores the keystroke). The copy lands after
    ``copy_lag`` calls to ``change_count``, like an app that writes the
    pasteboard a little after the keystroke.
    """

    def __init__(self, contents: Optional[str] = "user clipboard", copy_source: Optional[str] = None, copy_lag: int = 1):
        self.contents = contents
        self.copy_source = copy_source
        self.copy_lag = copy_lag
        self.counter = 0
        self.fail_writes = False
        self.copy_error: Optional[Exception] = None
        self.pending_polls: Optional[int] = None
        self.save_calls = 0
        self.restore_calls = 0
        self.clear_calls = 0
        self.copy_calls = 0
        self.pasted: List[Optional[str]] = []

    def read(self) -> Optional[str]:
        return self.contents or None

    def write(self, text: str) -> None:
        if self.fail_writes:
            raise ClipboardError("pasteboard unavailable")
        self.contents = text
        self.counter += 1

    def clear(self) -> None:
        self.clear_calls += 1
        self.contents = None
        self.counter += 1

    def change_count(self) -> int:
        if self.pending_polls is not None:
            self.pending_polls -= 1
            if self.pending_polls <= 0:
                self.pending_polls = None
                self.contents = self.copy_source
                self.counter += 1
        return self.counter

    def save(self) -> Any:
        self.save_calls += 1
        return self.contents

    def restore(self, snapshot: Any) -> None:
        self.restore_calls += 1
        self.contents = snapshot
        self.counter += 1

    def synthesize_copy(self) -> None:
        self.copy_calls += 1
        if self.copy_error is not None:
            raise self.copy_error
        if self.copy_source is not None:
            self.pending_polls = self.copy_lag

    def synthesize_paste(self) -> None:
        self.pasted.append(self.contents)


class FakeTransformer:
    """Model stub: returns a fixed result, or whatever ``respond`` computes."""

    def __init__(
        self,
        result: Optional[TransformResult] = None,
        respond: Optional[Callable[[TransformKind, str], TransformResult]] = None,
        configured: bool = True,
        consent: bool = False,
        backend_name: str = "Fake",
    ) -> None:
        self.result = result or TransformResult(text="corrected text", latency_ms=120)
        self.respond = respond
        self.configured = configured
        self.consent = consent
        self.backend_name = backend_name
        self.calls: List[Any] = []

    def is_configured(self) -> bool:
        return self.configured

    def requires_consent(self) -> bool:
        return self.consent

    def transform(self, kind: TransformKind, text: str) -> TransformResult:
        self.calls.append((kind, text))
        if self.respond is not None:
            return self.respond(kind, text)
        return self.result


class StaticWords:
    """Word source with a fixed list."""

    def __init__(self, *texts: str) -> None:
        self.words = [ProtectedWord(text) for text in texts]

    def current_words(self) -> List[ProtectedWord]:
        return list(self.words)


class ListHistory:
    """History sink that keeps records in a list."""

    def __init__(self) -> None:
        self.records: List[OperationRecord] = []

    def append(self, record: OperationRecord) -> None:
        self.records.append(record)


class RecordingNotifier:
    """Notifier that remembers every notice."""

    def __init__(self) -> None:
        self.notices: List[Notice] = []

    def show(self, notice: Notice) -> None:
        self.notices.append(notice)

    @property
    def subtitles(self) -> List[str]:
        return [notice.subtitle for notice in self.notices]
