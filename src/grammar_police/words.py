"""
Protected words and the JSON-backed store that owns them.
"""

import csv
import io
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CSV_HEADER = ["id", "word", "case_sensitive", "whole_word_match", "created_at"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProtectedWord:
    """A literal string that must pass through correction and translation unchanged."""

    text: str
    case_sensitive: bool = False
    whole_word_only: bool = True
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise for the JSON word file."""
        return {
            "id": self.id,
            "word": self.text,
            "case_sensitive": self.case_sensitive,
            "whole_word_match": self.whole_word_only,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProtectedWord":
        """Build a word from its JSON representation."""
        created_at = data.get("created_at")
        return cls(
            text=str(data["word"]),
            case_sensitive=bool(data.get("case_sensitive", False)),
            whole_word_only=bool(data.get("whole_word_match", True)),
            id=str(data.get("id") or uuid.uuid4()),
            created_at=datetime.fromisoformat(created_at) if created_at else _now(),
        )


FLAG_CASE_SENSITIVE = "/case"
FLAG_PARTIAL = "/partial"


def parse_word_entry(entry: str, case_sensitive: bool = False, whole_word_only: bool = True) -> Optional[ProtectedWord]:
    """Build a word from dialog input such as ``"iOS /case"`` or ``"micro /partial"``.

    ``/case`` makes the word case-sensitive and ``/partial`` lets it match inside
    longer words; the keyword arguments are the defaults when a flag is absent.
    Runs of whitespace in a phrase collapse to single spaces.
    """
    text_parts = []
    for part in entry.split():
        lowered = part.lower()
        if lowered == FLAG_CASE_SENSITIVE:
            case_sensitive = True
        elif lowered == FLAG_PARTIAL:
            whole_word_only = False
        else:
            text_parts.append(part)
    if not text_parts:
        return None
    return ProtectedWord(" ".join(text_parts), case_sensitive=case_sensitive, whole_word_only=whole_word_only)


def _parse_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


class ProtectedWordStore:
    """Owns the user's protected words and persists them to a JSON file."""

    def __init__(self, words_file: Optional[str] = None):
        if words_file is None:
            data_dir = Path.home() / ".grammar_police"
            data_dir.mkdir(exist_ok=True)
            words_file = str(data_dir / "protected_words.json")

        self.words_file = Path(words_file)
        self._words: List[ProtectedWord] = []
        self._lock = threading.Lock()
        self.load()

    def load(self) -> None:
        """Load words from disk, keeping an empty list if the file is missing or unreadable."""
        if not self.words_file.exists():
            return
        try:
            with open(self.words_file, "r", encoding="utf-8") as f:
                raw_words = json.load(f)
            loaded = [ProtectedWord.from_dict(item) for item in raw_words]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            logger.error("Failed to load protected words from %s: %s", self.words_file, e)
            return
        with self._lock:
            self._words = loaded

    def save(self) -> None:
        """Write the current word list to disk."""
        with self._lock:
            payload = [word.to_dict() for word in self._words]
        try:
            with open(self.words_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Failed to save protected words to %s: %s", self.words_file, e)

    def current_words(self) -> List[ProtectedWord]:
        """Snapshot of the configured words, in insertion order."""
        with self._lock:
            return list(self._words)

    def add(self, word: ProtectedWord) -> None:
        """Add a word."""
        with self._lock:
            self._words.append(word)
        self.save()

    def update(self, word: ProtectedWord) -> bool:
        """Replace the stored word with the same id. Returns False if it does not exist."""
        with self._lock:
            for i, existing in enumerate(self._words):
                if existing.id == word.id:
                    self._words[i] = word
                    break
            else:
                return False
        self.save()
        return True

    def delete(self, word_id: str) -> bool:
        """Delete a word by id. Returns False if it does not exist."""
        with self._lock:
            remaining = [word for word in self._words if word.id != word_id]
            if len(remaining) == len(self._words):
                return False
            self._words = remaining
        self.save()
        return True

    def find(self, text: str) -> Optional[ProtectedWord]:
        """Find a word by its text, ignoring case."""
        lowered = text.lower()
        with self._lock:
            for word in self._words:
                if word.text.lower() == lowered:
                    return word
        return None

    def set_flags(
        self, word_id: str, case_sensitive: Optional[bool] = None, whole_word_only: Optional[bool] = None
    ) -> bool:
        """Change a word's matching flags, leaving those passed as None alone."""
        with self._lock:
            existing = next((word for word in self._words if word.id == word_id), None)
        if existing is None:
            return False
        return self.update(
            replace(
                existing,
                case_sensitive=existing.case_sensitive if case_sensitive is None else case_sensitive,
                whole_word_only=existing.whole_word_only if whole_word_only is None else whole_word_only,
            )
        )

    def export_csv(self) -> str:
        """Export all words as CSV with a header row."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for word in self.current_words():
            writer.writerow(
                [
                    word.id,
                    word.text,
                    str(word.case_sensitive).lower(),
                    str(word.whole_word_only).lower(),
                    word.created_at.isoformat(),
                ]
            )
        return buffer.getvalue()

    def import_csv(self, csv_content: str) -> int:
        """Import words from CSV, skipping malformed rows and words already present.

        Returns the number of words imported.
        """
        reader = csv.reader(io.StringIO(csv_content))
        imported: List[ProtectedWord] = []
        with self._lock:
            known = {word.text.lower() for word in self._words}

        for row_number, row in enumerate(reader):
            if row_number == 0 or not row:
                continue  # header / blank
            if len(row) < len(CSV_HEADER):
                logger.debug("Skipping short CSV row %d", row_number)
                continue
            case_sensitive = _parse_bool(row[2])
            whole_word = _parse_bool(row[3])
            if case_sensitive is None or whole_word is None or not row[1]:
                logger.debug("Skipping malformed CSV row %d", row_number)
                continue
            try:
                created_at = datetime.fromisoformat(row[4])
                word_id = str(uuid.UUID(row[0]))
            except ValueError:
                logger.debug("Skipping CSV row %d with bad id or date", row_number)
                continue
            if row[1].lower() in known:
                continue
            known.add(row[1].lower())
            imported.append(
                ProtectedWord(
                    text=row[1],
                    case_sensitive=case_sensitive,
                    whole_word_only=whole_word,
                    id=word_id,
                    created_at=created_at,
                )
            )

        if imported:
            with self._lock:
                self._words.extend(imported)
            self.save()
            logger.info("Imported %d protected word(s)", len(imported))

        return len(imported)
