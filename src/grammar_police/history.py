"""
Operation history: one record per correction or translation, kept in a JSON file.
"""

import copy
import csv
import io
import json
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "timestamp",
    "app",
    "input",
    "output",
    "mode",
    "language_from",
    "language_to",
    "custom_words_ignored",
    "replacement_done",
]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class OperationRecord:
    """What happened during one operation."""

    input: str
    output: str
    kind: str
    success: bool
    replacement_done: bool = False
    protected_words_used: List[str] = field(default_factory=list)
    app_bundle_id: str = ""
    app_name: str = ""
    source_language: str = "en"
    target_language: str = ""
    backend: str = ""
    latency_ms: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation."""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OperationRecord":
        """Inverse of ``to_dict``."""
        values = dict(data)
        values["timestamp"] = datetime.fromisoformat(values["timestamp"])
        return cls(**values)

    def csv_row(self) -> List[str]:
        """Row matching ``CSV_HEADER``."""
        return [
            self.timestamp.isoformat(),
            self.app_name,
            self.input,
            self.output,
            self.kind,
            self.source_language,
            self.target_language,
            ";".join(self.protected_words_used),
            str(self.replacement_done).lower(),
        ]


@dataclass(frozen=True)
class HistoryStatistics:
    """Aggregate numbers shown in the History menu."""

    total_entries: int
    grammar_corrections: int
    translations: int
    successful_operations: int
    direct_replacements: int
    average_latency_ms: float


class HistoryStore:
    """Appends operation records and answers queries over them."""

    def __init__(self, history_file: Optional[str] = None, retention_days: Optional[int] = None):
        if history_file is None:
            data_dir = Path.home() / ".grammar_police"
            data_dir.mkdir(exist_ok=True)
            history_file = str(data_dir / "history.json")

        self.history_file = Path(history_file)
        # Records older than this are dropped on every append; None keeps everything
        self.retention_days = retention_days
        self._records: List[OperationRecord] = []
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if not self.history_file.exists():
            return
        try:
            with open(self.history_file, "r", encoding="utf-8") as f:
                raw = json.load(f)
            self._records = [OperationRecord.from_dict(item) for item in raw]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError) as e:
            # If file is corrupted or unreadable, start with an empty history
            logger.error("Failed to load history from %s: %s", self.history_file, e)

    def _save(self) -> None:
        payload = [record.to_dict() for record in self._records]
        try:
            with open(self.history_file, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Failed to save history to %s: %s", self.history_file, e)

    def append(self, record: OperationRecord) -> None:
        """Store a record, dropping expired ones. Write failures are logged, never raised."""
        with self._lock:
            self._records.append(copy.deepcopy(record))
            if self.retention_days is not None:
                self._expire(self.retention_days, _now())
            self._save()
        logger.debug("History entry saved")

    def entries(self, limit: Optional[int] = None, kind: Optional[str] = None) -> List[OperationRecord]:
        """Records newest first, optionally filtered by kind and limited in number."""
        with self._lock:
            records = sorted(self._records, key=lambda record: record.timestamp, reverse=True)
        if kind is not None:
            records = [record for record in records if record.kind == kind]
        if limit is not None:
            records = records[:limit]
        return records

    def delete(self, record_id: str) -> bool:
        """Delete one record by id."""
        with self._lock:
            remaining = [record for record in self._records if record.id != record_id]
            if len(remaining) == len(self._records):
                return False
            self._records = remaining
            self._save()
        return True

    def delete_all(self) -> None:
        """Remove every record."""
        with self._lock:
            self._records = []
            self._save()
        logger.info("All history entries deleted")

    def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Delete records older than ``days``. Returns how many were removed."""
        with self._lock:
            removed = self._expire(days, now or _now())
            if removed:
                self._save()
        logger.info("Purged %d entries older than %d days", removed, days)
        return removed

    def _expire(self, days: int, now: datetime) -> int:
        cutoff = now - timedelta(days=days)
        kept = [record for record in self._records if record.timestamp >= cutoff]
        removed = len(self._records) - len(kept)
        self._records = kept
        return removed

    def export_csv(self, records: Optional[List[OperationRecord]] = None) -> str:
        """CSV export, newest first."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for record in records if records is not None else self.entries():
            writer.writerow(record.csv_row())
        return buffer.getvalue()

    def export_json(self, records: Optional[List[OperationRecord]] = None) -> str:
        """Pretty JSON export with sorted keys."""
        chosen = records if records is not None else self.entries()
        return json.dumps([record.to_dict() for record in chosen], indent=2, sort_keys=True, ensure_ascii=False)

    def export_for_learning(self, records: Optional[List[OperationRecord]] = None) -> str:
        """Input/correction pairs for building a personal style corpus."""
        chosen = records if records is not None else self.entries()
        pairs = [
            {"input": record.input, "correction": record.output, "explanation": f"Mode: {record.kind}"}
            for record in chosen
            if record.success
        ]
        return json.dumps(pairs, indent=2, ensure_ascii=False)

    def statistics(self) -> HistoryStatistics:
        """Counts and mean latency over all records."""
        records = self.entries()
        total = len(records)
        average = sum(record.latency_ms for record in records) / total if total else 0.0
        return HistoryStatistics(
            total_entries=total,
            grammar_corrections=sum(1 for record in records if record.kind == "grammar"),
            translations=sum(1 for record in records if record.kind == "translate"),
            successful_operations=sum(1 for record in records if record.success),
            direct_replacements=sum(1 for record in records if record.replacement_done),
            average_latency_ms=average,
        )
