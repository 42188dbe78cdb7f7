#!/usr/bin/env python3
"""
Tests for the JSON-backed operation history.
"""

import csv
import io
import json
import os
import shutil
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from grammar_police.history import CSV_HEADER, HistoryStore, OperationRecord  # noqa: E402

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def record(kind: str = "grammar", success: bool = True, days_ago: int = 0, **kwargs: object) -> OperationRecord:
    """Build a record timestamped relative to NOW."""
    return OperationRecord(
        input=kwargs.pop("input", "i has"),  # type: ignore[arg-type]
        output=kwargs.pop("output", "I have"),  # type: ignore[arg-type]
        kind=kind,
        success=success,
        timestamp=NOW - timedelta(days=days_ago),
        **kwargs,  # type: ignore[arg-type]
    )


class TestHistoryStore(unittest.TestCase):
    """Test cases for HistoryStore."""

    def setUp(self) -> None:
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.history_file = os.path.join(self.temp_dir, "history.json")
        self.store = HistoryStore(self.history_file)

    def tearDown(self) -> None:
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_entries_newest_first(self) -> None:
        """Test ordering, kind filter and limit."""
        self.store.append(record(days_ago=3, input="old"))
        self.store.append(record(days_ago=1, input="new"))
        self.store.append(record(kind="translate", days_ago=2, input="mid"))

        self.assertEqual([r.input for r in self.store.entries()], ["new", "mid", "old"])
        self.assertEqual([r.input for r in self.store.entries(kind="grammar")], ["new", "old"])
        self.assertEqual([r.input for r in self.store.entries(limit=1)], ["new"])

    def test_persistence(self) -> None:
        """Test that records survive a reload with every field intact."""
        original = record(
            replacement_done=True,
            protected_words_used=["OpenAI"],
            app_bundle_id="com.apple.Notes",
            app_name="Notes",
            backend="OpenAI",
            latency_ms=321,
        )
        self.store.append(original)

        reloaded = HistoryStore(self.history_file).entries()

        self.assertEqual(reloaded, [original])

    def test_append_copies_record(self) -> None:
        """Test that later changes to the caller's record do not leak into the store."""
        entry = record()
        self.store.append(entry)
        entry.protected_words_used.append("changed")
        self.assertEqual(self.store.entries()[0].protected_words_used, [])

    def test_delete(self) -> None:
        """Test deleting one record and all records."""
        first = record(input="first")
        self.store.append(first)
        self.store.append(record(input="second"))

        self.assertTrue(self.store.delete(first.id))
        self.assertFalse(self.store.delete(first.id))
        self.assertEqual([r.input for r in self.store.entries()], ["second"])

        self.store.delete_all()
        self.assertEqual(HistoryStore(self.history_file).entries(), [])

    def test_purge_older_than(self) -> None:
        """Test retention purging."""
        self.store.append(record(days_ago=40))
        self.store.append(record(days_ago=10))

        removed = self.store.purge_older_than(30, now=NOW)

        self.assertEqual(removed, 1)
        self.assertEqual(len(self.store.entries()), 1)
        self.assertEqual(self.store.purge_older_than(30, now=NOW), 0)

    def test_append_applies_retention(self) -> None:
        """Test that a store with a retention period drops expired records as new ones arrive."""
        store = HistoryStore(self.history_file, retention_days=30)
        with patch("grammar_police.history._now", return_value=NOW):
            store.append(record(days_ago=40, input="expired"))
            store.append(record(days_ago=29, input="kept"))
            store.append(record(input="fresh"))

        self.assertEqual([r.input for r in store.entries()], ["fresh", "kept"])
        self.assertEqual([r.input for r in HistoryStore(self.history_file).entries()], ["fresh", "kept"])

    def test_append_without_retention_keeps_everything(self) -> None:
        """Test that the default store never expires records on append."""
        with patch("grammar_police.history._now", return_value=NOW):
            self.store.append(record(days_ago=400))
        self.assertEqual(len(self.store.entries()), 1)

    def test_export_csv(self) -> None:
        """Test the CSV export columns."""
        self.store.append(record(protected_words_used=["A", "B"], replacement_done=True, app_name="Notes"))

        rows = list(csv.reader(io.StringIO(self.store.export_csv())))

        self.assertEqual(rows[0], CSV_HEADER)
        self.assertEqual(rows[1][1], "Notes")
        self.assertEqual(rows[1][7], "A;B")
        self.assertEqual(rows[1][8], "true")

    def test_export_json(self) -> None:
        """Test the JSON export."""
        self.store.append(record())
        exported = json.loads(self.store.export_json())
        self.assertEqual(exported[0]["input"], "i has")
        self.assertEqual(exported[0]["timestamp"], NOW.isoformat())

    def test_export_for_learning(self) -> None:
        """Test that only successful records are exported for learning."""
        self.store.append(record(input="good"))
        self.store.append(record(success=False, input="bad"))

        pairs = json.loads(self.store.export_for_learning())

        self.assertEqual(pairs, [{"input": "good", "correction": "I have", "explanation": "Mode: grammar"}])

    def test_statistics(self) -> None:
        """Test aggregate counts."""
        self.store.append(record(replacement_done=True, latency_ms=100))
        self.store.append(record(kind="translate", latency_ms=300))
        self.store.append(record(success=False, latency_ms=0))

        stats = self.store.statistics()

        self.assertEqual(stats.total_entries, 3)
        self.assertEqual(stats.grammar_corrections, 2)
        self.assertEqual(stats.translations, 1)
        self.assertEqual(stats.successful_operations, 2)
        self.assertEqual(stats.direct_replacements, 1)
        self.assertAlmostEqual(stats.average_latency_ms, 400 / 3)

    def test_empty_statistics(self) -> None:
        """Test statistics with no records."""
        self.assertEqual(self.store.statistics().average_latency_ms, 0.0)

    def test_corrupted_file(self) -> None:
        """Test that a corrupted file starts an empty history."""
        with open(self.history_file, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(HistoryStore(self.history_file).entries(), [])

    def test_unwritable_file_does_not_raise(self) -> None:
        """Test that save errors are logged rather than raised."""
        store = HistoryStore(os.path.join(self.temp_dir, "missing", "history.json"))
        with self.assertLogs("grammar_police.history", level="ERROR"):
            store.append(record())
        self.assertEqual(len(store.entries()), 1)


if __name__ == "__main__":
    unittest.main()
