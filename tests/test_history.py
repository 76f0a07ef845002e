"""
History log tests
=================
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from scicalc.history import HistoryEntry, HistoryLog


class TestHistoryLog:

    def test_record_prepends(self):
        log = HistoryLog()
        log.record("1 + 1 = 2", 2)
        log.record("2 + 2 = 4", 4)
        assert [e.calculation for e in log] == ["2 + 2 = 4", "1 + 1 = 2"]

    def test_local_log_is_capped_at_ten(self):
        log = HistoryLog()
        for i in range(11):
            log.record(f"{i} + 0 = {i}", i)
        assert len(log) == 10
        assert log.entries[0].result == 10
        assert log.entries[-1].result == 1

    def test_remote_log_is_unbounded(self):
        log = HistoryLog(capacity=None)
        for i in range(25):
            log.record(f"{i} + 0 = {i}", i)
        assert len(log) == 25
        assert [e.result for e in log.page(3)] == [24, 23, 22]

    def test_entries_are_immutable(self):
        entry = HistoryLog().record("3 × 3 = 9", 9)
        with pytest.raises(FrozenInstanceError):
            entry.result = 10

    def test_entries_returns_a_copy(self):
        log = HistoryLog()
        log.record("1 + 1 = 2", 2)
        log.entries.clear()
        assert len(log) == 1

    def test_clear(self):
        log = HistoryLog()
        log.record("1 + 1 = 2", 2)
        log.clear()
        assert log.entries == []

    def test_replace_respects_capacity(self):
        stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
        entries = [HistoryEntry(f"{i}", i, stamp - timedelta(minutes=i)) for i in range(15)]
        log = HistoryLog()
        log.replace(entries)
        assert len(log) == 10
        assert log.entries[0].calculation == "0"

    def test_recall_formats_result(self):
        entry = HistoryLog().record("7 + 3 = 10", 10)
        assert HistoryLog.recall(entry) == "10"
        assert HistoryLog.recall(entry) == "10"

    def test_timestamp_is_utc(self):
        entry = HistoryLog().record("1 + 1 = 2", 2)
        assert entry.timestamp.tzinfo is not None
