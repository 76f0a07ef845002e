from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from scicalc.evaluator import format_number

LOCAL_CAPACITY = 10


@dataclass(frozen=True)
class HistoryEntry:
    calculation: str
    result: float
    timestamp: datetime
    entry_id: Optional[str] = None

    @property
    def display_value(self) -> str:
        return format_number(self.result)


def now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryLog:
    """計算履歴（新しい順）。

    capacity を指定したとき（ローカル保存）は古いものから捨てる。
    リモート保存では capacity=None とし、画面には page() の分だけ表示する。
    """

    def __init__(self, capacity: Optional[int] = LOCAL_CAPACITY):
        self.capacity = capacity
        self._entries: List[HistoryEntry] = []

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def record(self, calculation: str, result: float, timestamp: Optional[datetime] = None) -> HistoryEntry:
        entry = HistoryEntry(calculation, float(result), timestamp or now())
        self.add(entry)
        return entry

    def add(self, entry: HistoryEntry):
        self._entries.insert(0, entry)
        if self.capacity is not None:
            del self._entries[self.capacity:]

    def replace(self, entries: Iterable[HistoryEntry]):
        """保存済みの履歴（新しい順）で置き換える"""
        self._entries = list(entries)
        if self.capacity is not None:
            del self._entries[self.capacity:]

    def clear(self):
        self._entries = []

    def page(self, limit: int) -> List[HistoryEntry]:
        return self._entries[:limit]

    @staticmethod
    def recall(entry: HistoryEntry) -> str:
        return entry.display_value
