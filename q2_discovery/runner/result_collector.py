"""Thread-safe collection of server records.

Probe completions arrive from many worker threads; the collector keeps the
latest record per endpoint.
"""

import threading
from typing import Optional

from ..models import ServerRecord


class RecordCollector:
    """Accumulates ServerRecords keyed by endpoint.

    Instances are callable, so a collector can be passed directly as the
    ``on_record`` callback of a probe batch.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: dict[str, ServerRecord] = {}

    def add(self, record: ServerRecord) -> bool:
        """Store a record, replacing any older one for the same endpoint.

        Returns:
            True if the endpoint was not present before.
        """
        with self._lock:
            is_new = record.key not in self._records
            self._records[record.key] = record
            return is_new

    __call__ = add

    def get(self, key: str) -> Optional[ServerRecord]:
        with self._lock:
            return self._records.get(key)

    def records(self, sort_by_players: bool = True) -> list[ServerRecord]:
        """Snapshot of the collected records.

        Args:
            sort_by_players: Sort by player count (descending), then
                latency. Otherwise arrival order.
        """
        with self._lock:
            records = list(self._records.values())
        if sort_by_players:
            records.sort(key=lambda r: (-r.current_players, r.latency_ms))
        return records

    def filter(self, text: str) -> list[ServerRecord]:
        """Records whose hostname, map or mod contains text."""
        return [r for r in self.records() if r.matches(text)]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
