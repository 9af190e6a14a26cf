"""In-memory record storage for a single collection."""

from __future__ import annotations

import copy
from typing import Any, Iterator

from typed_records.record_id import RecordId


class Table:
    """Holds the records of one collection in insertion order.

    Records are stored as field mappings whose ``id`` field is the record's
    RecordId. Everything handed out is a deep copy, so callers never hold
    references into engine-owned state.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._records: dict[RecordId, dict[str, Any]] = {}
        self._closed = False

    @property
    def count(self) -> int:
        """Return the number of records in the table."""
        return len(self._records)

    def insert(self, record_id: RecordId, fields: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return a copy of what was stored.

        Raises:
            ValueError: If a record with the same id already exists.
        """
        if self._closed:
            raise RuntimeError(f"Table '{self.name}' is closed")
        if record_id.collection != self.name:
            raise ValueError(f"Record id {record_id} does not belong to table '{self.name}'")
        if record_id in self._records:
            raise ValueError(f"Database record `{record_id}` already exists")

        stored = {"id": record_id}
        stored.update({k: copy.deepcopy(v) for k, v in fields.items() if k != "id"})
        self._records[record_id] = stored
        return copy.deepcopy(stored)

    def get(self, record_id: RecordId) -> dict[str, Any] | None:
        """Return a copy of a record, or None if it does not exist."""
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def scan(self) -> Iterator[dict[str, Any]]:
        """Yield copies of all records in insertion order."""
        for record in list(self._records.values()):
            yield copy.deepcopy(record)

    def close(self) -> None:
        """Release all records."""
        self._records.clear()
        self._closed = True

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records
