"""Storage manager for the in-memory engine."""

from __future__ import annotations

from typed_records.table import Table


class StorageManager:
    """Manages all collection tables of one engine handle."""

    def __init__(self) -> None:
        self._tables: dict[str, Table] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def get_table(self, name: str) -> Table:
        """Get or create the table for a collection."""
        if self._closed:
            raise RuntimeError("Storage is closed")
        table = self._tables.get(name)
        if table is None:
            table = Table(name)
            self._tables[name] = table
        return table

    def find_table(self, name: str) -> Table | None:
        """Get the table for a collection without creating it."""
        if self._closed:
            raise RuntimeError("Storage is closed")
        return self._tables.get(name)

    def list_tables(self) -> list[str]:
        """List all collection names in creation order."""
        return list(self._tables)

    def close(self) -> None:
        """Close all tables."""
        for table in self._tables.values():
            table.close()
        self._tables.clear()
        self._closed = True
