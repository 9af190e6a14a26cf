"""In-memory storage engine used as the retrieval backend in tests and demos.

It implements the two retrieval contracts the core consumes:

* ``select(collection)``: structural fetch of every stored record. No
  expression is evaluated, so computed aliases never appear.
* ``query(text, bindings)``: full statement evaluation, one result set per
  statement, read back with ``QueryResponse.take(index)``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from typed_records.parsing.query_parser import QueryParser
from typed_records.query_executor import QueryExecutor, StatementResult
from typed_records.storage import StorageManager

logger = logging.getLogger(__name__)


class QueryResponse:
    """Ordered result sets of a multi-statement query."""

    def __init__(self, results: list[StatementResult]) -> None:
        self._results = results

    def __len__(self) -> int:
        return len(self._results)

    def take(self, index: int) -> list[dict[str, Any]]:
        """Return the rows of one result set.

        Raises:
            IndexError: If there is no statement at ``index``.
            Exception: Whatever error that statement failed with.
        """
        if not 0 <= index < len(self._results):
            raise IndexError(f"No result set at index {index} (query has {len(self._results)})")
        result = self._results[index]
        if result.error is not None:
            raise result.error
        return [dict(row) for row in result.rows]

    def errors(self) -> dict[int, Exception]:
        """Return the errors of all failed statements, keyed by index."""
        return {i: r.error for i, r in enumerate(self._results) if r.error is not None}

    def check(self) -> QueryResponse:
        """Raise the first statement error, if any."""
        for result in self._results:
            if result.error is not None:
                raise result.error
        return self


class MemoryEngine:
    """A scoped, in-memory engine handle.

    Use it as an async context manager so it is released on exit::

        async with MemoryEngine() as engine:
            await engine.query("CREATE building_tbl SET address = $addr", {"addr": "1 Elm"})
    """

    def __init__(self) -> None:
        self.storage = StorageManager()
        self._parser = QueryParser()
        self._executor = QueryExecutor(self.storage)

    @property
    def closed(self) -> bool:
        return self.storage.closed

    def _ensure_open(self) -> None:
        if self.storage.closed:
            raise RuntimeError("Engine is closed")

    async def select(self, collection: str) -> list[dict[str, Any]]:
        """Fetch all records of a collection in insertion order."""
        await asyncio.sleep(0)
        self._ensure_open()
        table = self.storage.find_table(collection)
        rows = list(table.scan()) if table is not None else []
        logger.debug("select %s -> %d row(s)", collection, len(rows))
        return rows

    async def query(self, text: str, bindings: dict[str, Any] | None = None) -> QueryResponse:
        """Parse and execute statements.

        Raises:
            SyntaxError: If the text does not parse. Runtime errors are
                reported per statement through ``QueryResponse.take``.
        """
        await asyncio.sleep(0)
        self._ensure_open()
        statements = self._parser.parse(text)
        results = self._executor.execute(statements, dict(bindings or {}))
        logger.debug(
            "query %r -> %d result set(s), %d error(s)",
            text,
            len(results),
            sum(1 for r in results if not r.ok),
        )
        return QueryResponse(results)

    async def create(self, collection: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Store a new record and return it."""
        await asyncio.sleep(0)
        self._ensure_open()
        record = self._executor.create_record(collection, fields)
        logger.debug("create %s", record["id"])
        return record

    async def close(self) -> None:
        """Release all stored data. The handle is unusable afterwards."""
        if not self.storage.closed:
            self.storage.close()
            logger.debug("engine closed")

    async def __aenter__(self) -> MemoryEngine:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
