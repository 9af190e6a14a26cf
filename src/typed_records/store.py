"""Typed retrieval on top of a storage engine.

RecordStore is the seam between the engine and caller-defined projections.
It drives the two retrieval paths and binds their rows into TypedRecords:

* ``select``: whole-collection fetch.
* ``execute_query`` / ``query(...).take``: the query path.

Anything the engine raises is re-tagged as EngineFailure. Shape problems
(FieldMismatch) come from deserialization and propagate as they are.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Protocol, TypeVar

from typed_records.errors import EngineFailure, MalformedIdentifier
from typed_records.projection import TypedRecord, deserialize_all
from typed_records.record_id import RecordId
from typed_records.types import Projection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResultSets(Protocol):
    """What an engine returns from ``query``."""

    def __len__(self) -> int: ...

    def take(self, index: int) -> list[dict[str, Any]]: ...


class StorageEngine(Protocol):
    """Contract the core consumes from a storage engine."""

    async def select(self, collection: str) -> list[dict[str, Any]]: ...

    async def query(self, text: str, bindings: dict[str, Any] | None = None) -> ResultSets: ...

    async def create(self, collection: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def close(self) -> None: ...


class QueryResult:
    """Result sets of a query, read back into projections."""

    def __init__(self, text: str, response: ResultSets) -> None:
        self.text = text
        self._response = response

    def __len__(self) -> int:
        return len(self._response)

    def rows(self, index: int = 0) -> list[dict[str, Any]]:
        """Return the raw rows of one result set."""
        try:
            return self._response.take(index)
        except Exception as exc:
            raise EngineFailure(f"take({index}) of {self.text!r}", exc) from exc

    def take(self, index: int, shape: Projection) -> list[TypedRecord]:
        """Deserialize one result set into a projection."""
        return deserialize_all(self.rows(index), shape)


class RecordStore:
    """Typed access to a storage engine handle.

    The engine is passed in explicitly; RecordStore never creates one.
    """

    def __init__(self, engine: StorageEngine) -> None:
        self.engine = engine

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except Exception as exc:
            logger.debug("engine rejected %s: %s", operation, exc)
            raise EngineFailure(operation, exc) from exc

    async def select(self, collection: str, shape: Projection) -> list[TypedRecord]:
        """Fetch a whole collection into a projection.

        This path never surfaces identity aliases: an identity-optional field
        is always None, an identity-required field always fails.
        """
        rows = await self._call(f"select({collection!r})", self.engine.select(collection))
        logger.debug("select %s into %s: %d row(s)", collection, shape.name, len(rows))
        return deserialize_all(rows, shape)

    async def record_keys(self, collection: str) -> list[str]:
        """Return the bare key of every stored record, in storage order."""
        rows = await self._call(f"select({collection!r})", self.engine.select(collection))
        try:
            return [RecordId.coerce(row["id"]).get_id() for row in rows]
        except (KeyError, MalformedIdentifier) as exc:
            raise EngineFailure(f"select({collection!r})", exc) from exc

    async def query(self, text: str, bindings: dict[str, Any] | None = None) -> QueryResult:
        """Execute a query and return its result sets."""
        response = await self._call(f"query({text!r})", self.engine.query(text, bindings or {}))
        return QueryResult(text, response)

    async def execute_query(
        self,
        text: str,
        shape: Projection,
        bindings: dict[str, Any] | None = None,
        index: int = 0,
    ) -> list[TypedRecord]:
        """Execute a query and deserialize result set ``index`` into a projection."""
        result = await self.query(text, bindings)
        records = result.take(index, shape)
        logger.debug("query %r into %s: %d row(s)", text, shape.name, len(records))
        return records

    async def create(self, collection: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a record through the engine's own write operation."""
        return await self._call(f"create({collection!r})", self.engine.create(collection, fields))

    async def close(self) -> None:
        await self._call("close()", self.engine.close())
