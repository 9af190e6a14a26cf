"""Reconciliation of retrieval paths against projections.

The whole-collection fetch and the query path surface different fields for
the same stored record. The documented contract is:

=====================  =============  ============  ======================
shape identity mode    select         SELECT *      SELECT *, meta::id(id)
=====================  =============  ============  ======================
optional (``rid?``)    ``None``       ``None``      the bare key
required (``rid``)     missing field  missing field the bare key
absent                 ok             ok            ok (alias dropped)
embedded (record_id)   ok             ok            ok
=====================  =============  ============  ======================

The Reconciler runs every (path, shape) pair independently and reports
pass/fail for each against this contract or against explicit expectations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from typed_records.config import ReconcilerConfig
from typed_records.errors import EngineFailure, FieldMismatch, MissingIdentityField
from typed_records.parsing.query_lexer import escape_if_keyword
from typed_records.projection import TypedRecord
from typed_records.store import RecordStore
from typed_records.types import FieldRole, IdentityMode, Projection

logger = logging.getLogger(__name__)


class RetrievalPath(Enum):
    """The retrieval mechanisms under reconciliation."""

    WHOLE_COLLECTION = "select"
    QUERY = "query"
    QUERY_WITH_IDENTITY = "query+identity"

    @property
    def requests_identity(self) -> bool:
        """Whether the path asks the engine for the identity-derivation alias."""
        return self is RetrievalPath.QUERY_WITH_IDENTITY


@dataclass(frozen=True)
class Expectation:
    """Expected outcome of one (path, shape) retrieval.

    Attributes:
        fails_with: Error class the retrieval must raise, or None for success.
        values: Field values every retrieved record must have.
        present: Fields every retrieved record must have populated (not None).
        count: Expected number of records, or None to skip the check.
        identity_key: Field that must hold the bare key of a stored record of
            the collection, or None to skip the check.
    """

    fails_with: type[Exception] | None = None
    values: Mapping[str, Any] = field(default_factory=dict)
    present: frozenset[str] = frozenset()
    count: int | None = None
    identity_key: str | None = None

    @classmethod
    def succeeds(
        cls,
        values: Mapping[str, Any] | None = None,
        present: Iterable[str] = (),
        count: int | None = None,
        identity_key: str | None = None,
    ) -> Expectation:
        return cls(
            values=dict(values or {}),
            present=frozenset(present),
            count=count,
            identity_key=identity_key,
        )

    @classmethod
    def fails(cls, error: type[Exception]) -> Expectation:
        return cls(fails_with=error)


def expected_outcome(path: RetrievalPath, shape: Projection) -> Expectation:
    """Return the outcome the documented reconciliation rule predicts."""
    mode = shape.identity_mode
    if mode in (IdentityMode.ABSENT, IdentityMode.EMBEDDED):
        return Expectation.succeeds()

    name = shape.identity_field.name  # type: ignore[union-attr]
    if path.requests_identity:
        return Expectation.succeeds(present=[name], identity_key=name)
    if mode is IdentityMode.OPTIONAL:
        return Expectation.succeeds(values={name: None})
    return Expectation.fails(MissingIdentityField)


@dataclass(frozen=True)
class ReconciliationEntry:
    """Outcome of one (path, shape) pair."""

    path: RetrievalPath
    shape: str
    passed: bool
    records: tuple[TypedRecord, ...] = ()
    error: str | None = None
    field: str | None = None
    reason: str = ""

    def describe(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        line = f"[{status}] {self.path.value:<15} {self.shape}"
        if self.error is not None:
            line += f"  {self.error}"
        if self.field is not None:
            line += f" (field `{self.field}`)"
        if self.reason:
            line += f": {self.reason}"
        for record in self.records:
            rendered = ", ".join(f"{k}={v!s}" if k == "id" else f"{k}={v!r}" for k, v in record.values.items())
            line += f"\n       {{{rendered}}}"
        return line


@dataclass(frozen=True)
class ReconciliationReport:
    """All entries of one verification run, in evaluation order."""

    collection: str
    entries: tuple[ReconciliationEntry, ...] = ()

    @property
    def passed(self) -> bool:
        return all(e.passed for e in self.entries)

    def failures(self) -> list[ReconciliationEntry]:
        return [e for e in self.entries if not e.passed]

    def entry(self, path: RetrievalPath, shape: str) -> ReconciliationEntry:
        for e in self.entries:
            if e.path is path and e.shape == shape:
                return e
        raise KeyError(f"No entry for ({path.value}, {shape})")

    def format(self) -> str:
        header = f"Reconciliation of '{self.collection}': " + (
            "all passed" if self.passed else f"{len(self.failures())} of {len(self.entries)} failed"
        )
        return "\n".join([header] + [e.describe() for e in self.entries])


def _judge_error(
    path: RetrievalPath, shape: Projection, expectation: Expectation, exc: Exception
) -> ReconciliationEntry:
    field_name = getattr(exc, "field", None)
    if expectation.fails_with is not None and isinstance(exc, expectation.fails_with):
        return ReconciliationEntry(
            path, shape.name, True, error=type(exc).__name__, field=field_name, reason=str(exc)
        )
    return ReconciliationEntry(
        path,
        shape.name,
        False,
        error=type(exc).__name__,
        field=field_name,
        reason=f"unexpected failure: {exc}",
    )


def _judge_records(
    path: RetrievalPath,
    shape: Projection,
    expectation: Expectation,
    records: list[TypedRecord],
    stored_keys: frozenset[str] = frozenset(),
) -> ReconciliationEntry:
    found = tuple(records)

    def fail(reason: str, field_name: str | None = None) -> ReconciliationEntry:
        return ReconciliationEntry(path, shape.name, False, found, field=field_name, reason=reason)

    if expectation.fails_with is not None:
        return fail(
            f"expected {expectation.fails_with.__name__}, "
            f"but retrieval succeeded with {len(found)} record(s)"
        )
    if expectation.count is not None and len(found) != expectation.count:
        return fail(f"expected {expectation.count} record(s), got {len(found)}")

    for record in found:
        for name, expected in expectation.values.items():
            if name not in record.values:
                return fail(f"shape '{shape.name}' has no field `{name}`", name)
            if record.values[name] != expected:
                return fail(f"expected {expected!r}, got {record.values[name]!r}", name)
        for name in sorted(expectation.present):
            if record.values.get(name) is None:
                return fail(f"expected `{name}` to be populated", name)
        key_field = expectation.identity_key
        if key_field is not None and record.values.get(key_field) not in stored_keys:
            return fail(
                f"`{key_field}` is {record.values.get(key_field)!r}, not the bare key of a stored record",
                key_field,
            )

    return ReconciliationEntry(path, shape.name, True, found)


class Reconciler:
    """Drives every retrieval path for a set of projections."""

    def __init__(self, store: RecordStore, config: ReconcilerConfig | None = None) -> None:
        self.store = store
        self.config = config if config is not None else ReconcilerConfig()

    def identity_alias(self, shape: Projection) -> str:
        """Field name the identity derivation is aliased to for a shape."""
        identity = shape.identity_field
        if identity is not None and identity.role in (
            FieldRole.IDENTITY_REQUIRED,
            FieldRole.IDENTITY_OPTIONAL,
        ):
            return identity.name
        return self.config.identity_alias

    def query_text(self, path: RetrievalPath, collection: str, shape: Projection) -> str | None:
        """Return the query a path issues, or None for the whole-collection fetch.

        Names that clash with statement keywords are backtick-quoted.
        """
        table = escape_if_keyword(collection)
        if path is RetrievalPath.QUERY:
            return f"SELECT * FROM {table}"
        if path is RetrievalPath.QUERY_WITH_IDENTITY:
            alias = escape_if_keyword(self.identity_alias(shape))
            return f"SELECT *, {self.config.identity_function}(id) AS {alias} FROM {table}"
        return None

    async def retrieve(self, path: RetrievalPath, collection: str, shape: Projection) -> list[TypedRecord]:
        """Retrieve a collection into a shape through one path."""
        text = self.query_text(path, collection, shape)
        if text is None:
            return await self.store.select(collection, shape)
        return await self.store.execute_query(text, shape)

    async def verify(
        self,
        collection: str,
        shapes: Iterable[Projection],
        expectations: Mapping[tuple[RetrievalPath, str], Expectation] | None = None,
    ) -> ReconciliationReport:
        """Evaluate every (path, shape) pair against its expectation.

        Args:
            collection: Collection to retrieve.
            shapes: Projections to retrieve into.
            expectations: Overrides keyed by (path, shape name). Pairs without
                an override are judged by ``expected_outcome``.

        Returns:
            A ReconciliationReport with one entry per pair, shapes in the
            order given and paths in RetrievalPath order.
        """
        expectations = expectations or {}
        unique: dict[str, Projection] = {}
        for shape in shapes:
            unique.setdefault(shape.name, shape)

        logger.info("Verifying %d shape(s) against '%s'", len(unique), collection)

        entries = []
        for shape in unique.values():
            for path in RetrievalPath:
                expectation = expectations.get((path, shape.name)) or expected_outcome(path, shape)
                entry = await self._evaluate(path, collection, shape, expectation)
                if entry.passed:
                    logger.debug("%s/%s passed", path.value, shape.name)
                else:
                    logger.warning("%s/%s failed: %s", path.value, shape.name, entry.reason)
                entries.append(entry)

        return ReconciliationReport(collection, tuple(entries))

    async def _evaluate(
        self, path: RetrievalPath, collection: str, shape: Projection, expectation: Expectation
    ) -> ReconciliationEntry:
        stored_keys: frozenset[str] = frozenset()
        try:
            records = await self.retrieve(path, collection, shape)
            if expectation.identity_key is not None:
                stored_keys = frozenset(await self.store.record_keys(collection))
        except (FieldMismatch, EngineFailure) as exc:
            return _judge_error(path, shape, expectation, exc)
        return _judge_records(path, shape, expectation, records, stored_keys)
