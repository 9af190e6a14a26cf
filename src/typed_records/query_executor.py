"""Statement executor for the in-memory engine."""

from __future__ import annotations

import operator
import uuid as uuid_module
from dataclasses import dataclass, field
from typing import Any, Callable

from typed_records.identity import IdentityTraits
from typed_records.parsing.query_parser import (
    AllFields,
    BoolOp,
    Comparison,
    CreateQuery,
    FieldRef,
    FunctionCall,
    Literal,
    Not,
    Query,
    SelectQuery,
    VariableReference,
)
from typed_records.record_id import RecordId, TextualKey
from typed_records.storage import StorageManager

# Length of generated textual keys for records created without an id
GENERATED_KEY_LENGTH = 20

_COMPARISONS: dict[str, Callable[[Any, Any], Any]] = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _expect_identity(name: str, value: Any) -> IdentityTraits:
    if not isinstance(value, IdentityTraits):
        raise RuntimeError(f"{name}() expects a record id, got {type(value).__name__}")
    return value


def _meta_id(value: Any) -> str:
    """Identity-derivation: the bare key of a record id."""
    return _expect_identity("meta::id", value).get_id()


def _meta_tb(value: Any) -> str:
    return _expect_identity("meta::tb", value).get_tbl()


def _type_thing(collection: Any, key: Any) -> RecordId:
    if not isinstance(collection, str):
        raise RuntimeError(f"type::thing() expects a collection name, got {type(collection).__name__}")
    return RecordId.from_parts(collection, key)


# name -> (arity, implementation)
FUNCTIONS: dict[str, tuple[int, Callable[..., Any]]] = {
    "meta::id": (1, _meta_id),
    "meta::tb": (1, _meta_tb),
    "type::thing": (2, _type_thing),
}


def _sort_key(value: Any) -> tuple[bool, Any]:
    if isinstance(value, RecordId):
        value = value.canonical_string()
    # None sorts first
    return (value is not None, value)


@dataclass
class StatementResult:
    """Outcome of one statement: its rows, or the error it raised."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class QueryExecutor:
    """Executes parsed statements against a StorageManager."""

    def __init__(self, storage: StorageManager) -> None:
        self.storage = storage

    def execute(self, statements: list[Query], bindings: dict[str, Any]) -> list[StatementResult]:
        """Execute statements in order.

        Each statement succeeds or fails on its own; a failure is recorded in
        its StatementResult and does not stop later statements.
        """
        results = []
        for statement in statements:
            try:
                results.append(StatementResult(rows=self.execute_statement(statement, bindings)))
            except (RuntimeError, ValueError, TypeError, KeyError) as exc:
                results.append(StatementResult(error=exc))
        return results

    def execute_statement(self, statement: Query, bindings: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute a single statement and return its result rows."""
        if isinstance(statement, SelectQuery):
            return self._execute_select(statement, bindings)
        if isinstance(statement, CreateQuery):
            return self._execute_create(statement, bindings)
        raise RuntimeError(f"Unsupported statement: {type(statement).__name__}")

    def _execute_select(self, query: SelectQuery, bindings: dict[str, Any]) -> list[dict[str, Any]]:
        if query.limit is not None and query.limit < 0:
            raise RuntimeError(f"LIMIT must be non-negative, got {query.limit}")

        table = self.storage.find_table(query.table)
        if table is None:
            return []

        rows = []
        for record in table.scan():
            if query.where is not None and not self._evaluate(query.where, record, bindings):
                continue
            rows.append(self._project(query, record, bindings))

        for key in reversed(query.order_by):
            rows.sort(key=lambda row: _sort_key(row.get(key.field)), reverse=key.descending)

        if query.limit is not None:
            rows = rows[: query.limit]
        return rows

    def _project(self, query: SelectQuery, record: dict[str, Any], bindings: dict[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for item in query.items:
            if isinstance(item, AllFields):
                out.update(record)
            else:
                out[item.output_name] = self._evaluate(item.expr, record, bindings)
        return out

    def _execute_create(self, query: CreateQuery, bindings: dict[str, Any]) -> list[dict[str, Any]]:
        values = {a.name: self._evaluate(a.value, {}, bindings) for a in query.assignments}
        return [self.create_record(query.table, values)]

    def create_record(self, collection: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Store a new record and return it.

        The ``id`` field, when given, may be a RecordId of the same collection
        or a raw key; otherwise a textual key is generated.
        """
        values = dict(fields)
        key = values.pop("id", None)
        if key is None:
            record_id = RecordId(collection, TextualKey(uuid_module.uuid4().hex[:GENERATED_KEY_LENGTH]))
        elif isinstance(key, RecordId):
            if key.collection != collection:
                raise RuntimeError(f"Record id {key} does not belong to collection '{collection}'")
            record_id = key
        else:
            record_id = RecordId.from_parts(collection, key)
        return self.storage.get_table(collection).insert(record_id, values)

    def _evaluate(self, expr: Any, record: dict[str, Any], bindings: dict[str, Any]) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, FieldRef):
            return record.get(expr.name)
        if isinstance(expr, VariableReference):
            if expr.var_name not in bindings:
                raise RuntimeError(f"Unbound parameter ${expr.var_name}")
            return bindings[expr.var_name]
        if isinstance(expr, FunctionCall):
            return self._call(expr, record, bindings)
        if isinstance(expr, Comparison):
            left = self._evaluate(expr.left, record, bindings)
            right = self._evaluate(expr.right, record, bindings)
            return _COMPARISONS[expr.operator](left, right)
        if isinstance(expr, BoolOp):
            left = bool(self._evaluate(expr.left, record, bindings))
            if expr.operator == "and":
                return left and bool(self._evaluate(expr.right, record, bindings))
            return left or bool(self._evaluate(expr.right, record, bindings))
        if isinstance(expr, Not):
            return not self._evaluate(expr.operand, record, bindings)
        raise RuntimeError(f"Unsupported expression: {type(expr).__name__}")

    def _call(self, call: FunctionCall, record: dict[str, Any], bindings: dict[str, Any]) -> Any:
        entry = FUNCTIONS.get(call.name)
        if entry is None:
            raise RuntimeError(f"Unknown function '{call.name}()'")
        arity, func = entry
        if len(call.args) != arity:
            raise RuntimeError(f"{call.name}() requires exactly {arity} argument(s), got {len(call.args)}")
        args = [self._evaluate(arg, record, bindings) for arg in call.args]
        return func(*args)
