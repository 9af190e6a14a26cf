"""Deserialization of stored records into declared projections.

Retrieval paths differ in which fields they surface. The whole-collection
path returns the stored fields only. The query path adds whatever the query
text asked for, e.g. ``meta::id(id) AS rid``. Deserialization never derives
an identity alias itself: it binds what the retrieval produced, so a missing
alias shows up as ``None`` (optional) or ``MissingIdentityField`` (required).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from typed_records.errors import (
    MalformedIdentifier,
    MissingField,
    MissingIdentityField,
    TypeMismatch,
)
from typed_records.identity import EmbeddedIdentity
from typed_records.record_id import RecordId
from typed_records.types import FieldRole, FieldType, Projection, ProjectionField


@dataclass
class TypedRecord(EmbeddedIdentity):
    """A stored record bound to a projection."""

    shape: str
    values: dict[str, Any] = field(default_factory=dict)

    def identity_value(self) -> RecordId:
        for value in self.values.values():
            if isinstance(value, RecordId):
                return value
        raise MissingIdentityField(self.shape, "id")

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__.get("values", {})
        if name in values:
            return values[name]
        raise AttributeError(f"Record of shape '{self.__dict__.get('shape')}' has no field '{name}'")

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)


def _bind_field(shape: Projection, f: ProjectionField, record_fields: Mapping[str, Any]) -> Any:
    if f.name not in record_fields:
        if f.optional:
            return None
        if f.role is FieldRole.IDENTITY_REQUIRED:
            raise MissingIdentityField(shape.name, f.name)
        raise MissingField(shape.name, f.name)

    value = record_fields[f.name]
    if value is None:
        if f.optional:
            return None
        # A stored NULL is present, just not of the declared type
        raise TypeMismatch(shape.name, f.name, f.field_type.value, value)

    if f.field_type is FieldType.RECORD_ID:
        try:
            return RecordId.coerce(value)
        except MalformedIdentifier as exc:
            raise TypeMismatch(shape.name, f.name, "record_id", value) from exc

    if not f.field_type.accepts(value):
        raise TypeMismatch(shape.name, f.name, f.field_type.value, value)
    if f.field_type is FieldType.FLOAT:
        return float(value)
    return value


def deserialize(record_fields: Mapping[str, Any], shape: Projection) -> TypedRecord:
    """Bind a stored record's fields to a projection.

    Args:
        record_fields: Field mapping as produced by a retrieval path.
        shape: The projection to bind into.

    Returns:
        A TypedRecord with exactly the projection's fields.

    Raises:
        MissingIdentityField: A required identity field is absent.
        MissingField: A required plain field is absent.
        TypeMismatch: A stored value, or a stored NULL in a non-optional
            field, disagrees with the declared type.
    """
    values = {f.name: _bind_field(shape, f, record_fields) for f in shape.fields}
    return TypedRecord(shape=shape.name, values=values)


def deserialize_all(rows: Iterable[Mapping[str, Any]], shape: Projection) -> list[TypedRecord]:
    """Deserialize a result set, preserving order."""
    return [deserialize(row, shape) for row in rows]
