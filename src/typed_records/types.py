"""Projection definitions: the typed record shapes callers retrieve into."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class FieldType(Enum):
    """Value types a projection field can declare."""

    STRING = "string"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"
    RECORD_ID = "record_id"

    def accepts(self, value: Any) -> bool:
        """Return whether a stored value has this type.

        Record ids are coerced rather than checked, see ``projection``.
        """
        if self is FieldType.STRING:
            return isinstance(value, str)
        if self is FieldType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldType.FLOAT:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is FieldType.BOOLEAN:
            return isinstance(value, bool)
        return False


# Mapping from DSL type names to FieldType values
FIELD_TYPE_NAMES: dict[str, FieldType] = {ft.value: ft for ft in FieldType}


class FieldRole(Enum):
    """How a projection field relates to the record identifier."""

    PLAIN = "plain"
    IDENTITY_REQUIRED = "identity-required"
    IDENTITY_OPTIONAL = "identity-optional"
    RECORD_ID = "record-id"


class IdentityMode(Enum):
    """Shape-level summary of the identity-bearing field, if any."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    EMBEDDED = "embedded"
    ABSENT = "absent"


@dataclass(frozen=True)
class ProjectionField:
    """Definition of a field within a projection.

    An ``identity`` field is bound from the identity-derivation alias of a
    query (``meta::id(id) AS rid``). A field typed ``record_id`` is bound from
    the stored identifier itself.
    """

    name: str
    field_type: FieldType
    optional: bool = False
    identity: bool = False

    @property
    def role(self) -> FieldRole:
        if self.identity:
            return FieldRole.IDENTITY_OPTIONAL if self.optional else FieldRole.IDENTITY_REQUIRED
        if self.field_type is FieldType.RECORD_ID:
            return FieldRole.RECORD_ID
        return FieldRole.PLAIN

    @property
    def is_identity_bearing(self) -> bool:
        return self.role is not FieldRole.PLAIN


@dataclass(frozen=True)
class Projection:
    """A declared record shape with a fixed set of named, typed fields."""

    name: str
    fields: tuple[ProjectionField, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))

        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise ValueError(f"Field '{f.name}' is declared twice in projection '{self.name}'")
            seen.add(f.name)
            if f.identity and f.field_type is FieldType.RECORD_ID:
                raise ValueError(
                    f"Identity field '{f.name}' in projection '{self.name}' cannot be typed record_id"
                )

        bearing = [f.name for f in self.fields if f.is_identity_bearing]
        if len(bearing) > 1:
            raise ValueError(
                f"Projection '{self.name}' declares more than one identity-bearing field: "
                + ", ".join(bearing)
            )

    def get_field(self, name: str) -> ProjectionField | None:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def identity_field(self) -> ProjectionField | None:
        """Return the identity-bearing field, if the shape declares one."""
        for f in self.fields:
            if f.is_identity_bearing:
                return f
        return None

    @property
    def identity_mode(self) -> IdentityMode:
        identity = self.identity_field
        if identity is None:
            return IdentityMode.ABSENT
        if identity.role is FieldRole.RECORD_ID:
            return IdentityMode.EMBEDDED
        if identity.role is FieldRole.IDENTITY_OPTIONAL:
            return IdentityMode.OPTIONAL
        return IdentityMode.REQUIRED


class ProjectionRegistry:
    """Registry of all defined projections."""

    def __init__(self) -> None:
        self._projections: dict[str, Projection] = {}

    def register(self, projection: Projection) -> None:
        """Register a projection."""
        if projection.name in self._projections:
            raise ValueError(f"Projection '{projection.name}' is already defined")
        self._projections[projection.name] = projection

    def get(self, name: str) -> Projection | None:
        """Get a projection by name."""
        return self._projections.get(name)

    def get_or_raise(self, name: str) -> Projection:
        """Get a projection by name, raising if not found."""
        projection = self._projections.get(name)
        if projection is None:
            raise KeyError(f"Projection '{name}' not found")
        return projection

    def list_projections(self) -> list[str]:
        """List all registered projection names in definition order."""
        return list(self._projections)

    def __iter__(self) -> Iterator[Projection]:
        return iter(self._projections.values())

    def __len__(self) -> int:
        return len(self._projections)

    def __contains__(self, name: object) -> bool:
        return name in self._projections
