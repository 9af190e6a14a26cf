"""Error taxonomy for record identity resolution."""

from __future__ import annotations


class RecordIdentityError(Exception):
    """Base class for all errors raised by typed_records."""


class MalformedIdentifier(RecordIdentityError, ValueError):
    """A canonical identifier string (or other encoding) could not be parsed."""

    def __init__(self, raw: object, reason: str) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed record id {raw!r}: {reason}")


class FieldMismatch(RecordIdentityError):
    """A stored record does not fit the declared projection."""

    def __init__(self, shape: str, field: str, message: str) -> None:
        self.shape = shape
        self.field = field
        super().__init__(message)


class MissingField(FieldMismatch):
    """A non-optional field is absent from the stored record."""

    def __init__(self, shape: str, field: str) -> None:
        super().__init__(shape, field, f"missing field `{field}` for shape '{shape}'")


class MissingIdentityField(MissingField):
    """A required identity field is absent from the retrieved record."""


class TypeMismatch(FieldMismatch, TypeError):
    """A stored value's type disagrees with the declared field type."""

    def __init__(self, shape: str, field: str, expected: str, actual: object) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            shape,
            field,
            f"invalid type for field `{field}` of shape '{shape}': "
            f"expected {expected}, got {type(actual).__name__} ({actual!r})",
        )


class EngineFailure(RecordIdentityError):
    """The storage engine rejected a call.

    The original exception is kept on ``original`` (and as ``__cause__``) so
    callers can tell an engine rejection apart from a shape problem.
    """

    def __init__(self, operation: str, original: BaseException) -> None:
        self.operation = operation
        self.original = original
        super().__init__(f"{operation} failed: {type(original).__name__}: {original}")
