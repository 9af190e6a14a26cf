"""Typed Records - typed record-identity resolution for document stores."""

from typed_records.config import ReconcilerConfig
from typed_records.engine import MemoryEngine, QueryResponse
from typed_records.errors import (
    EngineFailure,
    FieldMismatch,
    MalformedIdentifier,
    MissingField,
    MissingIdentityField,
    RecordIdentityError,
    TypeMismatch,
)
from typed_records.identity import EmbeddedIdentity, IdentityTraits
from typed_records.parsing import ProjectionParser, parse_projections
from typed_records.projection import TypedRecord, deserialize, deserialize_all
from typed_records.reconcile import (
    Expectation,
    Reconciler,
    ReconciliationEntry,
    ReconciliationReport,
    RetrievalPath,
    expected_outcome,
)
from typed_records.record_id import (
    ID_CLOSE,
    ID_OPEN,
    KeyValue,
    NumericKey,
    RecordId,
    StructuredKey,
    TextualKey,
)
from typed_records.store import QueryResult, RecordStore, StorageEngine
from typed_records.types import (
    FieldRole,
    FieldType,
    IdentityMode,
    Projection,
    ProjectionField,
    ProjectionRegistry,
)

__all__ = [
    # Identifiers
    "RecordId",
    "KeyValue",
    "TextualKey",
    "NumericKey",
    "StructuredKey",
    "ID_OPEN",
    "ID_CLOSE",
    "IdentityTraits",
    "EmbeddedIdentity",
    # Projections
    "Projection",
    "ProjectionField",
    "ProjectionRegistry",
    "ProjectionParser",
    "FieldType",
    "FieldRole",
    "IdentityMode",
    "TypedRecord",
    "deserialize",
    "deserialize_all",
    "parse_projections",
    # Retrieval
    "StorageEngine",
    "RecordStore",
    "QueryResult",
    "MemoryEngine",
    "QueryResponse",
    # Reconciliation
    "Reconciler",
    "ReconcilerConfig",
    "Expectation",
    "RetrievalPath",
    "ReconciliationEntry",
    "ReconciliationReport",
    "expected_outcome",
    # Errors
    "RecordIdentityError",
    "MalformedIdentifier",
    "FieldMismatch",
    "MissingField",
    "MissingIdentityField",
    "TypeMismatch",
    "EngineFailure",
]

__version__ = "0.1.0"
