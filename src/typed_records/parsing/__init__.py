"""Parsing module for the projection DSL and the engine statement language."""

from typed_records.parsing.projection_parser import ProjectionParser, parse_projections
from typed_records.parsing.query_parser import (
    CreateQuery,
    FunctionCall,
    QueryParser,
    SelectItem,
    SelectQuery,
)

__all__ = [
    "CreateQuery",
    "FunctionCall",
    "ProjectionParser",
    "QueryParser",
    "SelectItem",
    "SelectQuery",
    "parse_projections",
]
