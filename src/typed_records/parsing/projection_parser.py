"""Parser for the projection definition DSL.

Example::

    Building { address: string }
    BuildingWithRidOption { rid: string? identity, address: string }
    BuildingWithThing { id: record_id, address: string }
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import ply.yacc as yacc

from typed_records.parsing.projection_lexer import ProjectionLexer
from typed_records.types import (
    FIELD_TYPE_NAMES,
    Projection,
    ProjectionField,
    ProjectionRegistry,
)


@dataclass
class TypeRef:
    """Reference to a field type, possibly optional."""

    name: str
    optional: bool = False


@dataclass
class FieldSpec:
    """Specification for a field before resolution."""

    name: str
    type_ref: TypeRef
    identity: bool = False
    lineno: int = 0


@dataclass
class ProjectionSpec:
    """Specification for a projection before resolution."""

    name: str
    fields: list[FieldSpec]


class ProjectionParser:
    """Parser for the projection definition DSL."""

    tokens = ProjectionLexer.tokens

    def __init__(self) -> None:
        self.lexer = ProjectionLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : projection_list"""
        p[0] = p[1]

    def p_projection_list_single(self, p: yacc.YaccProduction) -> None:
        """projection_list : projection"""
        p[0] = [p[1]]

    def p_projection_list_multiple(self, p: yacc.YaccProduction) -> None:
        """projection_list : projection_list projection"""
        p[0] = p[1] + [p[2]]

    def p_projection(self, p: yacc.YaccProduction) -> None:
        """projection : IDENTIFIER LBRACE field_list RBRACE
                      | IDENTIFIER LBRACE field_list COMMA RBRACE"""
        p[0] = ProjectionSpec(name=p[1], fields=p[3])

    def p_projection_empty(self, p: yacc.YaccProduction) -> None:
        """projection : IDENTIFIER LBRACE RBRACE"""
        p[0] = ProjectionSpec(name=p[1], fields=[])

    def p_field_list_single(self, p: yacc.YaccProduction) -> None:
        """field_list : field"""
        p[0] = [p[1]]

    def p_field_list_multiple(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list COMMA field"""
        p[0] = p[1] + [p[3]]

    def p_field(self, p: yacc.YaccProduction) -> None:
        """field : IDENTIFIER COLON type_ref"""
        p[0] = FieldSpec(name=p[1], type_ref=p[3], lineno=p.lineno(1))

    def p_field_identity(self, p: yacc.YaccProduction) -> None:
        """field : IDENTIFIER COLON type_ref IDENTITY"""
        p[0] = FieldSpec(name=p[1], type_ref=p[3], identity=True, lineno=p.lineno(1))

    def p_type_ref_simple(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        p[0] = TypeRef(name=p[1])

    def p_type_ref_optional(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER QUESTION"""
        p[0] = TypeRef(name=p[1], optional=True)

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="schema", **kwargs)

    def parse(self, data: str) -> ProjectionRegistry:
        """Parse projection definitions and return a populated registry."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        registry = ProjectionRegistry()
        if not data.strip():
            return registry

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer)

        for spec in specs or []:
            registry.register(self._resolve(spec))
        return registry

    def parse_one(self, data: str) -> Projection:
        """Parse a single projection definition."""
        registry = self.parse(data)
        names = registry.list_projections()
        if len(names) != 1:
            raise ValueError(f"Expected exactly one projection, found {len(names)}")
        return registry.get_or_raise(names[0])

    def _resolve(self, spec: ProjectionSpec) -> Projection:
        fields = []
        for field_spec in spec.fields:
            field_type = FIELD_TYPE_NAMES.get(field_spec.type_ref.name)
            if field_type is None:
                raise ValueError(
                    f"Unknown type '{field_spec.type_ref.name}' for field "
                    f"'{field_spec.name}' in projection '{spec.name}' (line {field_spec.lineno})"
                )
            fields.append(
                ProjectionField(
                    name=field_spec.name,
                    field_type=field_type,
                    optional=field_spec.type_ref.optional,
                    identity=field_spec.identity,
                )
            )
        return Projection(name=spec.name, fields=tuple(fields))


def parse_projections(data: str) -> ProjectionRegistry:
    """Parse projection definitions with a fresh parser."""
    return ProjectionParser().parse(data)
