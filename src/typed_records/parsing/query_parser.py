"""Parser for the fixture engine's statement language."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import ply.yacc as yacc

from typed_records.parsing.query_lexer import QueryLexer


@dataclass
class FieldRef:
    """A reference to a stored field."""

    name: str


@dataclass
class Literal:
    """A literal value (string, number, boolean or null)."""

    value: Any


@dataclass
class VariableReference:
    """A reference to a bound parameter: $name."""

    var_name: str


@dataclass
class FunctionCall:
    """A namespaced function call like meta::id(id)."""

    name: str
    args: list[Any] = field(default_factory=list)


@dataclass
class Comparison:
    """A binary comparison."""

    operator: str  # =, !=, <, <=, >, >=
    left: Any
    right: Any


@dataclass
class BoolOp:
    """A compound condition (AND/OR)."""

    operator: str  # and, or
    left: Any
    right: Any


@dataclass
class Not:
    """A negated condition."""

    operand: Any


Expression = Union[FieldRef, Literal, VariableReference, FunctionCall, Comparison, BoolOp, Not]


@dataclass
class AllFields:
    """The * projection."""

    pass


@dataclass
class SelectItem:
    """An expression in a SELECT list, optionally aliased."""

    expr: Expression
    alias: str | None = None

    @property
    def output_name(self) -> str:
        """Name of the output field when no alias is given."""
        if self.alias is not None:
            return self.alias
        if isinstance(self.expr, FieldRef):
            return self.expr.name
        if isinstance(self.expr, FunctionCall):
            return self.expr.name
        if isinstance(self.expr, Literal):
            return str(self.expr.value)
        return "expr"


@dataclass
class OrderKey:
    """A sort key in an ORDER BY clause."""

    field: str
    descending: bool = False


@dataclass
class SelectQuery:
    """A SELECT statement."""

    table: str
    items: list[AllFields | SelectItem] = field(default_factory=list)
    where: Expression | None = None
    order_by: list[OrderKey] = field(default_factory=list)
    limit: int | None = None


@dataclass
class Assignment:
    """A field assignment in a CREATE statement."""

    name: str
    value: Expression


@dataclass
class CreateQuery:
    """A CREATE statement."""

    table: str
    assignments: list[Assignment] = field(default_factory=list)


Query = Union[SelectQuery, CreateQuery]


class QueryParser:
    """Parser for SELECT/CREATE statements."""

    tokens = QueryLexer.tokens

    # Operator precedence
    precedence = (
        ("left", "OR"),
        ("left", "AND"),
        ("right", "NOT"),
        ("nonassoc", "EQ", "NEQ", "LT", "LTE", "GT", "GTE"),
    )

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_statements_single(self, p: yacc.YaccProduction) -> None:
        """statements : statement"""
        p[0] = [p[1]]

    def p_statements_multiple(self, p: yacc.YaccProduction) -> None:
        """statements : statements SEMICOLON statement"""
        p[0] = p[1] + [p[3]]

    def p_statements_trailing(self, p: yacc.YaccProduction) -> None:
        """statements : statements SEMICOLON"""
        p[0] = p[1]

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : select_query
                     | create_query"""
        p[0] = p[1]

    # --- SELECT ---

    def p_select_query(self, p: yacc.YaccProduction) -> None:
        """select_query : SELECT select_list FROM IDENTIFIER where_clause order_clause limit_clause"""
        p[0] = SelectQuery(table=p[4], items=p[2], where=p[5], order_by=p[6], limit=p[7])

    def p_select_list_single(self, p: yacc.YaccProduction) -> None:
        """select_list : select_item"""
        p[0] = [p[1]]

    def p_select_list_multiple(self, p: yacc.YaccProduction) -> None:
        """select_list : select_list COMMA select_item"""
        p[0] = p[1] + [p[3]]

    def p_select_item_star(self, p: yacc.YaccProduction) -> None:
        """select_item : STAR"""
        p[0] = AllFields()

    def p_select_item_expr(self, p: yacc.YaccProduction) -> None:
        """select_item : expr"""
        p[0] = SelectItem(expr=p[1])

    def p_select_item_alias(self, p: yacc.YaccProduction) -> None:
        """select_item : expr AS IDENTIFIER"""
        p[0] = SelectItem(expr=p[1], alias=p[3])

    def p_where_clause(self, p: yacc.YaccProduction) -> None:
        """where_clause : WHERE expr"""
        p[0] = p[2]

    def p_where_clause_empty(self, p: yacc.YaccProduction) -> None:
        """where_clause : empty"""
        p[0] = None

    def p_order_clause(self, p: yacc.YaccProduction) -> None:
        """order_clause : ORDER BY order_list"""
        p[0] = p[3]

    def p_order_clause_empty(self, p: yacc.YaccProduction) -> None:
        """order_clause : empty"""
        p[0] = []

    def p_order_list_single(self, p: yacc.YaccProduction) -> None:
        """order_list : order_key"""
        p[0] = [p[1]]

    def p_order_list_multiple(self, p: yacc.YaccProduction) -> None:
        """order_list : order_list COMMA order_key"""
        p[0] = p[1] + [p[3]]

    def p_order_key(self, p: yacc.YaccProduction) -> None:
        """order_key : IDENTIFIER
                     | IDENTIFIER ASC"""
        p[0] = OrderKey(field=p[1])

    def p_order_key_desc(self, p: yacc.YaccProduction) -> None:
        """order_key : IDENTIFIER DESC"""
        p[0] = OrderKey(field=p[1], descending=True)

    def p_limit_clause(self, p: yacc.YaccProduction) -> None:
        """limit_clause : LIMIT INTEGER"""
        p[0] = p[2]

    def p_limit_clause_empty(self, p: yacc.YaccProduction) -> None:
        """limit_clause : empty"""
        p[0] = None

    # --- CREATE ---

    def p_create_query(self, p: yacc.YaccProduction) -> None:
        """create_query : CREATE IDENTIFIER SET assignment_list"""
        p[0] = CreateQuery(table=p[2], assignments=p[4])

    def p_create_query_empty(self, p: yacc.YaccProduction) -> None:
        """create_query : CREATE IDENTIFIER"""
        p[0] = CreateQuery(table=p[2])

    def p_assignment_list_single(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment"""
        p[0] = [p[1]]

    def p_assignment_list_multiple(self, p: yacc.YaccProduction) -> None:
        """assignment_list : assignment_list COMMA assignment"""
        p[0] = p[1] + [p[3]]

    def p_assignment(self, p: yacc.YaccProduction) -> None:
        """assignment : IDENTIFIER EQ expr"""
        p[0] = Assignment(name=p[1], value=p[3])

    # --- Expressions ---

    def p_expr_bool(self, p: yacc.YaccProduction) -> None:
        """expr : expr OR expr
                | expr AND expr"""
        p[0] = BoolOp(operator=p[2].lower(), left=p[1], right=p[3])

    def p_expr_not(self, p: yacc.YaccProduction) -> None:
        """expr : NOT expr"""
        p[0] = Not(operand=p[2])

    def p_expr_comparison(self, p: yacc.YaccProduction) -> None:
        """expr : expr EQ expr
                | expr NEQ expr
                | expr LT expr
                | expr LTE expr
                | expr GT expr
                | expr GTE expr"""
        p[0] = Comparison(operator=p[2], left=p[1], right=p[3])

    def p_expr_group(self, p: yacc.YaccProduction) -> None:
        """expr : LPAREN expr RPAREN"""
        p[0] = p[2]

    def p_expr_field(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER"""
        p[0] = FieldRef(name=p[1])

    def p_expr_variable(self, p: yacc.YaccProduction) -> None:
        """expr : VARIABLE"""
        p[0] = VariableReference(var_name=p[1])

    def p_expr_literal(self, p: yacc.YaccProduction) -> None:
        """expr : INTEGER
                | FLOAT
                | STRING"""
        p[0] = Literal(value=p[1])

    def p_expr_true(self, p: yacc.YaccProduction) -> None:
        """expr : TRUE"""
        p[0] = Literal(value=True)

    def p_expr_false(self, p: yacc.YaccProduction) -> None:
        """expr : FALSE"""
        p[0] = Literal(value=False)

    def p_expr_null(self, p: yacc.YaccProduction) -> None:
        """expr : NULL"""
        p[0] = Literal(value=None)

    def p_expr_call_empty(self, p: yacc.YaccProduction) -> None:
        """expr : FUNCTION LPAREN RPAREN"""
        p[0] = FunctionCall(name=p[1])

    def p_expr_call(self, p: yacc.YaccProduction) -> None:
        """expr : FUNCTION LPAREN arg_list RPAREN"""
        p[0] = FunctionCall(name=p[1], args=p[3])

    def p_arg_list_single(self, p: yacc.YaccProduction) -> None:
        """arg_list : expr"""
        p[0] = [p[1]]

    def p_arg_list_multiple(self, p: yacc.YaccProduction) -> None:
        """arg_list : arg_list COMMA expr"""
        p[0] = p[1] + [p[3]]

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="statements", **kwargs)

    def parse(self, data: str) -> list[Query]:
        """Parse a statement string into a list of statements."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        return self.parser.parse(data, lexer=self.lexer.lexer)
