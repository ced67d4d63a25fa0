"""
Recursive SQL parser producing query graphs.

Parses SQL text with sqlglot and walks each statement recursively,
projecting CTEs, derived tables, joins, clauses and set operations onto
the shared graph model. CTE, subquery and union nodes act as local roots
for everything nested inside them.
"""

import logging
from typing import List, Optional, Tuple

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, SqlglotError

from .cost import OperationKind
from .graph_builder import GraphBuilder
from .models import NodeKind, ParsedQuery

logger = logging.getLogger(__name__)

SET_OPERATIONS = (exp.Union, exp.Intersect, exp.Except)

# Statements that wrap a query: CREATE TABLE ... AS SELECT, INSERT ... SELECT
QUERY_WRAPPERS = (exp.Create, exp.Insert)

# Statements that change rows of a target table in place
TABLE_MODIFIERS = (exp.Update, exp.Delete)

NO_RELATIONS_MESSAGE = "No tables/CTEs detected in SQL input."

MULTIPLE_STATEMENTS_WARNING = "Several statements are merged into one graph under a single root"


class SQLGraphParser:
    """
    Recursively walk SQL statements and build a ParsedQuery.

    Example:
        parser = SQLGraphParser("SELECT * FROM orders WHERE id > 10")
        parsed = parser.parse()
    """

    def __init__(self, sql: str, dialect: Optional[str] = None):
        self.sql = sql
        self.dialect = dialect
        self.builder = GraphBuilder()

    def parse(self) -> ParsedQuery:
        """
        Main entry point: parse all statements and return the graph.

        Raises:
            sqlglot.errors.SqlglotError: If sqlglot rejects the text
        """
        statements = sqlglot.parse(self.sql, read=self.dialect)
        logger.debug("Parsed %d SQL statement(s)", len(statements))

        root_id = self.builder.root_id
        statements = [s for s in statements if s is not None]
        if len(statements) > 1:
            self.builder.add_analysis_warning(MULTIPLE_STATEMENTS_WARNING)
        for statement in statements:
            self._parse_statement(statement, root_id)

        # Blanket scan of the raw text, attached to the outermost root
        self.builder.add_text_heuristics(self.sql, root_id)

        if not self.builder.has_relations():
            self.builder.add_error(NO_RELATIONS_MESSAGE)

        return self.builder.build()

    def _parse_statement(self, statement: exp.Expression, parent_id: str):
        """Unwrap DDL/DML around a query or walk an UPDATE/DELETE, then the query"""
        if isinstance(statement, QUERY_WRAPPERS):
            self._parse_ctes(statement, parent_id)
            inner = statement.expression
            if inner is not None:
                self._parse_query(inner, parent_id)
            return
        if isinstance(statement, TABLE_MODIFIERS):
            self._parse_modification(statement, parent_id)
            return
        self._parse_query(statement, parent_id)

    def _parse_modification(self, statement: exp.Expression, parent_id: str):
        """
        UPDATE / DELETE: the target table, UPDATE ... FROM and DELETE ... USING
        sources, then the WHERE / ORDER BY / LIMIT clauses.
        """
        self._parse_ctes(statement, parent_id)
        if statement.this is not None:
            self._add_source(statement.this, parent_id)

        from_clause = statement.args.get("from_") or statement.args.get("from")
        if from_clause is not None:
            for source in _from_sources(from_clause):
                self._add_source(source, parent_id)
        for source in statement.args.get("using") or []:
            self._add_source(source, parent_id)
        for join in statement.args.get("joins") or []:
            self._add_join(join, parent_id)

        self._parse_clauses(statement, parent_id)

    def _parse_query(self, node: exp.Expression, parent_id: str):
        """
        Recursively parse a query (SELECT or set operation) under parent_id.

        This is the core recursive method.
        """
        node = _unwrap_subquery(node)

        # 1. CTEs first (they're available to this query)
        self._parse_ctes(node, parent_id)

        # 2. Set operations: first branch at the parent, each further branch
        #    under its own union node
        if isinstance(node, SET_OPERATIONS):
            branches = self._collect_set_operation_branches(node)
            first_branch, _ = branches[0]
            self._parse_query(first_branch, parent_id)
            for branch, operator in branches[1:]:
                union_id = self.builder.add_operation(
                    NodeKind.UNION, OperationKind.UNION, operator, parent_id, operator
                )
                self._add_scoped_heuristics(branch, union_id)
                self._parse_query(branch, union_id)
            # ORDER BY / LIMIT after the last branch belong to the whole set operation
            self._parse_clauses(node, parent_id)
            return

        if isinstance(node, exp.Select):
            # 3. FROM and JOIN sources
            self._parse_from_sources(node, parent_id)
            # 4. WHERE / GROUP BY / ORDER BY / LIMIT
            self._parse_clauses(node, parent_id)

    def _parse_ctes(self, node: exp.Expression, parent_id: str):
        for cte in _get_ctes(node):
            if not isinstance(cte, exp.CTE):
                continue
            cte_name = cte.alias_or_name
            cte_id = self.builder.add_operation(
                NodeKind.CTE, OperationKind.CTE, cte_name, parent_id, "WITH", name=cte_name
            )
            if cte.this is not None:
                self._add_scoped_heuristics(cte.this, cte_id)
                self._parse_query(cte.this, cte_id)

    def _parse_from_sources(self, select_node: exp.Select, parent_id: str):
        """
        Parse FROM/JOIN sources, which may be:
        - Base tables (or CTE references)
        - Subqueries (derived tables)

        Only table sources are inspected, not the whole subtree (which would
        include column references).
        """
        # Note: sqlglot >=28.0.0 uses "from_" instead of "from" (Python keyword)
        from_clause = select_node.args.get("from_") or select_node.args.get("from")
        if from_clause is not None:
            for source in _from_sources(from_clause):
                self._add_source(source, parent_id)

        for join in select_node.args.get("joins") or []:
            self._add_join(join, parent_id)

    def _add_source(self, source: exp.Expression, parent_id: str):
        if isinstance(source, exp.Subquery):
            sub_id = self.builder.add_operation(
                NodeKind.SUBQUERY,
                OperationKind.SUBQUERY,
                source.alias or "subquery",
                parent_id,
                "FROM (sub)",
            )
            self._add_scoped_heuristics(source.this, sub_id)
            self._parse_query(source.this, sub_id)
        elif isinstance(source, exp.Table):
            table_name = source.name
            if not table_name:
                return
            self.builder.add_operation(
                NodeKind.TABLE,
                OperationKind.TABLE,
                table_name,
                parent_id,
                "FROM",
                name=table_name,
                detail=f"AS {source.alias}" if source.alias else None,
            )

    def _add_join(self, join: exp.Join, parent_id: str):
        join_type = _join_type(join)
        edge_label = f"{join_type} JOIN" if join_type else "JOIN"
        detail = None
        if join.args.get("on") is not None:
            detail = "ON ..."
        elif join.args.get("using"):
            detail = "USING (...)"

        target = join.this
        if isinstance(target, exp.Subquery):
            # Derived table on the right side of a join: costed as the join
            sub_id = self.builder.add_operation(
                NodeKind.SUBQUERY,
                OperationKind.JOIN,
                target.alias or "subquery",
                parent_id,
                edge_label,
                variant=join_type,
                detail=detail,
            )
            self._add_scoped_heuristics(target.this, sub_id)
            self._parse_query(target.this, sub_id)
        elif isinstance(target, exp.Table) and target.name:
            self.builder.add_operation(
                NodeKind.JOIN,
                OperationKind.JOIN,
                target.name,
                parent_id,
                edge_label,
                variant=join_type,
                name=target.name,
                detail=detail,
            )

    def _parse_clauses(self, node: exp.Expression, parent_id: str):
        """Emit one node per WHERE / GROUP BY / ORDER BY / LIMIT clause"""
        clauses = (
            ("where", NodeKind.WHERE, OperationKind.WHERE, "WHERE", "Filter"),
            ("group", NodeKind.GROUP_BY, OperationKind.GROUP_BY, "GROUP BY", "Aggregate"),
            ("order", NodeKind.ORDER_BY, OperationKind.ORDER_BY, "ORDER BY", "Sort"),
            ("limit", NodeKind.LIMIT, OperationKind.LIMIT, "LIMIT", "Limit"),
        )
        for arg_name, kind, operation, label, edge_label in clauses:
            if node.args.get(arg_name) is not None:
                self.builder.add_operation(kind, operation, label, parent_id, edge_label)

    def _add_scoped_heuristics(self, node: exp.Expression, local_root_id: str):
        """
        Run the window/aggregate text scan on a nested query's own SQL.

        The outermost root gets its own scan of the raw input, so an
        aggregate inside a CTE is reported at both levels.
        """
        self.builder.add_text_heuristics(node.sql(dialect=self.dialect), local_root_id)

    def _collect_set_operation_branches(
        self, set_node: exp.Expression, operator: Optional[str] = None
    ) -> List[Tuple[exp.Expression, Optional[str]]]:
        """
        Flatten a set operation into (branch, operator) pairs, left to right.

        Example: (A UNION B) EXCEPT C -> [(A, None), (B, "UNION"), (C, "EXCEPT")]
        The first branch keeps the operator of the enclosing level, which is
        None at the top.
        """
        if not isinstance(set_node, SET_OPERATIONS):
            return [(set_node, operator)]

        branches = self._collect_set_operation_branches(_unwrap_subquery(set_node.this), operator)
        right = set_node.expression
        node_operator = _set_operator(set_node)
        # Parenthesized right side keeps its own ORDER BY/LIMIT, so only
        # unwrap it when it is itself a bare set operation
        if isinstance(right, exp.Subquery) and isinstance(right.this, SET_OPERATIONS):
            right = right.this
        branches.extend(self._collect_set_operation_branches(right, node_operator))
        return branches


# ============================================================================
# sqlglot helpers
# ============================================================================


def _unwrap_subquery(node: exp.Expression) -> exp.Expression:
    while isinstance(node, exp.Subquery) and node.this is not None:
        node = node.this
    return node


def _get_ctes(node: exp.Expression) -> List[exp.Expression]:
    with_clause = node.args.get("with_") or node.args.get("with")
    if with_clause is None:
        return []
    return list(with_clause.expressions)


def _from_sources(from_clause: exp.Expression) -> List[exp.Expression]:
    if from_clause.this is not None:
        return [from_clause.this]
    # Older sqlglot releases kept FROM sources in expressions
    return list(from_clause.expressions)


def _join_type(join: exp.Join) -> str:
    """
    Join type token from sqlglot's side and kind, e.g. "LEFT OUTER".

    A bare FULL join is read as FULL OUTER.
    """
    side = (join.side or "").upper()
    kind = (join.kind or "").upper()
    if side == "FULL" and not kind:
        kind = "OUTER"
    return " ".join(part for part in (side, kind) if part)


def _set_operator(set_node: exp.Expression) -> str:
    if isinstance(set_node, exp.Union):
        return "UNION" if set_node.args.get("distinct") else "UNION ALL"
    if isinstance(set_node, exp.Intersect):
        return "INTERSECT"
    return "EXCEPT"


def _format_error(error: Exception) -> str:
    """Collapse a sqlglot error into a single line message"""
    if isinstance(error, ParseError) and error.errors:
        first = error.errors[0]
        description = first.get("description") or "Invalid SQL"
        line = first.get("line")
        col = first.get("col")
        if line is not None and col is not None:
            return f"{description} (line {line}, col {col})"
        return description
    if isinstance(error, RecursionError):
        return "Query is nested too deeply to parse"
    return str(error) or type(error).__name__


def parse_sql_to_graph(sql: str, dialect: Optional[str] = None) -> ParsedQuery:
    """
    Parse SQL text into a query graph.

    Never raises: parser failures become the error sentinel graph.

    Args:
        sql: SQL text, possibly holding several statements
        dialect: sqlglot dialect name (None for sqlglot's default)

    Returns:
        ParsedQuery for the text
    """
    try:
        return SQLGraphParser(sql, dialect=dialect).parse()
    except (SqlglotError, RecursionError) as e:
        message = _format_error(e)
        logger.debug("SQL parse failed: %s", message)
        return GraphBuilder.error_graph(message)
    except Exception as e:
        logger.debug("Unexpected failure while walking SQL", exc_info=True)
        logger.warning("SQL graph extraction failed: %s", e)
        return GraphBuilder.error_graph(str(e) or type(e).__name__)


__all__ = ["SQLGraphParser", "parse_sql_to_graph"]
