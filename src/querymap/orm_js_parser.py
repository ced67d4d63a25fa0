"""
ORM call-chain parser for JavaScript/TypeScript source.

Parses the source with Tree-sitter (TSX grammar, which accepts plain
JavaScript, TypeScript and JSX) and pattern-matches call expressions of
common query builders and model clients:

- knex style:    db('orders').join('users', ...).where(...)
- kysely style:  db.selectFrom('orders').leftJoin('users', ...)
- prisma style:  prisma.user.findMany(...)
"""

import logging
from functools import lru_cache
from typing import Dict, List, Optional

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from .cost import OperationKind
from .graph_builder import GraphBuilder
from .models import NodeKind, ParsedQuery

logger = logging.getLogger(__name__)

TABLE_METHODS = frozenset({"from", "table", "selectFrom"})

JOIN_METHODS = frozenset(
    {
        "join",
        "leftJoin",
        "rightJoin",
        "innerJoin",
        "leftOuterJoin",
        "rightOuterJoin",
        "fullOuterJoin",
    }
)

CTE_METHODS = frozenset({"with", "withRecursive"})

# <namespace>.<model>.<method>() treats <model> as a table
MODEL_CLIENT_NAMESPACE = "prisma"

NO_RELATIONS_MESSAGE = "No tables/models/CTEs detected. This is a minimal heuristic parser."


class OrmSyntaxError(ValueError):
    """Source text rejected by the JavaScript/TypeScript grammar"""


@lru_cache(maxsize=1)
def _tsx_language() -> Language:
    # tree-sitter >=0.22 per-language packages expose a function returning
    # the Language capsule
    return Language(tree_sitter_typescript.language_tsx())


class OrmJsGraphParser:
    """
    Collect tables, joins and CTEs from ORM call chains.

    Example:
        parser = OrmJsGraphParser("db('orders').join('users', 'u.id', 'o.user_id')")
        parsed = parser.parse()
    """

    def __init__(self, code: str):
        self.code = code
        self.builder = GraphBuilder()
        # Insertion ordered; dict keys double as an ordered set
        self.tables: Dict[str, None] = {}
        self.join_methods: Dict[str, str] = {}
        self.ctes: List[str] = []

    def parse(self) -> ParsedQuery:
        """
        Main entry point: parse the source and return the graph.

        Raises:
            OrmSyntaxError: If the source does not parse cleanly
        """
        tree = Parser(_tsx_language()).parse(self.code.encode("utf-8", errors="replace"))
        root = tree.root_node
        if root.has_error:
            raise OrmSyntaxError(_describe_syntax_error(root))

        for node in _walk_preorder(root):
            if node.type == "call_expression":
                self._visit_call(node)

        logger.debug(
            "ORM-JS scan found %d table(s), %d join(s), %d CTE(s)",
            len(self.tables),
            len(self.join_methods),
            len(self.ctes),
        )

        if not self.tables and not self.ctes:
            self.builder.add_error(NO_RELATIONS_MESSAGE)

        root_id = self.builder.root_id
        for table in self.tables:
            join_method = self.join_methods.get(table)
            if join_method:
                self.builder.add_operation(
                    NodeKind.JOIN,
                    OperationKind.JOIN,
                    table,
                    root_id,
                    join_method.upper(),
                    variant=join_method,
                    name=table,
                )
            else:
                self.builder.add_operation(
                    NodeKind.TABLE, OperationKind.TABLE, table, root_id, "FROM", name=table
                )

        for cte in self.ctes:
            self.builder.add_operation(
                NodeKind.CTE, OperationKind.CTE, cte, root_id, "WITH", name=cte
            )

        self.builder.add_text_heuristics(self.code, root_id)
        return self.builder.build()

    def _visit_call(self, call: Node):
        callee = _unwrap_await(call.child_by_field_name("function"))
        if callee is None:
            return
        first_arg = _string_value(_first_argument(call))

        # Query-builder factory: db('orders')
        if callee.type == "identifier":
            if first_arg is not None:
                self.tables[first_arg] = None
            return

        if callee.type != "member_expression":
            return

        prop = callee.child_by_field_name("property")
        if prop is not None and prop.type == "property_identifier":
            method = _text(prop)
            if first_arg is not None:
                if method in TABLE_METHODS:
                    self.tables[first_arg] = None
                if method in JOIN_METHODS:
                    self.tables[first_arg] = None
                    self.join_methods[first_arg] = method
                if method in CTE_METHODS:
                    self.ctes.append(first_arg)

        # Model client: prisma.user.findMany()
        obj = _unwrap_await(callee.child_by_field_name("object"))
        if obj is not None and obj.type == "member_expression":
            namespace = _unwrap_await(obj.child_by_field_name("object"))
            model = obj.child_by_field_name("property")
            if (
                namespace is not None
                and namespace.type == "identifier"
                and _text(namespace) == MODEL_CLIENT_NAMESPACE
                and model is not None
                and model.type == "property_identifier"
            ):
                self.tables[_text(model)] = None


# ============================================================================
# Tree-sitter helpers
# ============================================================================


def _text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _unwrap_await(node: Optional[Node]) -> Optional[Node]:
    """
    Operand of an await_expression with a single operand, else the node itself.

    The TSX grammar reads `await db<Order>(...)` as a call whose callee is
    `await db`, so the awaited identifier has to be looked through.
    """
    if node is not None and node.type == "await_expression" and node.named_child_count == 1:
        return node.named_children[0]
    return node


def _walk_preorder(root: Node):
    """Iterative pre-order walk (deeply nested sources must not hit the recursion limit)"""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _first_argument(call: Node) -> Optional[Node]:
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return None
    for child in args.named_children:
        if child.type != "comment":
            return child
    return None


def _string_value(node: Optional[Node]) -> Optional[str]:
    """Value of a plain string literal; template literals do not count"""
    if node is None or node.type != "string":
        return None
    return _text(node)[1:-1]


def _describe_syntax_error(root: Node) -> str:
    """Locate the first ERROR or MISSING node"""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            row, column = node.start_point[0], node.start_point[1]
            return f"Unexpected token ({row + 1}:{column})"
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return "Unexpected token"


def parse_orm_js_to_graph(code: str) -> ParsedQuery:
    """
    Parse JavaScript/TypeScript ORM source into a query graph.

    Never raises: syntax errors become the error sentinel graph.
    """
    try:
        return OrmJsGraphParser(code).parse()
    except OrmSyntaxError as e:
        logger.debug("ORM-JS parse failed: %s", e)
        return GraphBuilder.error_graph(str(e))
    except Exception as e:
        logger.debug("Unexpected failure while walking ORM-JS source", exc_info=True)
        logger.warning("ORM-JS graph extraction failed: %s", e)
        return GraphBuilder.error_graph(str(e) or type(e).__name__)


__all__ = [
    "OrmJsGraphParser",
    "OrmSyntaxError",
    "JOIN_METHODS",
    "MODEL_CLIENT_NAMESPACE",
    "parse_orm_js_to_graph",
]
