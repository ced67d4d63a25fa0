"""
Lexical parser for SQLAlchemy-style call chains.

No syntax tree is built: call arguments are pulled out of the raw text with
a single bracket- and quote-aware pass and matched against known query methods
(query, select, select_from/from_, join, outerjoin, cte). Recall is best
effort; a miss is reported as an advisory, never as a failure.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .cost import OperationKind
from .graph_builder import GraphBuilder
from .heuristics import FUNC_AGGREGATE_PATTERN, METHOD_OVER_PATTERN
from .models import NodeKind, ParsedQuery

logger = logging.getLogger(__name__)

NO_RELATIONS_MESSAGE = "No models/tables/CTEs detected from SQLAlchemy code."

OUTER_JOIN_SUFFIX = " (outer)"

SOURCE_METHODS = ("query", "select")
FROM_METHODS = ("select_from", "from_")
JOIN_METHODS = ("join", "outerjoin")

_ALIASED_PATTERN = re.compile(r"^aliased\(([^)]+)\)$")
_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][\w$]*$")
_CTE_PATTERN = re.compile(r"\.cte\s*\(\s*(?:name\s*=\s*)?(['\"])\s*([^'\")]+?)\s*\1[^)]*\)")


# ============================================================================
# Tokenizing
# ============================================================================


def split_args(arg_list: str) -> List[str]:
    """
    Split a call's argument text on top-level commas.

    Commas inside nested parentheses or inside string literals (either
    quote style, backslash escapes honoured) do not split.

    Example:
        split_args("User, func.count(Order.id), 'a,b'")
        -> ["User", "func.count(Order.id)", "'a,b'"]
    """
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    in_string: Optional[str] = None
    escaped = False

    for ch in arg_list:
        if in_string:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = None
            continue
        if ch in ("'", '"'):
            in_string = ch
            current.append(ch)
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)

    parts.append("".join(current).strip())
    return [p for p in parts if p]


def normalize_name(token: str) -> Optional[str]:
    """
    Reduce an argument token to a model/table name.

    Strips quotes, unwraps aliased(X), drops a trailing .__table__ and keeps
    the last dotted segment: "models.User.__table__" -> "User".

    Returns:
        The name, or None when nothing name-like remains (e.g. a call
        such as func.count(Order.id))
    """
    name = token.strip()
    if not name:
        return None
    if len(name) >= 2 and name[0] == name[-1] and name[0] in ("'", '"'):
        name = name[1:-1]
    alias_match = _ALIASED_PATTERN.match(name)
    if alias_match:
        # aliased(User, name="u") -> User
        name = alias_match.group(1).split(",")[0].strip()
    if name.endswith(".__table__"):
        name = name[: -len(".__table__")]
    if "." in name:
        name = name.split(".")[-1]
    if not name or not _IDENTIFIER_PATTERN.match(name):
        return None
    return name


@dataclass
class _Call:
    """One parenthesised call found by the scanner"""

    name: str
    name_start: int
    open_pos: int
    close_pos: Optional[int] = None
    # Positions of the commas that separate this call's own arguments
    commas: List[int] = field(default_factory=list)
    # argument index -> calls opened directly inside that argument
    nested: Dict[int, List["_Call"]] = field(default_factory=dict)

    def argument_bounds(self, index: int, text_end: int) -> Tuple[int, int]:
        start = self.open_pos + 1 if index == 0 else self.commas[index - 1] + 1
        if index < len(self.commas):
            return start, self.commas[index]
        return start, text_end if self.close_pos is None else self.close_pos

    def nested_in(self, index: int) -> List["_Call"]:
        return self.nested.get(index, [])


def _callee_before(code: str, open_pos: int) -> Tuple[str, int]:
    """Identifier right before an opening parenthesis (whitespace allowed) and its start"""
    end = open_pos
    while end > 0 and code[end - 1].isspace():
        end -= 1
    start = end
    while start > 0 and (code[start - 1].isalnum() or code[start - 1] == "_"):
        start -= 1
    return code[start:end], start


def _scan_calls(code: str) -> List[_Call]:
    """
    Every parenthesised call in code, in opening order, found in one pass.

    String literals (either quote style, backslash escapes honoured) and
    # comments are skipped; a string still open at the end of a line is
    closed there. Calls left open at the end of the text keep close_pos None.
    """
    calls: List[_Call] = []
    stack: List[_Call] = []
    in_string: Optional[str] = None
    escaped = False
    pos = 0
    length = len(code)

    while pos < length:
        ch = code[pos]
        if in_string:
            if ch == "\n":
                in_string = None
            elif escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == in_string:
                in_string = None
        elif ch in ("'", '"'):
            in_string = ch
        elif ch == "#":
            newline = code.find("\n", pos)
            pos = length if newline == -1 else newline
            continue
        elif ch == "(":
            name, name_start = _callee_before(code, pos)
            call = _Call(name=name, name_start=name_start, open_pos=pos)
            if stack:
                parent = stack[-1]
                parent.nested.setdefault(len(parent.commas), []).append(call)
            calls.append(call)
            stack.append(call)
        elif ch == ")":
            if stack:
                stack.pop().close_pos = pos
        elif ch == "," and stack:
            stack[-1].commas.append(pos)
        pos += 1

    return calls


def extract_call_args(code: str, func: str) -> Iterator[str]:
    """
    Yield the raw argument text of every call to func, in text order.

    Parentheses inside string literals or # comments do not count. An
    unbalanced call runs to the end of the text.
    """
    for call in _scan_calls(code):
        if call.name == func:
            end = len(code) if call.close_pos is None else call.close_pos
            yield code[call.open_pos + 1 : end]


# ============================================================================
# Parser
# ============================================================================


class OrmPyGraphParser:
    """
    Collect models, joins and CTEs from SQLAlchemy call chains.

    Example:
        parser = OrmPyGraphParser("session.query(Order).join(User).filter(Order.id > 1)")
        parsed = parser.parse()
    """

    def __init__(self, code: str):
        self.code = code
        self.builder = GraphBuilder()
        self.tables: Dict[str, None] = {}
        # table -> recorded join entry ("User" or "Product (outer)"), last writer wins
        self.joins: Dict[str, str] = {}
        self.ctes: List[str] = []

    def parse(self) -> ParsedQuery:
        self._scan()

        logger.debug(
            "ORM-PY scan found %d model(s), %d join(s), %d CTE(s)",
            len(self.tables),
            len(self.joins),
            len(self.ctes),
        )

        if not self.tables and not self.ctes:
            self.builder.add_error(NO_RELATIONS_MESSAGE)

        root_id = self.builder.root_id
        for table in self.tables:
            join_entry = self.joins.get(table)
            if join_entry is None:
                self.builder.add_operation(
                    NodeKind.TABLE, OperationKind.TABLE, table, root_id, "FROM", name=table
                )
                continue
            join_type = "outer" if join_entry.endswith(OUTER_JOIN_SUFFIX) else "inner"
            self.builder.add_operation(
                NodeKind.JOIN,
                OperationKind.JOIN,
                table,
                root_id,
                "OUTER JOIN" if join_type == "outer" else "JOIN",
                variant=join_type,
                name=table,
            )

        for cte in self.ctes:
            self.builder.add_operation(
                NodeKind.CTE, OperationKind.CTE, cte, root_id, "WITH", name=cte
            )

        self.builder.add_text_heuristics(
            self.code,
            root_id,
            over_pattern=METHOD_OVER_PATTERN,
            aggregate_pattern=FUNC_AGGREGATE_PATTERN,
        )
        return self.builder.build()

    def _scan(self):
        calls = _scan_calls(self.code)

        # query(A, B) / select(A, B): every argument is a candidate model
        for call in calls:
            if call.name in SOURCE_METHODS:
                for index in range(len(call.commas) + 1):
                    self._add_table(self._argument_name(call, index))

        # select_from(A) (modern spelling) and from_(A): single argument
        for call in calls:
            if call.name in FROM_METHODS and not call.commas:
                self._add_table(self._argument_name(call, 0))

        # join(Target, onclause): first argument only, in text order
        for call in calls:
            if call.name in JOIN_METHODS:
                self._add_join(self._argument_name(call, 0), outer=call.name == "outerjoin")

        for match in _CTE_PATTERN.finditer(self.code):
            name = match.group(2).strip()
            if name:
                self.ctes.append(name)

    def _argument_name(self, call: _Call, index: int) -> Optional[str]:
        """
        Model name held by one argument of call, or None.

        An argument that opens a call is a name only when that call is a
        bare aliased(X, ...); X is then taken from its first argument.
        """
        nested = call.nested_in(index)
        while nested:
            child = nested[0]
            if len(nested) > 1 or child.name != "aliased" or child.close_pos is None:
                return None
            start, end = call.argument_bounds(index, len(self.code))
            before = self.code[start : child.name_start]
            after = self.code[child.close_pos + 1 : end]
            if before.strip() or after.strip():
                return None
            call, index = child, 0
            nested = call.nested_in(0)

        start, end = call.argument_bounds(index, len(self.code))
        return normalize_name(self.code[start:end])

    def _add_table(self, name: Optional[str]):
        if name:
            self.tables[name] = None

    def _add_join(self, name: Optional[str], outer: bool):
        if not name:
            return
        self.tables[name] = None
        self.joins[name] = name + OUTER_JOIN_SUFFIX if outer else name


def parse_orm_py_to_graph(code: str) -> ParsedQuery:
    """
    Parse SQLAlchemy-style source into a query graph.

    Never raises; there is no hard failure mode, only the soft advisory.
    """
    try:
        return OrmPyGraphParser(code).parse()
    except Exception as e:
        logger.debug("Unexpected failure while scanning ORM-PY source", exc_info=True)
        logger.warning("ORM-PY graph extraction failed: %s", e)
        return GraphBuilder.error_graph(str(e) or type(e).__name__)


__all__ = [
    "split_args",
    "normalize_name",
    "extract_call_args",
    "OrmPyGraphParser",
    "parse_orm_py_to_graph",
]
