"""
Query Graph - Main Entry Point

Dispatches input text to the backend for its surface syntax.

Architecture:
- models.py: Graph model dataclasses (GraphNode, GraphEdge, ParsedQuery)
- cost.py: Heuristic cost policy
- graph_builder.py: Shared node/edge emission and the error contract
- sql_parser.py: SQL backend (sqlglot)
- orm_js_parser.py: JavaScript/TypeScript ORM backend (tree-sitter)
- orm_py_parser.py: SQLAlchemy-style lexical backend
- layout.py: Graphviz based node placement
"""

import logging
from typing import Callable, Dict, Optional, Union

from .graph_builder import GraphBuilder
from .models import InputMode, ParsedQuery
from .orm_js_parser import parse_orm_js_to_graph
from .orm_py_parser import parse_orm_py_to_graph
from .sql_parser import parse_sql_to_graph

logger = logging.getLogger(__name__)

# Every backend has the same shape: parse(text) -> ParsedQuery
BACKENDS: Dict[InputMode, Callable[[str], ParsedQuery]] = {
    InputMode.SQL: parse_sql_to_graph,
    InputMode.ORM_JS: parse_orm_js_to_graph,
    InputMode.ORM_PY: parse_orm_py_to_graph,
}


def parse_to_graph(
    mode: Union[InputMode, str], text: str, dialect: Optional[str] = None
) -> ParsedQuery:
    """
    Convert query text into a ParsedQuery.

    Never raises: every failure is encoded in the returned graph (see
    ParsedQuery.errors and ParsedQuery.is_error).

    Args:
        mode: InputMode or its value ("sql", "orm-js", "orm-py")
        text: Source text
        dialect: sqlglot dialect for SQL mode; ignored by the ORM backends

    Returns:
        ParsedQuery for the text

    Example:
        parsed = parse_to_graph("sql", "SELECT * FROM orders LIMIT 10")
        parsed = parse_to_graph(InputMode.ORM_PY, "session.query(User).all()")
    """
    try:
        input_mode = mode if isinstance(mode, InputMode) else InputMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in InputMode)
        return GraphBuilder.error_graph(f"Unknown input mode {mode!r}. Expected one of: {valid}")

    logger.debug("Dispatching %d characters to %s backend", len(text), input_mode.value)
    if input_mode == InputMode.SQL and dialect is not None:
        return parse_sql_to_graph(text, dialect=dialect)
    return BACKENDS[input_mode](text)


__all__ = ["BACKENDS", "parse_to_graph"]
