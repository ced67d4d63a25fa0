"""
querymap - Query structure graphs with heuristic cost hot-spots

Converts raw SQL, JavaScript ORM call chains or SQLAlchemy call chains into
one normalized graph of tables, joins, CTEs, subqueries and clauses, each
annotated with a Big-O label and a cost tier.
"""

from importlib.metadata import version

__version__ = version("querymap")

# Import main public API
from .cost import CostEstimate, OperationKind, estimate_cost, estimate_join_cost

# Import export functionality
from .export import GraphVizExporter, JSONExporter
from .graph_builder import GraphBuilder, IdSequence
from .insights import QueryTreeNode, build_tree, collect_ctes, collect_warnings
from .layout import Position, compute_layout, layout_parsed_query, position_or_origin
from .models import (
    GraphEdge,
    GraphNode,
    InputMode,
    LayoutDirection,
    NodeKind,
    ParsedQuery,
    QueryAnalysis,
)
from .orm_js_parser import OrmJsGraphParser, parse_orm_js_to_graph
from .orm_py_parser import OrmPyGraphParser, parse_orm_py_to_graph
from .parser import parse_to_graph
from .sql_parser import SQLGraphParser, parse_sql_to_graph

# Import visualization functions
from .visualizations import visualize_parsed_query

__all__ = [
    # Version
    "__version__",
    # Main entry points
    "parse_to_graph",
    "compute_layout",
    # Graph model
    "ParsedQuery",
    "GraphNode",
    "GraphEdge",
    "QueryAnalysis",
    "NodeKind",
    "InputMode",
    "LayoutDirection",
    # Cost policy
    "OperationKind",
    "CostEstimate",
    "estimate_cost",
    "estimate_join_cost",
    # Backends (advanced usage)
    "SQLGraphParser",
    "OrmJsGraphParser",
    "OrmPyGraphParser",
    "GraphBuilder",
    "IdSequence",
    "parse_sql_to_graph",
    "parse_orm_js_to_graph",
    "parse_orm_py_to_graph",
    # Layout
    "Position",
    "position_or_origin",
    "layout_parsed_query",
    # Insights
    "QueryTreeNode",
    "build_tree",
    "collect_ctes",
    "collect_warnings",
    # Export
    "JSONExporter",
    "GraphVizExporter",
    # Visualization functions
    "visualize_parsed_query",
]
