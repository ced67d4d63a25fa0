"""
Core data models for query graphs.

Contains all dataclass definitions for:
- Node and edge records emitted by every backend
- The ParsedQuery container returned by parse_to_graph
- Enumerations for node kinds, input modes and layout directions
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# ============================================================================
# Enumerations
# ============================================================================


class NodeKind(Enum):
    """Kind of a graph node"""

    TABLE = "table"
    VIEW = "view"
    CTE = "cte"
    SUBQUERY = "subquery"
    SELECT = "select"  # Query root (and the parse error sentinel)
    JOIN = "join"
    UNION = "union"  # Any set operation branch
    WHERE = "where"
    GROUP_BY = "group-by"
    ORDER_BY = "order-by"
    LIMIT = "limit"
    WINDOW = "window"
    AGGREGATE = "aggregate"


class InputMode(Enum):
    """Surface syntax of the text handed to parse_to_graph"""

    SQL = "sql"
    ORM_JS = "orm-js"
    ORM_PY = "orm-py"


class LayoutDirection(Enum):
    """Flow direction for compute_layout"""

    LR = "LR"  # Left to right
    TB = "TB"  # Top to bottom


# Structural kinds that act as a local root for their own sub-tree
LOCAL_ROOT_KINDS = frozenset({NodeKind.CTE, NodeKind.SUBQUERY, NodeKind.UNION})

ROOT_ID = "root:query"
ERROR_ROOT_ID = "root:error"


# ============================================================================
# Graph Models
# ============================================================================


@dataclass
class GraphNode:
    """
    A single operation or relation in the query graph.

    cost is a severity tier (0 = free, 1 = linear, 2 = linearithmic/costly,
    3 = expensive) and complexity is the Big-O label driving it.
    """

    id: str
    label: str
    kind: NodeKind
    detail: Optional[str] = None
    complexity: Optional[str] = None
    cost: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "label": self.label, "kind": self.kind.value}
        if self.detail is not None:
            data["detail"] = self.detail
        if self.complexity is not None:
            data["complexity"] = self.complexity
        if self.cost is not None:
            data["cost"] = self.cost
        data["warnings"] = list(self.warnings)
        return data


@dataclass
class GraphEdge:
    """
    Directed edge: source feeds into target.

    Edges point toward the query root or toward the nearest enclosing
    cte/subquery/union node.
    """

    id: str
    source: str
    target: str
    label: Optional[str] = None
    complexity: Optional[str] = None
    cost: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "source": self.source, "target": self.target}
        if self.label is not None:
            data["label"] = self.label
        if self.complexity is not None:
            data["complexity"] = self.complexity
        if self.cost is not None:
            data["cost"] = self.cost
        data["warnings"] = list(self.warnings)
        return data


@dataclass
class QueryAnalysis:
    """Query-wide advisories that do not belong to a single node or edge"""

    warnings: List[str] = field(default_factory=list)


@dataclass
class ParsedQuery:
    """
    Graph produced by one backend call.

    Built fresh for every input and never mutated after it is returned.
    errors is None when nothing went wrong; a hard parse failure collapses
    the graph to a single error sentinel node (see GraphBuilder.error_graph).
    """

    root_id: str
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    errors: Optional[List[str]] = None
    analysis: Optional[QueryAnalysis] = None

    @property
    def is_error(self) -> bool:
        """True when the graph is the parse error sentinel"""
        return self.root_id == ERROR_ROOT_ID

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_kind(self, kind: NodeKind) -> List[GraphNode]:
        return [n for n in self.nodes if n.kind == kind]

    def edges_to(self, node_id: str) -> List[GraphEdge]:
        """Get all edges feeding into a node"""
        return [e for e in self.edges if e.target == node_id]

    def edges_from(self, node_id: str) -> List[GraphEdge]:
        """Get all edges leaving a node"""
        return [e for e in self.edges if e.source == node_id]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys consumed by graph renderers"""
        data: Dict[str, Any] = {
            "rootId": self.root_id,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
        if self.errors is not None:
            data["errors"] = list(self.errors)
        if self.analysis is not None:
            data["analysis"] = {"warnings": list(self.analysis.warnings)}
        return data


__all__ = [
    "NodeKind",
    "InputMode",
    "LayoutDirection",
    "LOCAL_ROOT_KINDS",
    "ROOT_ID",
    "ERROR_ROOT_ID",
    "GraphNode",
    "GraphEdge",
    "QueryAnalysis",
    "ParsedQuery",
]
