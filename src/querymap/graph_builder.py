"""
Shared graph emission for all backends.

Every backend (SQL, ORM-JS, ORM-PY) projects what it finds onto the same
node/edge vocabulary through GraphBuilder, so node ids, cost annotation and
the error contract are identical across input modes.
"""

import logging
from typing import List, Optional, Pattern, Set

from .cost import CostEstimate, OperationKind, estimate_cost
from .heuristics import AGGREGATE_PATTERN, OVER_CLAUSE_PATTERN, has_aggregate, has_window_function
from .models import (
    ERROR_ROOT_ID,
    ROOT_ID,
    GraphEdge,
    GraphNode,
    NodeKind,
    ParsedQuery,
    QueryAnalysis,
)

logger = logging.getLogger(__name__)


class IdSequence:
    """
    Mints node and edge ids unique within one parse.

    Ids use the natural name when one exists ("table:orders"); repeated or
    missing names fall back to a per-parse counter ("table:3"), so the same
    input always yields the same ids.
    """

    def __init__(self):
        self._used: Set[str] = set()
        self._counter = 0

    def mint(self, prefix: str, name: Optional[str] = None) -> str:
        if name:
            candidate = f"{prefix}:{name}"
            if candidate not in self._used:
                self._used.add(candidate)
                return candidate
        while True:
            candidate = f"{prefix}:{self._counter}"
            self._counter += 1
            if candidate not in self._used:
                self._used.add(candidate)
                return candidate

    def reserve(self, node_id: str):
        """Mark a fixed id (such as the root) as taken"""
        self._used.add(node_id)


class GraphBuilder:
    """
    Accumulates nodes and edges for a single ParsedQuery.

    The builder owns the root node and the id sequence; backends call
    add_operation() for each discovered relation or clause and build()
    once at the end.
    """

    def __init__(self, root_label: str = "Query"):
        self.ids = IdSequence()
        self.root_id = ROOT_ID
        self.ids.reserve(self.root_id)
        self.nodes: List[GraphNode] = [
            GraphNode(id=self.root_id, label=root_label, kind=NodeKind.SELECT)
        ]
        self.edges: List[GraphEdge] = []
        self.errors: List[str] = []
        self.analysis_warnings: List[str] = []

    def add_node(
        self,
        kind: NodeKind,
        label: str,
        estimate: Optional[CostEstimate] = None,
        name: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> str:
        """Add a node and return its id. name is the natural id suffix, if any."""
        node_id = self.ids.mint(kind.value, name)
        node = GraphNode(id=node_id, label=label, kind=kind, detail=detail)
        if estimate is not None:
            node.complexity = estimate.complexity
            node.cost = estimate.cost
            node.warnings = list(estimate.warnings)
        self.nodes.append(node)
        return node_id

    def add_edge(
        self,
        source: str,
        target: str,
        label: Optional[str] = None,
        estimate: Optional[CostEstimate] = None,
        include_warnings: bool = False,
    ) -> str:
        """Add an edge from source (feeder) to target (consumer)"""
        edge = GraphEdge(id=self.ids.mint("edge"), source=source, target=target, label=label)
        if estimate is not None:
            edge.complexity = estimate.complexity
            edge.cost = estimate.cost
            if include_warnings:
                edge.warnings = list(estimate.warnings)
        self.edges.append(edge)
        return edge.id

    def add_operation(
        self,
        kind: NodeKind,
        operation: OperationKind,
        label: str,
        parent_id: str,
        edge_label: Optional[str] = None,
        variant: Optional[str] = None,
        name: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> str:
        """
        Add a costed node plus its edge toward parent_id.

        Join edges carry the join warnings as well, so an outer join shows
        up on both the node and the edge leading out of it.

        Args:
            kind: Node kind to emit
            operation: Cost policy entry (see estimate_cost)
            label: Node label
            parent_id: Structural root the node feeds into
            edge_label: Edge label
            variant: Join type for joins
            name: Natural id suffix (table or CTE name)
            detail: Optional node detail text

        Returns:
            The new node id
        """
        estimate = estimate_cost(operation, variant)
        node_id = self.add_node(kind, label, estimate, name=name, detail=detail)
        self.add_edge(
            node_id,
            parent_id,
            label=edge_label,
            estimate=estimate,
            include_warnings=operation == OperationKind.JOIN,
        )
        return node_id

    def add_text_heuristics(
        self,
        text: str,
        parent_id: Optional[str] = None,
        over_pattern: Pattern = OVER_CLAUSE_PATTERN,
        aggregate_pattern: Pattern = AGGREGATE_PATTERN,
    ):
        """
        Scan raw text for window functions and aggregates.

        Adds at most one window node and one aggregate node, however many
        times each pattern occurs.
        """
        target = parent_id or self.root_id
        if has_window_function(text, over_pattern):
            self.add_operation(NodeKind.WINDOW, OperationKind.WINDOW, "WINDOW", target, "OVER(...)")
        if has_aggregate(text, aggregate_pattern):
            self.add_operation(
                NodeKind.AGGREGATE, OperationKind.AGGREGATE, "AGGREGATE", target, "Agg"
            )

    def add_error(self, message: str):
        """Record a soft advisory; the graph is still returned"""
        logger.debug("Advisory: %s", message)
        self.errors.append(message)

    def add_analysis_warning(self, message: str):
        """Record a query-wide advisory that belongs to no single node or edge"""
        self.analysis_warnings.append(message)

    def has_relations(self) -> bool:
        """Check whether any table, join, CTE or subquery node was emitted"""
        relation_kinds = (NodeKind.TABLE, NodeKind.JOIN, NodeKind.CTE, NodeKind.SUBQUERY)
        return any(n.kind in relation_kinds for n in self.nodes)

    def build(self) -> ParsedQuery:
        return ParsedQuery(
            root_id=self.root_id,
            nodes=self.nodes,
            edges=self.edges,
            errors=list(self.errors) if self.errors else None,
            analysis=QueryAnalysis(warnings=list(self.analysis_warnings)),
        )

    @staticmethod
    def error_graph(message: str) -> ParsedQuery:
        """
        Collapse a hard parse failure into the error sentinel graph.

        The only node is a select-kind sentinel carrying the message in
        detail, and root_id points at it.
        """
        sentinel = GraphNode(
            id=ERROR_ROOT_ID, label="Parse error", kind=NodeKind.SELECT, detail=message
        )
        return ParsedQuery(root_id=ERROR_ROOT_ID, nodes=[sentinel], edges=[], errors=[message])


__all__ = ["IdSequence", "GraphBuilder"]
