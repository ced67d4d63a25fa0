"""
Pure visualization functions for query graphs.

These functions translate a ParsedQuery into Graphviz DOT format.
No business logic - just presentation layer.
"""

from typing import Union

import graphviz

from .layout import graphviz_names
from .models import GraphEdge, GraphNode, LayoutDirection, ParsedQuery

# Fill colour per cost tier (nodes) and stroke colour per cost tier (edges)
NODE_COLORS = {3: "#ffebee", 2: "#fff8e1"}
NODE_DEFAULT_COLOR = "#e8f5e9"
EDGE_COLORS = {3: "#c62828", 2: "#ef6c00"}
EDGE_DEFAULT_COLOR = "#607d8b"

# Shapes for different node kinds
SHAPES = {
    "table": "cylinder",
    "view": "cylinder",
    "cte": "folder",
    "subquery": "component",
    "select": "doubleoctagon",
}


def cost_to_color(cost: int) -> str:
    """Node fill colour for a cost tier"""
    if cost >= 3:
        return NODE_COLORS[3]
    return NODE_COLORS.get(cost, NODE_DEFAULT_COLOR)


def edge_color(cost: int) -> str:
    """Edge stroke colour for a cost tier"""
    if cost >= 3:
        return EDGE_COLORS[3]
    return EDGE_COLORS.get(cost, EDGE_DEFAULT_COLOR)


def node_label(node: GraphNode) -> str:
    """Label, then complexity, then the first warning, one per line"""
    lines = [node.label]
    if node.complexity:
        lines.append(node.complexity)
    if node.warnings:
        lines.append(f"⚠ {node.warnings[0]}")
    # Graphviz line break escape
    return "\\n".join(lines)


def edge_label(edge: GraphEdge) -> str:
    if edge.label:
        return f"{edge.label} ({edge.complexity})" if edge.complexity else edge.label
    return edge.complexity or ""


def visualize_parsed_query(
    parsed: ParsedQuery, direction: Union[LayoutDirection, str] = LayoutDirection.LR
) -> graphviz.Digraph:
    """
    Create Graphviz visualization of a ParsedQuery.

    Pure function: Takes ParsedQuery, returns Graphviz Digraph.
    Nodes are filled by cost tier, edges stroked by cost tier. A missing
    cost counts as tier 1. Graphviz names are positional; each node keeps
    its own id in the id attribute.

    Args:
        parsed: The graph returned by parse_to_graph
        direction: Flow direction ("LR" or "TB")

    Returns:
        graphviz.Digraph object ready to render
    """
    direction = direction if isinstance(direction, LayoutDirection) else LayoutDirection(direction)

    dot = graphviz.Digraph(comment="Query Graph")
    dot.attr(rankdir=direction.value)
    dot.attr("node", shape="box", style="rounded,filled", fontname="Arial", fontsize="12")
    dot.attr("edge", fontsize="10")

    names = graphviz_names(parsed.nodes)
    emitted = set()
    for node in parsed.nodes:
        if node.id in emitted:
            continue
        emitted.add(node.id)
        cost = node.cost if node.cost is not None else 1
        tooltip = f"{node.kind.value}: {node.label}"
        if node.detail:
            tooltip += f" ({node.detail})"
        dot.node(
            names[node.id],
            label=node_label(node),
            id=node.id,
            shape=SHAPES.get(node.kind.value, "box"),
            fillcolor=cost_to_color(cost),
            fontcolor="#0b1020",
            tooltip=tooltip,
        )

    for edge in parsed.edges:
        if edge.source not in names or edge.target not in names:
            continue
        cost = edge.cost if edge.cost is not None else 1
        dot.edge(
            names[edge.source],
            names[edge.target],
            label=edge_label(edge),
            color=edge_color(cost),
        )

    return dot


__all__ = [
    "cost_to_color",
    "edge_color",
    "node_label",
    "edge_label",
    "visualize_parsed_query",
]
