"""
Layered node placement for query graphs.

Builds a Graphviz digraph with a fixed node footprint, lets `dot` place it,
and reads the positions back from dot's JSON output. Graphviz reports node
centres in points with the y axis pointing up; positions returned here are
top-left corners in screen orientation (y grows downward).
"""

import json
import logging
import subprocess
from typing import Any, Dict, List, NamedTuple, Sequence, Tuple, Union

import graphviz

from .models import GraphEdge, GraphNode, LayoutDirection, ParsedQuery

logger = logging.getLogger(__name__)

# Fixed node footprint and spacing, in points (1/72 inch)
NODE_WIDTH = 200
NODE_HEIGHT = 60
NODE_SEP = 40
RANK_SEP = 80

POINTS_PER_INCH = 72.0


class Position(NamedTuple):
    x: float
    y: float


ORIGIN = Position(0.0, 0.0)


def _inches(points: float) -> str:
    return f"{points / POINTS_PER_INCH:.4f}"


def graphviz_names(nodes: Sequence[GraphNode]) -> Dict[str, str]:
    """
    Positional Graphviz name ("n0", "n1", ...) for each node id.

    Node ids such as "table:orders" contain colons, which Graphviz reads as
    node:port syntax. A repeated id keeps the name of its first occurrence.
    """
    names: Dict[str, str] = {}
    for idx, node in enumerate(nodes):
        names.setdefault(node.id, f"n{idx}")
    return names


def build_layout_graph(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    direction: LayoutDirection = LayoutDirection.LR,
) -> Tuple[graphviz.Digraph, Dict[str, str]]:
    """
    Build the Graphviz digraph used for placement, with nodes named by
    graphviz_names.

    Returns:
        Tuple of (digraph, graphviz name -> node id)
    """
    dot = graphviz.Digraph(comment="Query Graph Layout")
    dot.attr(rankdir=direction.value, nodesep=_inches(NODE_SEP), ranksep=_inches(RANK_SEP))
    dot.attr(
        "node",
        shape="box",
        fixedsize="true",
        width=_inches(NODE_WIDTH),
        height=_inches(NODE_HEIGHT),
        label="",
    )

    safe_ids = graphviz_names(nodes)
    for name in safe_ids.values():
        dot.node(name)

    for edge in edges:
        # Dangling edges would make Graphviz invent nodes
        if edge.source in safe_ids and edge.target in safe_ids:
            dot.edge(safe_ids[edge.source], safe_ids[edge.target])

    return dot, {name: node_id for node_id, name in safe_ids.items()}


def _positions_from_json(layout: Dict[str, Any], names: Dict[str, str]) -> Dict[str, Position]:
    bbox = [float(v) for v in layout.get("bb", "0,0,0,0").split(",")]
    lower_y, upper_y = bbox[1], bbox[3]

    positions: Dict[str, Position] = {}
    for obj in layout.get("objects", []):
        node_id = names.get(obj.get("name"))
        pos = obj.get("pos")
        if node_id is None or not pos:
            continue
        center_x, center_y = (float(v) for v in pos.split(",")[:2])
        screen_y = upper_y - center_y + lower_y
        positions[node_id] = Position(center_x - NODE_WIDTH / 2, screen_y - NODE_HEIGHT / 2)
    return positions


def compute_layout(
    nodes: Sequence[GraphNode],
    edges: Sequence[GraphEdge],
    direction: Union[LayoutDirection, str] = LayoutDirection.LR,
) -> Dict[str, Position]:
    """
    Assign a top-left (x, y) position to each node.

    Nodes missing from the Graphviz result are omitted, and so is every
    node when Graphviz itself fails; use position_or_origin() to default
    them.

    Args:
        nodes: Graph nodes
        edges: Graph edges (source feeds into target)
        direction: LayoutDirection or "LR"/"TB"

    Returns:
        Dictionary mapping node id -> Position, in node order

    Raises:
        ValueError: If direction is not a known layout direction
    """
    direction = direction if isinstance(direction, LayoutDirection) else LayoutDirection(direction)
    if not nodes:
        return {}

    dot, names = build_layout_graph(nodes, edges, direction)
    try:
        raw = dot.pipe(format="json", encoding="utf-8")
    except (graphviz.ExecutableNotFound, subprocess.CalledProcessError) as e:
        logger.debug("Graphviz layout failed", exc_info=True)
        logger.warning("Graphviz layout failed, positions omitted: %s", e)
        return {}

    positions = _positions_from_json(json.loads(raw), names)
    ordered: Dict[str, Position] = {}
    for node in nodes:
        if node.id in positions:
            ordered[node.id] = positions[node.id]
    return ordered


def position_or_origin(positions: Dict[str, Position], node_id: str) -> Position:
    """Position of a node, defaulting to the origin when layout omitted it"""
    return positions.get(node_id, ORIGIN)


def layout_parsed_query(
    parsed: ParsedQuery, direction: Union[LayoutDirection, str] = LayoutDirection.LR
) -> List[Tuple[GraphNode, Position]]:
    """Pair every node of a ParsedQuery with its position (origin when missing)"""
    positions = compute_layout(parsed.nodes, parsed.edges, direction)
    return [(node, position_or_origin(positions, node.id)) for node in parsed.nodes]


__all__ = [
    "NODE_WIDTH",
    "NODE_HEIGHT",
    "NODE_SEP",
    "RANK_SEP",
    "Position",
    "ORIGIN",
    "graphviz_names",
    "build_layout_graph",
    "compute_layout",
    "position_or_origin",
    "layout_parsed_query",
]
