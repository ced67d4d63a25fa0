"""
Read-only consumers of a ParsedQuery.

- collect_ctes / collect_warnings back an insights summary
- build_tree reconstructs a strict tree for outline views
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .models import GraphNode, NodeKind, ParsedQuery


@dataclass
class QueryTreeNode:
    """A graph node with its children, as shown in an outline view"""

    node: GraphNode
    children: List["QueryTreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.node.id

    def walk(self):
        """Yield (depth, tree node) pairs in pre-order"""
        stack = [(0, self)]
        while stack:
            depth, current = stack.pop()
            yield depth, current
            stack.extend((depth + 1, child) for child in reversed(current.children))

    def render(self, indent: str = "  ") -> str:
        """Indented text outline: label, kind and complexity per line"""
        lines = []
        for depth, current in self.walk():
            node = current.node
            line = f"{indent * depth}{node.label} [{node.kind.value}]"
            if node.complexity:
                line += f" {node.complexity}"
            lines.append(line)
        return "\n".join(lines)


def collect_ctes(parsed: ParsedQuery) -> List[GraphNode]:
    """Get all CTE nodes"""
    return parsed.nodes_of_kind(NodeKind.CTE)


def collect_warnings(parsed: ParsedQuery) -> List[str]:
    """
    Flatten every advisory into one list.

    Order: query-wide analysis warnings, then node warnings, then edge
    warnings. Duplicates are kept (an outer join warns on its node and
    its edge).
    """
    warnings: List[str] = []
    if parsed.analysis is not None:
        warnings.extend(parsed.analysis.warnings)
    for node in parsed.nodes:
        warnings.extend(node.warnings)
    for edge in parsed.edges:
        warnings.extend(edge.warnings)
    return warnings


def build_tree(parsed: ParsedQuery) -> Optional[QueryTreeNode]:
    """
    Reconstruct a strict tree rooted at root_id.

    Each edge's target is the parent and its source the child. A node
    reachable through more than one edge is attached at its first
    occurrence only, so cycles and shared nodes cannot repeat.

    Returns:
        The root QueryTreeNode, or None if the root node is missing
    """
    nodes_by_id: Dict[str, GraphNode] = {n.id: n for n in parsed.nodes}
    root = nodes_by_id.get(parsed.root_id)
    if root is None:
        return None

    children_of: Dict[str, List[str]] = {}
    for edge in parsed.edges:
        if edge.source in nodes_by_id and edge.target in nodes_by_id:
            children_of.setdefault(edge.target, []).append(edge.source)

    root_tree = QueryTreeNode(node=root)
    visited: Set[str] = {root.id}
    queue = deque([root_tree])
    while queue:
        current = queue.popleft()
        for child_id in children_of.get(current.id, []):
            if child_id in visited:
                continue
            visited.add(child_id)
            child = QueryTreeNode(node=nodes_by_id[child_id])
            current.children.append(child)
            queue.append(child)
    return root_tree


__all__ = ["QueryTreeNode", "collect_ctes", "collect_warnings", "build_tree"]
