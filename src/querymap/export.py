"""
Export functionality for query graphs.

Supports exporting to:
- JSON: Machine-readable graph (camelCase keys, optional node positions)
- GraphViz DOT: Visual graph representation
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .layout import Position
from .models import LayoutDirection, ParsedQuery
from .visualizations import visualize_parsed_query


class JSONExporter:
    """
    Export a ParsedQuery to JSON for graph renderers.

    The node/edge records use the same camelCase keys a canvas renderer
    reads (rootId, nodes, edges, errors, analysis).
    """

    @staticmethod
    def export(
        parsed: ParsedQuery,
        positions: Optional[Dict[str, Position]] = None,
    ) -> Dict[str, Any]:
        """
        Export a query graph to a JSON-serializable dictionary.

        Args:
            parsed: The graph to export
            positions: Optional output of compute_layout; when given every
                node gets a "position" entry, defaulting to the origin

        Returns:
            Dictionary with rootId, nodes, edges and optionally errors/analysis

        Example:
            parsed = parse_to_graph("sql", sql)
            data = JSONExporter.export(parsed, compute_layout(parsed.nodes, parsed.edges))
            with open("graph.json", "w") as f:
                json.dump(data, f)
        """
        result = parsed.to_dict()
        if positions is not None:
            for node_dict in result["nodes"]:
                x, y = positions.get(node_dict["id"], (0.0, 0.0))
                node_dict["position"] = {"x": x, "y": y}
        return result

    @staticmethod
    def export_to_file(
        parsed: ParsedQuery,
        file_path: Union[str, Path],
        positions: Optional[Dict[str, Position]] = None,
        indent: int = 2,
    ):
        """
        Export query graph to JSON file.

        Args:
            parsed: The graph to export
            file_path: Path to output JSON file
            positions: Optional node positions (see export())
            indent: JSON indentation (default: 2)
        """
        data = JSONExporter.export(parsed, positions=positions)

        with open(file_path, "w") as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)


class GraphVizExporter:
    """Export a query graph to GraphViz DOT format"""

    @staticmethod
    def export(
        parsed: ParsedQuery, direction: Union[LayoutDirection, str] = LayoutDirection.LR
    ) -> str:
        """
        Export a query graph to DOT source.

        Returns:
            DOT format string
        """
        return visualize_parsed_query(parsed, direction).source

    @staticmethod
    def export_to_file(
        parsed: ParsedQuery,
        file_path: Union[str, Path],
        direction: Union[LayoutDirection, str] = LayoutDirection.LR,
    ):
        """Export query graph to a .dot file"""
        dot_content = GraphVizExporter.export(parsed, direction)

        with open(file_path, "w") as f:
            f.write(dot_content)


__all__ = ["JSONExporter", "GraphVizExporter"]
