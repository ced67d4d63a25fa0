"""
Example demonstrating layout and export of a query graph

Shows how to:
1. Compute node positions with Graphviz
2. Export the graph (with positions) to JSON
3. Export the graph to GraphViz DOT format
"""

import json
import tempfile
from pathlib import Path

from querymap import (
    GraphVizExporter,
    JSONExporter,
    compute_layout,
    parse_to_graph,
    position_or_origin,
)

sql = """
SELECT region, COUNT(*) AS n FROM (
  SELECT c.region FROM customers c JOIN orders o ON o.customer_id = c.id
) sub
GROUP BY region
UNION ALL
SELECT 'total', COUNT(*) FROM orders
"""


def main():
    print("=" * 80)
    print("Layout and Export Example")
    print("=" * 80)
    print()

    parsed = parse_to_graph("sql", sql)

    # Positions are empty when the Graphviz `dot` executable is missing
    positions = compute_layout(parsed.nodes, parsed.edges, direction="LR")
    if not positions:
        print("Graphviz not available; every node falls back to the origin")
    for node in parsed.nodes:
        x, y = position_or_origin(positions, node.id)
        print(f"  {node.id:<20} ({x:7.1f}, {y:7.1f})")
    print()

    with tempfile.TemporaryDirectory() as tmpdir:
        json_path = Path(tmpdir) / "query.json"
        JSONExporter.export_to_file(parsed, json_path, positions=positions)
        data = json.loads(json_path.read_text())
        print(f"JSON export: {len(data['nodes'])} nodes, {len(data['edges'])} edges")

        dot_path = Path(tmpdir) / "query.dot"
        GraphVizExporter.export_to_file(parsed, dot_path, direction="TB")
        print(f"DOT export: {len(dot_path.read_text().splitlines())} lines")
    print()

    print(GraphVizExporter.export(parsed))


if __name__ == "__main__":
    main()
