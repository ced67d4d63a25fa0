"""
Simple example demonstrating SQL query structure and cost hot-spots
"""

from querymap import build_tree, collect_ctes, collect_warnings, parse_to_graph

# Example SQL query with CTE and joins
sql = """
WITH monthly_sales AS (
  SELECT
    user_id,
    DATE_TRUNC('month', order_date) AS month,
    SUM(amount) AS total_amount
  FROM orders
  WHERE status = 'completed'
  GROUP BY 1, 2
)
SELECT
  u.name,
  ms.month,
  ms.total_amount,
  RANK() OVER (PARTITION BY ms.month ORDER BY ms.total_amount DESC) AS month_rank
FROM users u
LEFT OUTER JOIN monthly_sales ms ON u.id = ms.user_id
ORDER BY ms.month
LIMIT 100
"""


def main():
    print("=" * 80)
    print("SQL Query Graph Example")
    print("=" * 80)
    print()

    parsed = parse_to_graph("sql", sql, dialect="postgres")

    if parsed.is_error:
        print(f"Parse failed: {parsed.errors[0]}")
        return

    print(f"Nodes: {len(parsed.nodes)}  Edges: {len(parsed.edges)}")
    print()

    # Outline view, root first
    print("Structure:")
    print(build_tree(parsed).render())
    print()

    print("CTEs:")
    for cte in collect_ctes(parsed):
        print(f"  - {cte.label}")
    print()

    # Hot-spots: anything with cost tier 2 or more
    print("Hot-spots:")
    for node in parsed.nodes:
        if node.cost is not None and node.cost >= 2:
            print(f"  [{node.cost}] {node.label} {node.complexity}")
    print()

    print("Warnings:")
    for warning in dict.fromkeys(collect_warnings(parsed)):
        print(f"  ⚠ {warning}")
    print()


if __name__ == "__main__":
    main()
