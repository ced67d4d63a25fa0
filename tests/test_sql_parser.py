"""
Tests for the SQL backend.

Covers the recursive walk over CTEs, derived tables, joins, clauses and set
operations, plus the text-level window/aggregate heuristics and the error
contract.
"""

from collections import Counter

import pytest

from querymap import NodeKind, build_tree, parse_sql_to_graph
from querymap.models import ERROR_ROOT_ID, ROOT_ID
from querymap.sql_parser import (
    MULTIPLE_STATEMENTS_WARNING,
    NO_RELATIONS_MESSAGE,
    SQLGraphParser,
)

CTE_JOIN_SQL = (
    "WITH sales_per_user AS (SELECT user_id, SUM(amount) AS total FROM orders "
    "GROUP BY user_id) SELECT u.id, u.name, s.total FROM users u JOIN sales_per_user s "
    "ON s.user_id = u.id WHERE s.total > 100 ORDER BY s.total DESC LIMIT 50;"
)


def parent_of(parsed, node_id):
    """Target of the single edge leaving node_id"""
    targets = [e.target for e in parsed.edges_from(node_id)]
    assert len(targets) == 1, f"{node_id} has {len(targets)} outgoing edges"
    return targets[0]


def find(parsed, kind, label=None):
    matches = [n for n in parsed.nodes if n.kind == kind and (label is None or n.label == label)]
    assert matches, f"no {kind.value} node labelled {label!r}"
    return matches


def structure(parsed):
    return Counter((n.kind, n.label, n.cost) for n in parsed.nodes)


class TestCteWithJoins:
    """CTE with aggregate, outer query with join, filter, sort and limit."""

    @pytest.fixture
    def parsed(self):
        return parse_sql_to_graph(CTE_JOIN_SQL)

    def test_root(self, parsed):
        assert parsed.root_id == ROOT_ID
        root = parsed.get_node(ROOT_ID)
        assert root.kind == NodeKind.SELECT
        assert parsed.errors is None

    def test_cte_node(self, parsed):
        (cte,) = find(parsed, NodeKind.CTE, "sales_per_user")

        assert parent_of(parsed, cte.id) == ROOT_ID
        assert parsed.edges_from(cte.id)[0].label == "WITH"
        assert cte.cost == 1

    def test_cte_contents(self, parsed):
        (cte,) = find(parsed, NodeKind.CTE, "sales_per_user")
        (orders,) = find(parsed, NodeKind.TABLE, "orders")
        (group_by,) = find(parsed, NodeKind.GROUP_BY)

        assert parent_of(parsed, orders.id) == cte.id
        assert parent_of(parsed, group_by.id) == cte.id
        assert group_by.cost == 2
        assert group_by.warnings == ["Grouping can be costly without indexes"]

    def test_outer_level(self, parsed):
        (users,) = find(parsed, NodeKind.TABLE, "users")
        (join,) = find(parsed, NodeKind.JOIN, "sales_per_user")

        assert parent_of(parsed, users.id) == ROOT_ID
        assert parent_of(parsed, join.id) == ROOT_ID
        assert join.cost == 1
        assert join.detail == "ON ..."
        for kind in (NodeKind.WHERE, NodeKind.ORDER_BY, NodeKind.LIMIT):
            (node,) = find(parsed, kind)
            assert parent_of(parsed, node.id) == ROOT_ID

    def test_limit_is_free(self, parsed):
        (limit,) = find(parsed, NodeKind.LIMIT)

        assert limit.cost == 0
        assert limit.complexity == "O(1)"

    def test_aggregate_reported_in_cte_and_at_root(self, parsed):
        """The aggregate inside the CTE is counted once per scope."""
        (cte,) = find(parsed, NodeKind.CTE, "sales_per_user")
        aggregates = parsed.nodes_of_kind(NodeKind.AGGREGATE)

        assert len(aggregates) == 2
        parents = sorted(parent_of(parsed, a.id) for a in aggregates)
        assert parents == sorted([cte.id, ROOT_ID])
        at_root = [a for a in aggregates if parent_of(parsed, a.id) == ROOT_ID]
        assert len(at_root) == 1

    def test_no_window(self, parsed):
        assert parsed.nodes_of_kind(NodeKind.WINDOW) == []

    def test_forms_tree(self, parsed):
        tree = build_tree(parsed)

        assert sum(1 for _ in tree.walk()) == len(parsed.nodes)
        for node in parsed.nodes:
            if node.id != parsed.root_id:
                assert len(parsed.edges_from(node.id)) == 1

    def test_edge_integrity(self, parsed):
        ids = {n.id for n in parsed.nodes}
        for edge in parsed.edges:
            assert edge.source in ids
            assert edge.target in ids

    def test_reparse_is_structurally_identical(self, parsed):
        again = parse_sql_to_graph(CTE_JOIN_SQL)

        assert structure(again) == structure(parsed)
        assert [n.id for n in again.nodes] == [n.id for n in parsed.nodes]


class TestJoins:
    """Join type classification from sqlglot side/kind."""

    @pytest.mark.parametrize(
        "join_sql,edge_label,cost",
        [
            ("JOIN", "JOIN", 1),
            ("INNER JOIN", "INNER JOIN", 1),
            ("LEFT JOIN", "LEFT JOIN", 2),
            ("RIGHT JOIN", "RIGHT JOIN", 2),
            ("LEFT OUTER JOIN", "LEFT OUTER JOIN", 3),
            ("FULL OUTER JOIN", "FULL OUTER JOIN", 3),
            ("FULL JOIN", "FULL OUTER JOIN", 3),
        ],
    )
    def test_join_type(self, join_sql, edge_label, cost):
        parsed = parse_sql_to_graph(f"SELECT * FROM a {join_sql} b ON a.id = b.id")

        (join,) = find(parsed, NodeKind.JOIN, "b")
        assert join.cost == cost
        assert parsed.edges_from(join.id)[0].label == edge_label

    def test_outer_join_warns_on_node_and_edge(self):
        parsed = parse_sql_to_graph("SELECT * FROM a LEFT OUTER JOIN b ON a.id = b.id")

        (join,) = find(parsed, NodeKind.JOIN, "b")
        assert join.warnings == ["Outer join may be expensive"]
        assert parsed.edges_from(join.id)[0].warnings == ["Outer join may be expensive"]

    def test_self_join_ids_are_unique(self):
        parsed = parse_sql_to_graph(
            "SELECT * FROM orders o1 JOIN orders o2 ON o1.id = o2.parent_id"
        )

        ids = [n.id for n in parsed.nodes]
        assert len(ids) == len(set(ids))
        assert len(find(parsed, NodeKind.TABLE, "orders")) == 1
        assert len(find(parsed, NodeKind.JOIN, "orders")) == 1

    def test_join_onto_subquery(self):
        parsed = parse_sql_to_graph(
            "SELECT * FROM users u LEFT JOIN (SELECT user_id FROM orders) o ON o.user_id = u.id"
        )

        (sub,) = find(parsed, NodeKind.SUBQUERY, "o")
        (orders,) = find(parsed, NodeKind.TABLE, "orders")
        assert sub.cost == 2
        assert parsed.edges_from(sub.id)[0].label == "LEFT JOIN"
        assert parent_of(parsed, orders.id) == sub.id


class TestSubqueries:
    """Derived tables act as local roots."""

    def test_derived_table(self):
        parsed = parse_sql_to_graph(
            "SELECT big.id FROM (SELECT id FROM orders WHERE total > 10) AS big LIMIT 5"
        )

        (sub,) = find(parsed, NodeKind.SUBQUERY, "big")
        (orders,) = find(parsed, NodeKind.TABLE, "orders")
        (where,) = find(parsed, NodeKind.WHERE)
        (limit,) = find(parsed, NodeKind.LIMIT)

        assert parent_of(parsed, sub.id) == ROOT_ID
        assert parsed.edges_from(sub.id)[0].label == "FROM (sub)"
        assert parent_of(parsed, orders.id) == sub.id
        assert parent_of(parsed, where.id) == sub.id
        assert parent_of(parsed, limit.id) == ROOT_ID

    def test_nested_derived_tables(self):
        parsed = parse_sql_to_graph(
            "SELECT * FROM (SELECT * FROM (SELECT id FROM events) AS inner_q) AS outer_q"
        )

        (outer_q,) = find(parsed, NodeKind.SUBQUERY, "outer_q")
        (inner_q,) = find(parsed, NodeKind.SUBQUERY, "inner_q")
        (events,) = find(parsed, NodeKind.TABLE, "events")

        assert parent_of(parsed, outer_q.id) == ROOT_ID
        assert parent_of(parsed, inner_q.id) == outer_q.id
        assert parent_of(parsed, events.id) == inner_q.id

    def test_subquery_without_alias(self):
        parsed = parse_sql_to_graph("SELECT * FROM (SELECT id FROM events)")

        assert find(parsed, NodeKind.SUBQUERY, "subquery")


class TestSetOperations:
    """Each chained branch hangs off its own union node."""

    def test_union(self):
        parsed = parse_sql_to_graph("SELECT id FROM a UNION SELECT id FROM b")

        (union,) = find(parsed, NodeKind.UNION)
        (a,) = find(parsed, NodeKind.TABLE, "a")
        (b,) = find(parsed, NodeKind.TABLE, "b")

        assert union.label == "UNION"
        assert union.cost == 2
        assert union.warnings == ["UNION ALL is cheaper than UNION"]
        assert parent_of(parsed, union.id) == ROOT_ID
        assert parent_of(parsed, a.id) == ROOT_ID
        assert parent_of(parsed, b.id) == union.id

    def test_union_all_chain(self):
        parsed = parse_sql_to_graph(
            "SELECT id FROM a UNION ALL SELECT id FROM b UNION ALL SELECT id FROM c"
        )

        unions = parsed.nodes_of_kind(NodeKind.UNION)
        assert len(unions) == 2
        assert {u.label for u in unions} == {"UNION ALL"}
        (c,) = find(parsed, NodeKind.TABLE, "c")
        assert parent_of(parsed, c.id) in {u.id for u in unions}

    def test_branch_clauses_stay_in_branch(self):
        parsed = parse_sql_to_graph("SELECT id FROM a UNION SELECT id FROM b WHERE b.x = 1")

        (union,) = find(parsed, NodeKind.UNION)
        (where,) = find(parsed, NodeKind.WHERE)
        assert parent_of(parsed, where.id) == union.id

    def test_except_and_intersect(self):
        parsed = parse_sql_to_graph(
            "SELECT id FROM a EXCEPT SELECT id FROM b INTERSECT SELECT id FROM c"
        )

        labels = sorted(u.label for u in parsed.nodes_of_kind(NodeKind.UNION))
        assert labels == ["EXCEPT", "INTERSECT"]


class TestStatements:
    """Multi-statement input and query-wrapping statements."""

    def test_multiple_statements(self):
        parsed = parse_sql_to_graph("SELECT * FROM a; SELECT * FROM b")

        labels = {n.label for n in parsed.nodes_of_kind(NodeKind.TABLE)}
        assert labels == {"a", "b"}
        assert parsed.analysis.warnings == [MULTIPLE_STATEMENTS_WARNING]

    def test_single_statement_has_no_analysis_warnings(self):
        parsed = parse_sql_to_graph(CTE_JOIN_SQL)

        assert parsed.analysis.warnings == []

    def test_create_table_as_select(self):
        parsed = parse_sql_to_graph("CREATE TABLE summary AS SELECT id FROM src WHERE id > 1")

        (src,) = find(parsed, NodeKind.TABLE, "src")
        assert parent_of(parsed, src.id) == ROOT_ID
        assert find(parsed, NodeKind.WHERE)

    def test_insert_select(self):
        parsed = parse_sql_to_graph("INSERT INTO archive SELECT * FROM events")

        assert {n.label for n in parsed.nodes_of_kind(NodeKind.TABLE)} == {"events"}

    def test_delete(self):
        parsed = parse_sql_to_graph("DELETE FROM orders WHERE id = 1")

        (orders,) = find(parsed, NodeKind.TABLE, "orders")
        (where,) = find(parsed, NodeKind.WHERE)
        assert parent_of(parsed, orders.id) == ROOT_ID
        assert parent_of(parsed, where.id) == ROOT_ID
        assert parsed.errors is None

    def test_delete_using(self):
        parsed = parse_sql_to_graph(
            "DELETE FROM orders USING customers WHERE orders.customer_id = customers.id",
            dialect="postgres",
        )

        labels = [n.label for n in parsed.nodes_of_kind(NodeKind.TABLE)]
        assert labels == ["orders", "customers"]

    def test_update(self):
        parsed = parse_sql_to_graph("UPDATE orders SET status = 'done' WHERE id = 1")

        assert find(parsed, NodeKind.TABLE, "orders")
        assert find(parsed, NodeKind.WHERE)
        assert parsed.errors is None

    def test_update_from(self):
        parsed = parse_sql_to_graph(
            "UPDATE orders SET total = p.total FROM prices p WHERE p.id = orders.price_id",
            dialect="postgres",
        )

        labels = [n.label for n in parsed.nodes_of_kind(NodeKind.TABLE)]
        assert labels == ["orders", "prices"]
        (prices,) = find(parsed, NodeKind.TABLE, "prices")
        assert prices.detail == "AS p"

    def test_update_with_cte(self):
        parsed = parse_sql_to_graph(
            "WITH stale AS (SELECT id FROM orders WHERE age > 30) "
            "UPDATE orders SET archived = TRUE WHERE id IN (SELECT id FROM stale)",
            dialect="postgres",
        )

        (cte,) = find(parsed, NodeKind.CTE, "stale")
        assert parent_of(parsed, cte.id) == ROOT_ID
        assert len(find(parsed, NodeKind.TABLE, "orders")) == 2

    def test_dialect_is_forwarded(self):
        parser = SQLGraphParser("SELECT * FROM `project.dataset.orders`", dialect="bigquery")
        parsed = parser.parse()

        assert find(parsed, NodeKind.TABLE, "orders")


class TestTextHeuristics:
    """Window/aggregate detection on the raw text."""

    def test_window_function(self):
        parsed = parse_sql_to_graph(
            "SELECT id, ROW_NUMBER() OVER (PARTITION BY g ORDER BY id) AS rn FROM t"
        )

        (window,) = parsed.nodes_of_kind(NodeKind.WINDOW)
        assert window.cost == 3
        assert window.complexity == "O(N log N)"
        assert window.warnings == ["Window functions benefit from partition/order indexes"]
        assert parent_of(parsed, window.id) == ROOT_ID
        assert parsed.edges_from(window.id)[0].label == "OVER(...)"

    def test_one_aggregate_however_many_calls(self):
        parsed = parse_sql_to_graph("SELECT COUNT(*), SUM(x), MAX(y) FROM t")

        assert len(parsed.nodes_of_kind(NodeKind.AGGREGATE)) == 1

    def test_case_insensitive(self):
        parsed = parse_sql_to_graph("select count (*) from t")

        assert len(parsed.nodes_of_kind(NodeKind.AGGREGATE)) == 1

    def test_no_heuristic_nodes_for_plain_query(self):
        parsed = parse_sql_to_graph("SELECT id FROM t")

        assert parsed.nodes_of_kind(NodeKind.AGGREGATE) == []
        assert parsed.nodes_of_kind(NodeKind.WINDOW) == []


class TestErrors:
    """Hard parse failures and soft structural misses."""

    def test_malformed_sql(self):
        parsed = parse_sql_to_graph("SELEKT * FROM")

        assert len(parsed.nodes) == 1
        (node,) = parsed.nodes
        assert node.kind == NodeKind.SELECT
        assert parsed.root_id == node.id == ERROR_ROOT_ID
        assert parsed.edges == []
        assert parsed.errors
        assert node.detail == parsed.errors[0]
        assert parsed.is_error

    def test_no_tables_is_soft(self):
        parsed = parse_sql_to_graph("SELECT 1")

        assert not parsed.is_error
        assert parsed.errors == [NO_RELATIONS_MESSAGE]
        assert parsed.root_id == ROOT_ID

    def test_empty_input(self):
        parsed = parse_sql_to_graph("")

        assert [n.id for n in parsed.nodes] == [ROOT_ID]
        assert parsed.errors == [NO_RELATIONS_MESSAGE]

    def test_parser_raises_directly(self):
        """The class-level API propagates sqlglot errors; the function does not."""
        from sqlglot.errors import SqlglotError

        with pytest.raises(SqlglotError):
            SQLGraphParser("SELEKT * FROM").parse()
