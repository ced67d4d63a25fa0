"""
Heuristic cost estimation for query operations.

Maps an operation kind to a complexity class, a cost tier and advisory
warnings. This is a severity classification for display, not a cardinality
estimate.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class OperationKind(Enum):
    """Operation classes known to the cost policy"""

    TABLE = "table"
    JOIN = "join"
    WHERE = "where"
    GROUP_BY = "group-by"
    ORDER_BY = "order-by"
    LIMIT = "limit"
    UNION = "union"
    WINDOW = "window"
    AGGREGATE = "aggregate"
    CTE = "cte"
    SUBQUERY = "subquery"


@dataclass
class CostEstimate:
    complexity: str
    cost: int
    warnings: List[str] = field(default_factory=list)


OUTER_JOIN_WARNING = "Outer join may be expensive"
GROUP_BY_WARNING = "Grouping can be costly without indexes"
ORDER_BY_WARNING = "Sorting can be expensive"
UNION_WARNING = "UNION ALL is cheaper than UNION"
WINDOW_WARNING = "Window functions benefit from partition/order indexes"

# operation -> (complexity, cost, warnings); joins are classified separately
COST_POLICY: Dict[OperationKind, Tuple[str, int, Tuple[str, ...]]] = {
    OperationKind.TABLE: ("O(N)", 1, ()),
    OperationKind.WHERE: ("O(N)", 1, ()),
    OperationKind.GROUP_BY: ("O(N log N)", 2, (GROUP_BY_WARNING,)),
    OperationKind.ORDER_BY: ("O(N log N)", 2, (ORDER_BY_WARNING,)),
    OperationKind.LIMIT: ("O(1)", 0, ()),
    OperationKind.UNION: ("O(N+M)", 2, (UNION_WARNING,)),
    OperationKind.WINDOW: ("O(N log N)", 3, (WINDOW_WARNING,)),
    OperationKind.AGGREGATE: ("O(N)", 1, ()),
    OperationKind.CTE: ("O(N)", 1, ()),
    OperationKind.SUBQUERY: ("O(N)", 1, ()),
}


def estimate_join_cost(join_type: Optional[str] = None) -> CostEstimate:
    """
    Classify a join by its type token.

    Case-insensitive substring match, checked in order "outer", then
    "left"/"right", else a plain join. First match wins, so
    "leftOuterJoin" is an outer join.

    Args:
        join_type: Join type or ORM join method name (e.g. "LEFT OUTER", "innerJoin")

    Returns:
        CostEstimate for the join
    """
    jt = (join_type or "").lower()
    if "outer" in jt:
        return CostEstimate("O(N+M)", 3, [OUTER_JOIN_WARNING])
    if "left" in jt or "right" in jt:
        return CostEstimate("O(N+M)", 2)
    return CostEstimate("O(N+M)", 1)


def estimate_cost(operation: OperationKind, variant: Optional[str] = None) -> CostEstimate:
    """
    Estimate the cost of an operation.

    Args:
        operation: The operation kind
        variant: Join type for OperationKind.JOIN; ignored otherwise

    Returns:
        A fresh CostEstimate (the warnings list is never shared)
    """
    if operation == OperationKind.JOIN:
        return estimate_join_cost(variant)
    complexity, cost, warnings = COST_POLICY[operation]
    return CostEstimate(complexity, cost, list(warnings))


__all__ = [
    "OperationKind",
    "CostEstimate",
    "COST_POLICY",
    "estimate_cost",
    "estimate_join_cost",
]
