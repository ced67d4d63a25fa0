"""
Text-level heuristic registry.

Contains the regex patterns used to spot window functions and aggregates
in raw source text, where no structured representation is available or as
a cheap supplementary signal next to the structural walk.
"""

import re
from typing import Pattern

# ============================================================================
# Window Functions
# ============================================================================

WINDOW_FUNCTION_NAMES = ("row_number", "rank", "dense_rank", "ntile", "lag", "lead")

_WINDOW_NAMES_PATTERN = re.compile(r"\b(" + "|".join(WINDOW_FUNCTION_NAMES) + r")\b", re.I)

# SQL and JS: OVER(...) anywhere
OVER_CLAUSE_PATTERN = re.compile(r"\bover\s*\(", re.I)

# SQLAlchemy: func.rank().over(...)
METHOD_OVER_PATTERN = re.compile(r"\.over\s*\(", re.I)

# ============================================================================
# Aggregate Functions
# ============================================================================

AGGREGATE_FUNCTION_NAMES = ("count", "sum", "avg", "min", "max")

AGGREGATE_PATTERN = re.compile(r"\b(" + "|".join(AGGREGATE_FUNCTION_NAMES) + r")\s*\(", re.I)

# SQLAlchemy spells aggregates as func.count(...)
FUNC_AGGREGATE_PATTERN = re.compile(
    r"\b(func\.)?(" + "|".join(AGGREGATE_FUNCTION_NAMES) + r")\s*\(", re.I
)


def has_window_function(text: str, over_pattern: Pattern = OVER_CLAUSE_PATTERN) -> bool:
    """Check whether text mentions a window function anywhere"""
    return bool(over_pattern.search(text) or _WINDOW_NAMES_PATTERN.search(text))


def has_aggregate(text: str, pattern: Pattern = AGGREGATE_PATTERN) -> bool:
    """Check whether text calls an aggregate function anywhere"""
    return bool(pattern.search(text))


__all__ = [
    "WINDOW_FUNCTION_NAMES",
    "AGGREGATE_FUNCTION_NAMES",
    "OVER_CLAUSE_PATTERN",
    "METHOD_OVER_PATTERN",
    "AGGREGATE_PATTERN",
    "FUNC_AGGREGATE_PATTERN",
    "has_window_function",
    "has_aggregate",
]
