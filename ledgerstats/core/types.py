"""
ledgerstats: Core Type Definitions

Common type aliases shared across the ledgerstats codebase. Kept in one
place to avoid circular imports between the chart modules.

Thread safety: Thread-safe (no mutable global state)
"""

# ============================================================================
# Imports
# ============================================================================

from __future__ import annotations

from typing import Any, Mapping, Sequence, Tuple, TypeAlias

# ============================================================================
# Type Aliases
# ============================================================================

# Positional parameters bound to a psycopg2 statement
SqlParams: TypeAlias = Tuple[Any, ...]

# A raw ``(date, value)`` row as returned by an aggregate query
RawRow: TypeAlias = Sequence[Any]

# Tags attached to a metric observation
MetricTags: TypeAlias = Mapping[str, str]

