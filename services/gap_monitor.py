"""
GapMonitor - decides when a column's spacing has degraded.

Evaluated only for the column a mutation touched; rebalancing is never
board-wide.
"""

from typing import Iterable, List, Optional

DEFAULT_REBALANCE_THRESHOLD = 100


def adjacent_gaps(positions: Iterable[int]) -> List[int]:
    """Deltas between consecutive positions, after sorting ascending."""
    ordered = sorted(positions)
    return [upper - lower for lower, upper in zip(ordered, ordered[1:])]


def smallest_gap(positions: Iterable[int]) -> Optional[int]:
    gaps = adjacent_gaps(positions)
    return min(gaps) if gaps else None


def needs_rebalance(positions: Iterable[int], threshold: int = DEFAULT_REBALANCE_THRESHOLD) -> bool:
    """
    True if any two adjacent positions are closer than ``threshold``.
    Duplicates count as a gap of zero.
    """
    gap = smallest_gap(positions)
    return gap is not None and gap < threshold
