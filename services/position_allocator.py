"""
PositionAllocator - sparse positional indexing for kanban columns.

Pure functions: given a column's tasks as ``(task_id, position)`` pairs in
ascending position order, compute where a task should land.

Positions are spaced ``POSITION_GAP`` apart when appended, and a drop
between two neighbours takes their midpoint. Division truncates toward
zero for both signs (``truncating_div``); Python's ``//`` floors, which
differs for negative operands, so it is never used on positions directly.
"""

from typing import Optional, Sequence, Tuple, Hashable

from services.ordering_errors import GapExhaustedError, ReferenceTaskNotFoundError

POSITION_GAP = 1_000_000
BASE_POSITION = 0

# Bounds of the BigInteger position column
MIN_POSITION = -2 ** 63
MAX_POSITION = 2 ** 63 - 1

OrderedPositions = Sequence[Tuple[Hashable, int]]


def truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def midpoint(lower: int, upper: int) -> int:
    return truncating_div(lower + upper, 2)


def _checked_midpoint(lower: int, upper: int) -> int:
    candidate = midpoint(lower, upper)
    if candidate == lower or candidate == upper:
        raise GapExhaustedError(lower, upper)
    return candidate


def _index_of(ordered: OrderedPositions, task_id: Hashable) -> int:
    for index, (candidate_id, _) in enumerate(ordered):
        if candidate_id == task_id:
            return index
    raise ReferenceTaskNotFoundError(task_id)


def end_position(ordered: OrderedPositions, gap: int = POSITION_GAP) -> int:
    """Position for a task appended to the end of the column."""
    if not ordered:
        return BASE_POSITION
    return max(position for _, position in ordered) + gap


def compute_insert_position(
    ordered: OrderedPositions,
    reference_task_id: Optional[Hashable] = None,
    insert_after: bool = False,
    gap: int = POSITION_GAP,
) -> int:
    """
    Compute a new sparse position.

    Args:
        ordered: ``(task_id, position)`` pairs sorted by ascending position.
            The task being placed must not be in this list.
        reference_task_id: Anchor task; ``None`` appends to the end.
        insert_after: Place after the anchor (``True``) or before it.
        gap: Spacing used when there is no upper neighbour.

    Returns:
        The new position.

    Raises:
        ReferenceTaskNotFoundError: The anchor is not in ``ordered``.
        GapExhaustedError: The neighbours are too close to split; the column
            has to be rebalanced before the insert can be accepted.
    """
    if reference_task_id is None:
        return end_position(ordered, gap)

    index = _index_of(ordered, reference_task_id)
    reference_position = ordered[index][1]

    if insert_after:
        if index + 1 < len(ordered):
            return _checked_midpoint(reference_position, ordered[index + 1][1])
        return reference_position + gap

    if index > 0:
        return _checked_midpoint(ordered[index - 1][1], reference_position)

    # Head of the column: halve toward zero while there is room, otherwise
    # step a full gap below the first task.
    if reference_position > 0:
        return truncating_div(reference_position, 2)
    return reference_position - gap
