"""
Rebalancer - rewrites one column to evenly spaced positions.

Runs inside the caller's transaction so a partial renumbering can never be
committed. Relative order is preserved: tasks are renumbered in
``(position, id)`` order to ``0, gap, 2*gap, ...``.
"""

import logging

from services.position_allocator import POSITION_GAP, BASE_POSITION

logger = logging.getLogger(__name__)


def rebalance_column(store, column_id: int, gap: int = POSITION_GAP) -> int:
    """
    Renumber every task in ``column_id``.

    Rows that already sit on their target position are not rewritten, so a
    uniformly spaced column is left untouched.

    Returns:
        int: Number of tasks whose position changed.
    """
    tasks = store.ordered_tasks(column_id)
    changes = {}
    for index, task in enumerate(tasks):
        target = BASE_POSITION + index * gap
        if task.position != target:
            changes[task.id] = target

    if changes:
        store.write_positions(column_id, changes)

    logger.info(
        f"[REBALANCE] Column {column_id}: {len(tasks)} tasks, {len(changes)} positions rewritten"
    )
    return len(changes)
