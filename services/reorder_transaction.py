"""
ReorderTransaction - the atomic unit of work of the ordering engine.

Every entry point runs one store transaction: position writes, the gap
check and, when needed, the column rebalance either all commit or all roll
back. Responses report ``rebalanced`` because a rebalance moves tasks the
caller did not touch; clients must refetch the column when it is true.

Entry points:
- ``create_task``: append a new task to a column.
- ``move_task``: single move, relative to a reference task or to an
  explicit position, within or across columns.
- ``batch_reorder``: apply many ``{taskId, position}`` writes to one column.
- ``delete_task``: remove a task; the remaining order needs no rewrite.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from flask import current_app, has_app_context

from models import KanbanTask
from services.column_rebalancer import rebalance_column
from services.gap_monitor import DEFAULT_REBALANCE_THRESHOLD, needs_rebalance
from services.ordering_errors import (
    GapExhaustedError,
    InvalidInputError,
    ReferenceTaskNotFoundError,
    TaskNotFoundError,
)
from services.position_allocator import MAX_POSITION, MIN_POSITION, POSITION_GAP, compute_insert_position
from services.task_store import SqlTaskStore

logger = logging.getLogger(__name__)


@dataclass
class MoveResult:
    """Outcome of a single move."""
    task: KanbanTask
    rebalanced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = self.task.to_dict()
        data['rebalanced'] = self.rebalanced
        return data


@dataclass
class ReorderResult:
    """Outcome of a batch reorder."""
    success: bool
    rebalanced: bool = False
    updated_task_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'rebalanced': self.rebalanced,
            'updatedTaskIds': self.updated_task_ids,
        }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_int(value: Any, name: str) -> int:
    if not _is_int(value):
        raise InvalidInputError(f'{name} must be an integer', {name: value})
    return value


def _require_position(value: Any, name: str = 'position') -> int:
    """Integer that fits the signed 64-bit ``position`` column."""
    _require_int(value, name)
    if not MIN_POSITION <= value <= MAX_POSITION:
        raise InvalidInputError(f'{name} is out of range', {name: value})
    return value


def _require_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidInputError(f'{name} must be a boolean', {name: value})
    return value


def _config_int(key: str, default: int) -> int:
    if has_app_context():
        return int(current_app.config.get(key, default))
    return default


class ReorderTransaction:
    """
    Orchestrates PositionAllocator, GapMonitor and the rebalancer against a
    task store. Stateless between calls; safe to build one per request.
    """

    def __init__(self, store: Optional[SqlTaskStore] = None, gap: Optional[int] = None,
                 threshold: Optional[int] = None):
        self.store = store or SqlTaskStore()
        self.gap = gap if gap is not None else _config_int('KANBAN_POSITION_GAP', POSITION_GAP)
        self.threshold = threshold if threshold is not None else _config_int(
            'KANBAN_REBALANCE_THRESHOLD', DEFAULT_REBALANCE_THRESHOLD
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_task(self, column_id: int, title: str, description: Optional[str] = None,
                    priority: str = 'medium', assigned_to: Optional[str] = None,
                    tags: Optional[list] = None) -> KanbanTask:
        """Create a task at the end of ``column_id`` (``max + gap``, or the base position if empty)."""
        _require_int(column_id, 'columnId')
        if not isinstance(title, str) or not title.strip():
            raise InvalidInputError('Title is required')

        with self.store.transaction() as store:
            store.lock_column(column_id)
            position = compute_insert_position(store.ordered_positions(column_id), gap=self.gap)
            task = KanbanTask(
                column_id=column_id,
                title=title.strip(),
                description=description.strip() if description else None,
                priority=priority or 'medium',
                assigned_to=assigned_to,
                tags=list(tags or []),
                position=position,
            )
            store.add_task(task)

        logger.info(f"[CREATE] Task {task.id} added to column {column_id} at position {position}")
        return task

    # ------------------------------------------------------------------
    # Single move
    # ------------------------------------------------------------------

    def move_task(self, task_id: int, target_column_id: Optional[int] = None,
                  reference_task_id: Optional[int] = None, insert_after: bool = False,
                  explicit_position: Optional[int] = None) -> MoveResult:
        """
        Move one task.

        The destination column is ``target_column_id`` if given, else the
        reference task's column, else the task's current column. With a
        reference task the position is computed relative to it; the explicit
        position is only a fallback for when that computation cannot be done
        (reference missing from the destination column). With neither, the
        task is appended to the end of the destination column.

        Only the destination column is checked for rebalancing.
        """
        _require_int(task_id, 'taskId')
        if target_column_id is not None:
            _require_int(target_column_id, 'columnId')
        if reference_task_id is not None:
            _require_int(reference_task_id, 'targetTaskId')
            if reference_task_id == task_id:
                raise InvalidInputError('A task cannot be positioned relative to itself')
        if explicit_position is not None:
            _require_position(explicit_position)
        _require_bool(insert_after, 'insertAfter')

        with self.store.transaction() as store:
            task = store.get_task(task_id, lock=True)
            source_column_id = task.column_id

            if target_column_id is None:
                target_column_id = self._default_target_column(task, reference_task_id)
            store.lock_column(target_column_id)

            rebalanced = False
            position = None
            if reference_task_id is not None:
                try:
                    position, rebalanced = self._relative_position(
                        target_column_id, task_id, reference_task_id, insert_after
                    )
                except ReferenceTaskNotFoundError:
                    if explicit_position is None:
                        raise
                    logger.warning(
                        f"[MOVE] Reference task {reference_task_id} not in column {target_column_id}; "
                        f"falling back to explicit position {explicit_position}"
                    )

            if position is None:
                if explicit_position is not None:
                    position = explicit_position
                else:
                    position = compute_insert_position(
                        store.ordered_positions(target_column_id, exclude_task_id=task_id),
                        gap=self.gap,
                    )

            store.write_position(task, position, column_id=target_column_id)

            if self._rebalance_if_needed(target_column_id):
                rebalanced = True
            if rebalanced:
                store.refresh(task)

        logger.info(
            f"[MOVE] Task {task_id}: column {source_column_id} -> {target_column_id}, "
            f"position {task.position}, rebalanced={rebalanced}"
        )
        return MoveResult(task=task, rebalanced=rebalanced)

    def _default_target_column(self, task: KanbanTask, reference_task_id: Optional[int]) -> int:
        if reference_task_id is not None:
            try:
                return self.store.get_task(reference_task_id).column_id
            except TaskNotFoundError:
                pass
        return task.column_id

    def _relative_position(self, column_id: int, task_id: int, reference_task_id: int,
                           insert_after: bool):
        """Returns ``(position, rebalanced)``; rebalances first if the gap is exhausted."""
        ordered = self.store.ordered_positions(column_id, exclude_task_id=task_id)
        try:
            return compute_insert_position(ordered, reference_task_id, insert_after, self.gap), False
        except GapExhaustedError as e:
            logger.info(
                f"[MOVE] No room between {e.lower} and {e.upper} in column {column_id}; rebalancing first"
            )

        rebalance_column(self.store, column_id, self.gap)
        ordered = self.store.ordered_positions(column_id, exclude_task_id=task_id)
        return compute_insert_position(ordered, reference_task_id, insert_after, self.gap), True

    # ------------------------------------------------------------------
    # Batch reorder
    # ------------------------------------------------------------------

    def batch_reorder(self, column_id: int, task_positions: Sequence[Mapping[str, Any]]) -> ReorderResult:
        """
        Apply ``[{taskId, position}, ...]`` to one column as a single transaction,
        then run the gap check once for the whole batch.

        Any task outside the column, or any store failure, aborts the batch
        with no position changed.
        """
        if column_id is None:
            raise InvalidInputError('columnId and taskPositions array required')
        _require_int(column_id, 'columnId')
        positions = self._parse_task_positions(task_positions)

        with self.store.transaction() as store:
            store.lock_column(column_id)
            store.write_positions(column_id, positions)
            rebalanced = self._rebalance_if_needed(column_id)

        logger.info(
            f"[REORDER] Updated positions for {len(positions)} tasks in column {column_id}, "
            f"rebalanced={rebalanced}"
        )
        return ReorderResult(success=True, rebalanced=rebalanced, updated_task_ids=list(positions))

    @staticmethod
    def _parse_task_positions(task_positions: Any) -> Dict[int, int]:
        if not isinstance(task_positions, (list, tuple)) or not task_positions:
            raise InvalidInputError('columnId and taskPositions array required')

        positions: Dict[int, int] = {}
        for entry in task_positions:
            if not isinstance(entry, Mapping):
                raise InvalidInputError('Each taskPositions entry must be an object')
            task_id = entry.get('taskId', entry.get('task_id'))
            position = entry.get('position')
            _require_int(task_id, 'taskId')
            _require_position(position)
            if task_id in positions:
                raise InvalidInputError(f'Task {task_id} appears more than once', {'taskId': task_id})
            positions[task_id] = position
        return positions

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_task(self, task_id: int) -> None:
        _require_int(task_id, 'taskId')
        with self.store.transaction() as store:
            task = store.get_task(task_id, lock=True)
            column_id = task.column_id
            store.delete_task(task)
        logger.info(f"[DELETE] Task {task_id} removed from column {column_id}")

    # ------------------------------------------------------------------

    def _rebalance_if_needed(self, column_id: int) -> bool:
        positions = [position for _, position in self.store.ordered_positions(column_id)]
        if not needs_rebalance(positions, self.threshold):
            return False
        rebalance_column(self.store, column_id, self.gap)
        return True
