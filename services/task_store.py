"""
Task Store - the persistence boundary of the ordering engine.

The engine only needs ordered reads per column, per-task and multi-row
position writes, and an all-or-nothing transaction. ``SqlTaskStore``
provides those over the Flask-SQLAlchemy session.

Concurrency: reads that feed a position computation take row locks
(``SELECT ... FOR UPDATE``) on the column and its tasks, so on PostgreSQL
two moves into the same column are serialised instead of both computing a
midpoint from the same stale neighbours. SQLite ignores the hint; it
already allows a single writer at a time.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from models import db, KanbanColumn, KanbanTask
from services.ordering_errors import (
    ColumnNotFoundError,
    TaskNotFoundError,
    TransactionFailedError,
)

logger = logging.getLogger(__name__)


class SqlTaskStore:
    """SQLAlchemy-backed task store bound to ``db.session`` by default."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # -- transaction ---------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator["SqlTaskStore"]:
        """
        Run a unit of work: commit on success, roll back on any exception.

        Database errors surface as ``TransactionFailedError``; domain errors
        are re-raised unchanged after the rollback.
        """
        try:
            yield self
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            if isinstance(e, SQLAlchemyError):
                logger.error(f"[TASK_STORE] Transaction rolled back: {e}", exc_info=True)
                raise TransactionFailedError(context={'error': str(e)}) from e
            raise

    # -- columns -------------------------------------------------------------

    def get_column(self, column_id: int) -> KanbanColumn:
        column = self.session.get(KanbanColumn, column_id)
        if column is None:
            raise ColumnNotFoundError(column_id)
        return column

    def get_column_by_name(self, name: str) -> KanbanColumn:
        column = self.session.execute(
            select(KanbanColumn).where(KanbanColumn.name == name)
        ).scalar_one_or_none()
        if column is None:
            raise ColumnNotFoundError(name)
        return column

    def list_columns(self) -> List[KanbanColumn]:
        return list(self.session.execute(
            select(KanbanColumn).order_by(KanbanColumn.position, KanbanColumn.id)
        ).scalars())

    def lock_column(self, column_id: int) -> KanbanColumn:
        """Load a column row under ``FOR UPDATE``; serialises writers per column."""
        column = self.session.execute(
            select(KanbanColumn).where(KanbanColumn.id == column_id).with_for_update()
        ).scalar_one_or_none()
        if column is None:
            raise ColumnNotFoundError(column_id)
        return column

    # -- tasks ---------------------------------------------------------------

    def get_task(self, task_id: int, lock: bool = False) -> KanbanTask:
        stmt = select(KanbanTask).where(KanbanTask.id == task_id)
        if lock:
            stmt = stmt.with_for_update()
        task = self.session.execute(stmt).scalar_one_or_none()
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def ordered_tasks(
        self,
        column_id: int,
        exclude_task_id: Optional[int] = None,
        lock: bool = True,
    ) -> List[KanbanTask]:
        """Tasks of a column in display order, ties broken by id."""
        stmt = select(KanbanTask).where(KanbanTask.column_id == column_id)
        if exclude_task_id is not None:
            stmt = stmt.where(KanbanTask.id != exclude_task_id)
        stmt = stmt.order_by(KanbanTask.position, KanbanTask.id)
        if lock:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def ordered_positions(
        self,
        column_id: int,
        exclude_task_id: Optional[int] = None,
        lock: bool = True,
    ) -> List[Tuple[int, int]]:
        return [
            (task.id, task.position)
            for task in self.ordered_tasks(column_id, exclude_task_id=exclude_task_id, lock=lock)
        ]

    def max_position(self, column_id: int) -> Optional[int]:
        return self.session.execute(
            select(func.max(KanbanTask.position)).where(KanbanTask.column_id == column_id)
        ).scalar()

    def add_task(self, task: KanbanTask) -> KanbanTask:
        self.session.add(task)
        self.session.flush()
        return task

    def delete_task(self, task: KanbanTask) -> None:
        self.session.delete(task)
        self.session.flush()

    # -- position writes -----------------------------------------------------

    def write_position(self, task: KanbanTask, position: int, column_id: Optional[int] = None) -> KanbanTask:
        if column_id is not None:
            task.column_id = column_id
        task.position = position
        self.session.flush()
        return task

    def write_positions(self, column_id: int, positions: Mapping[int, int]) -> List[KanbanTask]:
        """
        Multi-row write scoped to one column.

        Every task id must belong to ``column_id``; a single miss raises
        ``TaskNotFoundError`` before anything is flushed.
        """
        if not positions:
            return []
        tasks: Dict[int, KanbanTask] = {
            task.id: task
            for task in self.session.execute(
                select(KanbanTask)
                .where(KanbanTask.column_id == column_id, KanbanTask.id.in_(list(positions)))
                .with_for_update()
            ).scalars()
        }
        for task_id in positions:
            if task_id not in tasks:
                raise TaskNotFoundError(task_id)

        for task_id, position in positions.items():
            tasks[task_id].position = position
        self.session.flush()
        return list(tasks.values())

    def refresh(self, task: KanbanTask) -> KanbanTask:
        self.session.refresh(task)
        return task
