"""
Kanban Models - columns and the tasks ordered inside them.

SQLAlchemy 2.0 typed models. ``KanbanTask.position`` is a sparse sort key:
tasks in a column are displayed by ascending ``(position, id)``.
"""

import uuid
from typing import Optional, List
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, BigInteger, DateTime, Text, ForeignKey, func, JSON, Index
from models import db


def generate_task_code() -> str:
    """Short human-facing identifier, e.g. ``TASK-3FA9C1``."""
    return f"TASK-{uuid.uuid4().hex[:6].upper()}"


class KanbanColumn(db.Model):
    """
    A board column. Static reference data for the ordering engine:
    columns are seeded, never created or deleted by a move.
    """
    __tablename__ = "kanban_columns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20))

    # Display ordinal among columns; unrelated to task positions
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    tasks: Mapped[List["KanbanTask"]] = relationship(
        back_populates="column",
        order_by=lambda: [KanbanTask.position, KanbanTask.id],
    )

    def __repr__(self):
        return f'<KanbanColumn {self.id}: {self.name}>'

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'displayName': self.display_name,
            'color': self.color,
            'position': self.position,
        }


class KanbanTask(db.Model):
    """
    A card on the board. Everything except ``column_id`` and ``position`` is
    opaque payload as far as ordering is concerned.
    """
    __tablename__ = "kanban_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, default=generate_task_code)

    column_id: Mapped[int] = mapped_column(
        ForeignKey("kanban_columns.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    column: Mapped["KanbanColumn"] = relationship(back_populates="tasks")

    # Payload
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(20), default="medium")  # low, medium, high
    assigned_to: Mapped[Optional[str]] = mapped_column(String(50))
    tags: Mapped[Optional[list]] = mapped_column(JSON)

    # Sparse sort key, only written by ReorderTransaction and the rebalancer
    position: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index('ix_kanban_tasks_column_position', 'column_id', 'position'),
    )

    def __repr__(self):
        return f'<KanbanTask {self.id}: {self.title} @{self.position}>'

    def to_dict(self):
        return {
            'id': self.id,
            'taskCode': self.task_code,
            'columnId': self.column_id,
            'title': self.title,
            'description': self.description or '',
            'priority': self.priority,
            'assignedTo': self.assigned_to,
            'tags': self.tags or [],
            'position': self.position,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
