"""
Database models for the kanban ordering service.

``db`` is the Flask-SQLAlchemy handle used by the services and routes; the
models are re-exported here so callers can write ``from models import db, KanbanTask``.
"""

from flask_sqlalchemy import SQLAlchemy

from .base import Base

db = SQLAlchemy(model_class=Base)

from .kanban import KanbanColumn, KanbanTask  # noqa: E402

__all__ = ["db", "Base", "KanbanColumn", "KanbanTask"]
