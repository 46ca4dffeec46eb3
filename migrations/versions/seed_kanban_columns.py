"""Seed default kanban columns

Revision ID: 20260301_seed_columns
Revises: 20260301_kanban_tables
Create Date: 2026-03-01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260301_seed_columns'
down_revision = '20260301_kanban_tables'
branch_labels = None
depends_on = None

DEFAULT_COLUMNS = [
    ('backlog', 'Backlog', '#6b7280', 0),
    ('todo', 'To Do', '#3b82f6', 1),
    ('inProgress', 'In Progress', '#f59e0b', 2),
    ('review', 'Review', '#8b5cf6', 3),
    ('done', 'Done', '#10b981', 4),
]


def upgrade():
    # Skip columns that already exist so re-running against a seeded database is harmless
    conn = op.get_bind()
    existing = {row[0] for row in conn.execute(sa.text("SELECT name FROM kanban_columns"))}

    for name, display_name, color, position in DEFAULT_COLUMNS:
        if name in existing:
            continue
        conn.execute(
            sa.text(
                "INSERT INTO kanban_columns (name, display_name, color, position) "
                "VALUES (:name, :display_name, :color, :position)"
            ),
            {'name': name, 'display_name': display_name, 'color': color, 'position': position}
        )


def downgrade():
    conn = op.get_bind()
    conn.execute(
        sa.text("DELETE FROM kanban_columns WHERE name IN :names").bindparams(
            sa.bindparam('names', expanding=True)
        ),
        {'names': [name for name, _, _, _ in DEFAULT_COLUMNS]}
    )
