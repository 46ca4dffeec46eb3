"""Create kanban columns and tasks tables

Revision ID: 20260301_kanban_tables
Revises:
Create Date: 2026-03-01

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260301_kanban_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'kanban_columns',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=False),
        sa.Column('color', sa.String(20), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_kanban_columns_name', 'kanban_columns', ['name'], unique=True)

    op.create_table(
        'kanban_tasks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('task_code', sa.String(20), nullable=False, unique=True),
        sa.Column('column_id', sa.Integer(),
                  sa.ForeignKey('kanban_columns.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('priority', sa.String(20), server_default='medium'),
        sa.Column('assigned_to', sa.String(50), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        # 64-bit: repeated halving from a 1,000,000 gap must not overflow
        sa.Column('position', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_kanban_tasks_column_id', 'kanban_tasks', ['column_id'])
    op.create_index('ix_kanban_tasks_column_position', 'kanban_tasks', ['column_id', 'position'])


def downgrade():
    op.drop_index('ix_kanban_tasks_column_position', table_name='kanban_tasks')
    op.drop_index('ix_kanban_tasks_column_id', table_name='kanban_tasks')
    op.drop_table('kanban_tasks')
    op.drop_index('ix_kanban_columns_name', table_name='kanban_columns')
    op.drop_table('kanban_columns')
