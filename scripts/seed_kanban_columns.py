#!/usr/bin/env python3
"""
Seed the default kanban columns.
Idempotent: existing columns (matched by name) are left untouched.
"""

import argparse
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from models import db, KanbanColumn

DEFAULT_COLUMNS = [
    {'name': 'backlog', 'display_name': 'Backlog', 'color': '#6b7280', 'position': 0},
    {'name': 'todo', 'display_name': 'To Do', 'color': '#3b82f6', 'position': 1},
    {'name': 'inProgress', 'display_name': 'In Progress', 'color': '#f59e0b', 'position': 2},
    {'name': 'review', 'display_name': 'Review', 'color': '#8b5cf6', 'position': 3},
    {'name': 'done', 'display_name': 'Done', 'color': '#10b981', 'position': 4},
]


def seed_default_columns(columns=None):
    """
    Insert any missing default columns in the current app context.

    Returns:
        list: Names of the columns that were created
    """
    columns = columns if columns is not None else DEFAULT_COLUMNS
    existing = set(db.session.execute(select(KanbanColumn.name)).scalars())

    created = []
    for column in columns:
        if column['name'] in existing:
            continue
        db.session.add(KanbanColumn(**column))
        created.append(column['name'])

    db.session.commit()
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--create-schema', action='store_true',
                        help='Create missing tables before seeding (development databases only)')
    args = parser.parse_args(argv)

    from app import create_app

    app = create_app()
    with app.app_context():
        if args.create_schema:
            db.create_all()
        created = seed_default_columns()

    if created:
        print(f"✅ Created columns: {', '.join(created)}")
    else:
        print("✅ All default columns already exist")
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except Exception as e:
        print(f"❌ Error seeding columns: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
