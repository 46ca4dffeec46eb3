"""
Root pytest configuration and fixtures for unit and integration tests.
"""
import pytest
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Test configuration
os.environ['FLASK_ENV'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing-only-0123456789'


@pytest.fixture(scope='session')
def app():
    """Create and configure a test Flask application."""
    from app import create_app

    test_app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'KANBAN_POSITION_GAP': 1_000_000,
        'KANBAN_REBALANCE_THRESHOLD': 100,
    })

    with test_app.app_context():
        yield test_app


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh schema per test."""
    from models import db

    db.create_all()
    yield db.session
    db.session.rollback()
    db.session.remove()
    db.drop_all()


@pytest.fixture(scope='function')
def columns(db_session):
    """Seed the default columns; returns ``{name: id}``."""
    from models import KanbanColumn
    from scripts.seed_kanban_columns import seed_default_columns

    seed_default_columns()
    return {column.name: column.id for column in db_session.query(KanbanColumn).all()}


@pytest.fixture(scope='function')
def engine(db_session):
    """ReorderTransaction with the default gap (1,000,000) and threshold (100)."""
    from services.reorder_transaction import ReorderTransaction

    return ReorderTransaction()


@pytest.fixture(scope='function')
def column_order(db_session):
    """Read a column back as ``[(task_id, position), ...]`` in display order."""
    from services.task_store import SqlTaskStore

    store = SqlTaskStore()

    def read(column_id):
        db_session.expire_all()
        return store.ordered_positions(column_id, lock=False)

    return read
