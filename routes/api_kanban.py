"""
Kanban API Routes
REST endpoints exposing the ordering engine: board reads, create-with-position,
move, batch reorder and delete.

Column names are resolved to ids here; the engine itself only works with ids.
"""

import logging
from flask import Blueprint, request, jsonify

from models import db
from services.ordering_errors import OrderingError, InvalidInputError, TransactionFailedError
from services.reorder_transaction import ReorderTransaction
from services.task_store import SqlTaskStore
from utils.etag_helper import with_etag, compute_ordering_etag

logger = logging.getLogger(__name__)

api_kanban_bp = Blueprint('api_kanban', __name__, url_prefix='/api/kanban')


def _error_response(error: OrderingError):
    if isinstance(error, TransactionFailedError):
        logger.error(f"[KANBAN_API] {error.message}: {error.context.get('error')}")
    return jsonify(error.to_dict()), error.status_code


def _resolve_column_id(store: SqlTaskStore, data: dict, required: bool):
    """``columnId`` wins over ``columnName``; returns None when neither is sent and not required."""
    if data.get('columnId') is not None:
        return data['columnId']
    if data.get('columnName'):
        return store.get_column_by_name(data['columnName']).id
    if required:
        raise InvalidInputError('Column name or id required')
    return None


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return data


@api_kanban_bp.route('', methods=['GET'])
@with_etag
def get_board():
    """All columns in display order, with their tasks in position order keyed by column name."""
    store = SqlTaskStore()
    columns = store.list_columns()
    tasks = {
        column.name: [task.to_dict() for task in store.ordered_tasks(column.id, lock=False)]
        for column in columns
    }
    return {
        'columns': [column.to_dict() for column in columns],
        'tasks': tasks,
    }


@api_kanban_bp.route('/columns/<int:column_id>', methods=['GET'])
@with_etag
def get_column(column_id):
    """One column with its ordered tasks; the refetch target after a rebalance."""
    store = SqlTaskStore()
    try:
        column = store.get_column(column_id)
    except OrderingError as e:
        return _error_response(e)

    tasks = store.ordered_tasks(column_id, lock=False)
    payload = {
        'column': column.to_dict(),
        'tasks': [task.to_dict() for task in tasks],
        'orderingEtag': compute_ordering_etag(column_id, [(t.id, t.position) for t in tasks]),
    }
    return payload


@api_kanban_bp.route('/tasks', methods=['POST'])
def create_task():
    """Create a task at the end of a column."""
    try:
        data = _json_body()
        if not data.get('title') or (data.get('columnId') is None and not data.get('columnName')):
            return jsonify({'success': False, 'message': 'Column name and title required'}), 400

        store = SqlTaskStore()
        column_id = _resolve_column_id(store, data, required=True)
        task = ReorderTransaction(store).create_task(
            column_id,
            data['title'],
            description=data.get('description'),
            priority=data.get('priority', 'medium'),
            assigned_to=data.get('assignedTo'),
            tags=data.get('tags'),
        )
        return jsonify(task.to_dict()), 201

    except OrderingError as e:
        db.session.rollback()
        return _error_response(e)


@api_kanban_bp.route('/tasks/<int:task_id>', methods=['PUT'])
def move_task(task_id):
    """
    Move a task.

    Body (all optional): ``columnName`` / ``columnId`` destination,
    ``targetTaskId`` + ``insertAfter`` relative placement, ``position``
    explicit fallback.
    """
    try:
        data = _json_body()
        store = SqlTaskStore()
        column_id = _resolve_column_id(store, data, required=False)
        result = ReorderTransaction(store).move_task(
            task_id,
            target_column_id=column_id,
            reference_task_id=data.get('targetTaskId'),
            insert_after=False if data.get('insertAfter') is None else data['insertAfter'],
            explicit_position=data.get('position'),
        )
        return jsonify(result.to_dict())

    except OrderingError as e:
        db.session.rollback()
        return _error_response(e)


@api_kanban_bp.route('/reorder', methods=['POST'])
def reorder_tasks():
    """
    Batch reorder tasks within a column.
    Body: ``{columnId, taskPositions: [{taskId, position}, ...]}``.
    """
    try:
        data = _json_body()
        result = ReorderTransaction().batch_reorder(data.get('columnId'), data.get('taskPositions'))
        return jsonify(result.to_dict())

    except OrderingError as e:
        db.session.rollback()
        return _error_response(e)


@api_kanban_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
def delete_task(task_id):
    try:
        ReorderTransaction().delete_task(task_id)
        return jsonify({'success': True})

    except OrderingError as e:
        db.session.rollback()
        return _error_response(e)
