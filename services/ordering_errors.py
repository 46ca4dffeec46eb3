"""
Ordering Engine Errors

Exceptions raised by the ordering engine. Each carries the HTTP status the
route layer answers with, so the blueprint can map failures without
inspecting messages.
"""

from typing import Optional, Dict, Any


class OrderingError(Exception):
    """Base exception for ordering engine failures."""
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': False,
            'message': self.message,
        }


class InvalidInputError(OrderingError):
    """Malformed request, rejected before the store is touched."""
    status_code = 400


class NotFoundError(OrderingError):
    status_code = 404


class ColumnNotFoundError(NotFoundError):
    def __init__(self, column_ref: Any):
        super().__init__('Column not found', {'column': column_ref})


class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: Any):
        super().__init__('Task not found', {'task_id': task_id})


class ReferenceTaskNotFoundError(NotFoundError):
    """The anchor task of a before/after move is not in the destination column."""

    def __init__(self, task_id: Any):
        super().__init__('Reference task not found', {'reference_task_id': task_id})


class TransactionFailedError(OrderingError):
    """
    The store rejected the unit of work and everything was rolled back.
    The caller should refetch and retry; nothing was partially applied.
    """
    status_code = 500

    def __init__(self, message: str = 'Failed to reorder tasks', context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)


class GapExhaustedError(TransactionFailedError):
    """
    A computed midpoint collides with a neighbour. Internal signal: the
    transaction rebalances the column and recomputes instead of writing a
    duplicate position. If it still escapes, clients only see the generic
    transaction failure.
    """

    def __init__(self, lower: int, upper: int):
        super().__init__(context={
            'error': f'No room between positions {lower} and {upper}',
            'lower': lower,
            'upper': upper,
        })
        self.lower = lower
        self.upper = upper
