"""
Tests for ReorderTransaction: create, move, batch reorder and delete.

Runs against the in-memory SQLite database from conftest.
"""

import random

import pytest
from sqlalchemy.exc import SQLAlchemyError

from services.ordering_errors import (
    ColumnNotFoundError,
    InvalidInputError,
    ReferenceTaskNotFoundError,
    TaskNotFoundError,
    TransactionFailedError,
)
from services.reorder_transaction import ReorderTransaction


def _ids(rows):
    return [task_id for task_id, _ in rows]


def _positions(rows):
    return [position for _, position in rows]


def _create(engine, column_id, *titles):
    return [engine.create_task(column_id, title).id for title in titles]


class TestCreateTask:

    def test_sequential_creates_in_empty_column(self, engine, columns, column_order):
        todo = columns['todo']
        ids = _create(engine, todo, 'A', 'B', 'C')

        assert column_order(todo) == list(zip(ids, [0, 1_000_000, 2_000_000]))

    def test_payload_is_stored(self, engine, columns):
        task = engine.create_task(
            columns['backlog'], '  Write docs  ',
            description='API section', priority='high', assigned_to='sam', tags=['docs'],
        )

        data = task.to_dict()
        assert data['title'] == 'Write docs'
        assert data['priority'] == 'high'
        assert data['assignedTo'] == 'sam'
        assert data['tags'] == ['docs']
        assert data['taskCode'].startswith('TASK-')

    def test_appends_after_current_max(self, engine, columns, column_order):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')
        engine.batch_reorder(todo, [{'taskId': a, 'position': 5_000_000}])

        c = engine.create_task(todo, 'C').id

        assert column_order(todo)[-1] == (c, 6_000_000)

    def test_missing_column(self, engine, db_session):
        with pytest.raises(ColumnNotFoundError):
            engine.create_task(999, 'Orphan')

    @pytest.mark.parametrize('title', ['', '   ', None])
    def test_blank_title(self, engine, columns, title):
        with pytest.raises(InvalidInputError):
            engine.create_task(columns['todo'], title)


class TestMoveRelative:

    def test_insert_after_first_takes_midpoint(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.move_task(c, reference_task_id=a, insert_after=True)

        assert result.rebalanced is False
        assert result.task.position == 500_000
        assert _ids(column_order(todo)) == [a, c, b]

    def test_second_insert_after_first_halves_again(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c, d = _create(engine, todo, 'A', 'B', 'C', 'D')
        engine.move_task(c, reference_task_id=a, insert_after=True)

        result = engine.move_task(d, reference_task_id=a, insert_after=True)

        assert result.task.position == 250_000
        assert _ids(column_order(todo)) == [a, d, c, b]

    def test_insert_before_uses_predecessor(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.move_task(a, reference_task_id=c, insert_after=False)

        assert result.task.position == 1_500_000
        assert _ids(column_order(todo)) == [b, a, c]

    def test_insert_before_head_at_zero_goes_negative(self, engine, columns, column_order):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')

        result = engine.move_task(b, reference_task_id=a, insert_after=False)

        assert result.task.position == -1_000_000
        assert _ids(column_order(todo)) == [b, a]

    def test_insert_after_last_appends_gap(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        engine.move_task(a, reference_task_id=c, insert_after=True)

        assert column_order(todo) == [(b, 1_000_000), (c, 2_000_000), (a, 3_000_000)]

    def test_repeated_halving_triggers_rebalance(self, engine, columns, column_order):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')
        movers = _create(engine, todo, *[f'N{i}' for i in range(14)])

        flags = []
        for task_id in movers:
            flags.append(engine.move_task(task_id, reference_task_id=a, insert_after=True).rebalanced)

        assert flags == [False] * 13 + [True]

        rows = column_order(todo)
        assert _ids(rows) == [a] + list(reversed(movers)) + [b]
        assert _positions(rows) == [i * 1_000_000 for i in range(16)]

    def test_rebalanced_result_carries_fresh_position(self, engine, columns):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')
        movers = _create(engine, todo, *[f'N{i}' for i in range(14)])

        for task_id in movers[:-1]:
            engine.move_task(task_id, reference_task_id=a, insert_after=True)
        result = engine.move_task(movers[-1], reference_task_id=a, insert_after=True)

        assert result.rebalanced is True
        assert result.task.position == 1_000_000
        assert result.to_dict()['rebalanced'] is True

    def test_collision_rebalances_then_recomputes(self, columns, db_session, column_order):
        todo = columns['todo']
        tolerant = ReorderTransaction(gap=1_000_000, threshold=1)
        a, b, c = _create(tolerant, todo, 'A', 'B', 'C')
        tolerant.batch_reorder(todo, [{'taskId': a, 'position': 0}, {'taskId': b, 'position': 1}])

        result = tolerant.move_task(c, reference_task_id=a, insert_after=True)

        assert result.rebalanced is True
        assert column_order(todo) == [(a, 0), (c, 500_000), (b, 1_000_000)]

    def test_reference_column_is_default_destination(self, engine, columns, column_order):
        todo, done = columns['todo'], columns['done']
        (a,) = _create(engine, todo, 'A')
        x, y = _create(engine, done, 'X', 'Y')

        engine.move_task(a, reference_task_id=x, insert_after=True)

        assert _ids(column_order(todo)) == []
        assert column_order(done) == [(x, 0), (a, 500_000), (y, 1_000_000)]

    def test_self_reference_rejected(self, engine, columns):
        (a,) = _create(engine, columns['todo'], 'A')
        with pytest.raises(InvalidInputError):
            engine.move_task(a, reference_task_id=a, insert_after=True)


class TestMovePrecedence:

    def test_reference_wins_over_explicit_position(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.move_task(c, reference_task_id=a, insert_after=True, explicit_position=42)

        assert result.task.position == 500_000

    def test_explicit_position_used_when_reference_missing(self, engine, columns, column_order):
        todo, done = columns['todo'], columns['done']
        a, b = _create(engine, todo, 'A', 'B')
        (x,) = _create(engine, done, 'X')

        result = engine.move_task(b, target_column_id=done, reference_task_id=a,
                                  insert_after=True, explicit_position=3_000_000)

        assert result.task.column_id == done
        assert column_order(done) == [(x, 0), (b, 3_000_000)]

    def test_missing_reference_without_fallback(self, engine, columns, column_order):
        todo, done = columns['todo'], columns['done']
        a, b = _create(engine, todo, 'A', 'B')

        with pytest.raises(ReferenceTaskNotFoundError):
            engine.move_task(b, target_column_id=done, reference_task_id=a, insert_after=True)

        assert column_order(todo) == [(a, 0), (b, 1_000_000)]

    def test_unknown_reference_id(self, engine, columns):
        a, b = _create(engine, columns['todo'], 'A', 'B')
        with pytest.raises(ReferenceTaskNotFoundError):
            engine.move_task(b, reference_task_id=9999, insert_after=True)

    def test_explicit_position_only(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.move_task(c, explicit_position=600_000)

        assert result.rebalanced is False
        assert _ids(column_order(todo)) == [a, c, b]

    def test_duplicate_explicit_position_forces_rebalance(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.move_task(c, explicit_position=1_000_000)

        assert result.rebalanced is True
        assert column_order(todo) == [(a, 0), (b, 1_000_000), (c, 2_000_000)]

    def test_no_placement_appends_to_current_column(self, engine, columns, column_order):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')

        engine.move_task(a)

        assert column_order(todo) == [(b, 1_000_000), (a, 2_000_000)]

    def test_cross_column_append_to_empty_column(self, engine, columns, column_order):
        todo, review = columns['todo'], columns['review']
        a, b = _create(engine, todo, 'A', 'B')

        result = engine.move_task(a, target_column_id=review)

        assert result.task.column_id == review
        assert column_order(review) == [(a, 0)]
        assert column_order(todo) == [(b, 1_000_000)]

    def test_source_column_is_not_rebalanced(self, engine, columns, column_order):
        todo, done = columns['todo'], columns['done']
        tolerant = ReorderTransaction(threshold=1)
        a, b, c = _create(tolerant, todo, 'A', 'B', 'C')
        tolerant.batch_reorder(todo, [{'taskId': a, 'position': 0}, {'taskId': b, 'position': 5}])

        engine.move_task(c, target_column_id=done)

        assert column_order(todo) == [(a, 0), (b, 5)]


class TestMoveFailures:

    def test_missing_task(self, engine, columns):
        with pytest.raises(TaskNotFoundError):
            engine.move_task(12345)

    def test_missing_column(self, engine, columns, column_order):
        todo = columns['todo']
        (a,) = _create(engine, todo, 'A')

        with pytest.raises(ColumnNotFoundError):
            engine.move_task(a, target_column_id=999)

        assert column_order(todo) == [(a, 0)]

    @pytest.mark.parametrize('kwargs', [
        {'target_column_id': 'todo'},
        {'reference_task_id': '1'},
        {'explicit_position': 1.5},
        {'explicit_position': True},
        {'explicit_position': 2 ** 63},
        {'explicit_position': -2 ** 63 - 1},
        {'reference_task_id': 999, 'insert_after': 'false'},
        {'insert_after': 1},
    ])
    def test_invalid_input_never_opens_transaction(self, engine, columns, mocker, kwargs):
        (a,) = _create(engine, columns['todo'], 'A')
        spy = mocker.spy(engine.store, 'transaction')

        with pytest.raises(InvalidInputError):
            engine.move_task(a, **kwargs)

        spy.assert_not_called()

    def test_unsplittable_column_fails_with_generic_message(self, columns, db_session, column_order):
        todo = columns['todo']
        cramped = ReorderTransaction(gap=1, threshold=1)
        a, b, c = _create(cramped, todo, 'A', 'B', 'C')

        with pytest.raises(TransactionFailedError) as exc_info:
            cramped.move_task(c, reference_task_id=a, insert_after=True)

        assert exc_info.value.to_dict() == {'success': False, 'message': 'Failed to reorder tasks'}
        assert column_order(todo) == [(a, 0), (b, 1), (c, 2)]


class TestBatchReorder:

    def test_reverse_order(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.batch_reorder(todo, [
            {'taskId': a, 'position': 2_000_000},
            {'taskId': b, 'position': 1_000_000},
            {'taskId': c, 'position': 0},
        ])

        assert result.success is True
        assert result.rebalanced is False
        assert result.updated_task_ids == [a, b, c]
        assert _ids(column_order(todo)) == [c, b, a]

    def test_tight_spacing_rebalances_once(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        result = engine.batch_reorder(todo, [
            {'taskId': c, 'position': 0},
            {'taskId': a, 'position': 50},
            {'taskId': b, 'position': 1_000_000},
        ])

        assert result.rebalanced is True
        assert column_order(todo) == [(c, 0), (a, 1_000_000), (b, 2_000_000)]
        assert result.to_dict() == {'success': True, 'rebalanced': True, 'updatedTaskIds': [c, a, b]}

    def test_snake_case_task_id_accepted(self, engine, columns, column_order):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')

        engine.batch_reorder(todo, [{'task_id': a, 'position': 3_000_000}])

        assert _ids(column_order(todo)) == [b, a]

    def test_task_from_other_column_rolls_back_everything(self, engine, columns, column_order):
        todo, done = columns['todo'], columns['done']
        a, b = _create(engine, todo, 'A', 'B')
        (x,) = _create(engine, done, 'X')

        with pytest.raises(TaskNotFoundError):
            engine.batch_reorder(todo, [
                {'taskId': a, 'position': 9_000_000},
                {'taskId': x, 'position': 5},
            ])

        assert column_order(todo) == [(a, 0), (b, 1_000_000)]
        assert column_order(done) == [(x, 0)]

    def test_store_failure_rolls_back(self, engine, columns, column_order, mocker):
        todo = columns['todo']
        a, b = _create(engine, todo, 'A', 'B')
        mocker.patch('services.reorder_transaction.rebalance_column',
                     side_effect=SQLAlchemyError('disk I/O error'))

        with pytest.raises(TransactionFailedError) as exc_info:
            engine.batch_reorder(todo, [
                {'taskId': a, 'position': 0},
                {'taskId': b, 'position': 10},
            ])

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == 'Failed to reorder tasks'
        assert column_order(todo) == [(a, 0), (b, 1_000_000)]

    def test_missing_column(self, engine, columns):
        with pytest.raises(ColumnNotFoundError):
            engine.batch_reorder(999, [{'taskId': 1, 'position': 0}])

    @pytest.mark.parametrize('task_positions', [
        None,
        [],
        'not-a-list',
        [{'taskId': 1}],
        [{'position': 5}],
        [{'taskId': 1, 'position': '5'}],
        [{'taskId': 1, 'position': False}],
        [{'taskId': 1, 'position': 2 ** 70}],
        [{'taskId': 1, 'position': 0}, {'taskId': 1, 'position': 10}],
        ['entry'],
    ])
    def test_invalid_input_never_opens_transaction(self, engine, columns, mocker, task_positions):
        spy = mocker.spy(engine.store, 'transaction')

        with pytest.raises(InvalidInputError):
            engine.batch_reorder(columns['todo'], task_positions)

        spy.assert_not_called()

    def test_missing_column_id_is_invalid(self, engine, columns):
        with pytest.raises(InvalidInputError):
            engine.batch_reorder(None, [{'taskId': 1, 'position': 0}])


class TestDeleteTask:

    def test_remaining_order_untouched(self, engine, columns, column_order):
        todo = columns['todo']
        a, b, c = _create(engine, todo, 'A', 'B', 'C')

        engine.delete_task(b)

        assert column_order(todo) == [(a, 0), (c, 2_000_000)]

    def test_missing_task(self, engine, columns):
        with pytest.raises(TaskNotFoundError):
            engine.delete_task(4242)


class TestConfiguration:

    def test_reads_app_config(self, app, db_session):
        engine = ReorderTransaction()
        assert engine.gap == app.config['KANBAN_POSITION_GAP']
        assert engine.threshold == app.config['KANBAN_REBALANCE_THRESHOLD']

    def test_explicit_arguments_win(self, db_session):
        engine = ReorderTransaction(gap=1000, threshold=10)
        assert (engine.gap, engine.threshold) == (1000, 10)


@pytest.mark.parametrize('gap,threshold', [(1_000_000, 100), (1000, 10)])
def test_random_moves_match_shadow_order(columns, column_order, gap, threshold):
    """Any sequence of relative moves leaves the column in the order the moves describe."""
    todo = columns['todo']
    engine = ReorderTransaction(gap=gap, threshold=threshold)
    shadow = _create(engine, todo, *[f'T{i}' for i in range(8)])
    rng = random.Random(gap + threshold)

    for _ in range(120):
        task_id = rng.choice(shadow)
        shadow.remove(task_id)

        if rng.random() < 0.1:
            engine.move_task(task_id)
            shadow.append(task_id)
        else:
            reference = rng.choice(shadow)
            after = rng.random() < 0.5
            engine.move_task(task_id, reference_task_id=reference, insert_after=after)
            index = shadow.index(reference)
            shadow.insert(index + 1 if after else index, task_id)

        rows = column_order(todo)
        assert _ids(rows) == shadow
        assert len(set(_positions(rows))) == len(rows)
