"""Tests for the persisted classification workflow."""

from datetime import date
from unittest.mock import patch

from app.models.entities import ClassificationEdit, TargetSection, TargetType
from app.services import record_store
from app.services.record_store import StoreError
from app.services.tagging import classify_batch, reset_rules

TODAY = date(2026, 2, 20)


def add_statement(store, statement_id, description, amount, day='2026-02-03', goal_id=None):
    return store.create(record_store.STATEMENTS, {
        'id': statement_id,
        'date': day,
        'description': description,
        'amount': amount,
        'goal_id': goal_id
    })


def bill_edit(statement_id, name='Walmart', target_type=TargetType.BILL,
              section=TargetSection.CHECKING_ACCOUNT, goal_id=None, pattern=None):
    return ClassificationEdit(statement_id, target_type, section, name, goal_id, pattern)


def rules_by_pattern(store):
    return {r['pattern']: r for r in store.fetch_all(record_store.CLASSIFICATION_RULES)}


class TestClassifyBatch:
    """Tests for saving classifications."""

    def test_creates_rule_and_obligation(self, store):
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')

        result = classify_batch(store, [bill_edit('s1')], TODAY)

        assert (result.succeeded, result.failed) == (1, 0)
        assert result.rules_created == 1
        assert result.obligations_created == 1

        rule = rules_by_pattern(store)['WALMART']
        assert rule['target_type'] == 'bill'
        assert rule['target_section'] == 'checking_account'
        assert rule['target_name'] == 'Walmart'
        assert rule['normalized_description'] == 'Groceries & Gas'
        assert (rule['use_count'], rule['override_count']) == (1, 0)

        [bill] = store.fetch_all(record_store.BILLS)
        assert bill['name'] == 'Walmart'
        assert bill['frequency'] == 'monthly'
        assert bill['next_due'] == '2026-02-20'
        assert bill['amount'] == '52.10'
        assert bill['account'] == 'checking_account'
        assert bill['list_type'] == 'bills'

    def test_same_target_counts_use(self, store):
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')
        add_statement(store, 's2', 'WALMART.COM 8009256278', '-18.75')

        classify_batch(store, [bill_edit('s1')], TODAY)
        result = classify_batch(store, [bill_edit('s2')], TODAY)

        assert result.rules_updated == 1
        assert result.obligations_created == 0
        rule = rules_by_pattern(store)['WALMART']
        assert (rule['use_count'], rule['override_count']) == (2, 0)
        assert len(store.fetch_all(record_store.BILLS)) == 1

    def test_different_target_counts_override(self, store):
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')
        add_statement(store, 's2', 'WAL-MART #99 PROVO UT', '-40.00')

        classify_batch(store, [bill_edit('s1')], TODAY)
        classify_batch(store, [bill_edit('s2', name='Groceries', target_type=TargetType.VARIABLE_EXPENSE, section=None)], TODAY)

        rule = rules_by_pattern(store)['WALMART']
        assert (rule['use_count'], rule['override_count']) == (1, 1)
        assert rule['target_type'] == 'variable_expense'
        assert rule['target_name'] == 'Groceries'

    def test_explicit_pattern_uppercased(self, store):
        add_statement(store, 's1', 'Corner Bakery 991', '-8.00')
        classify_batch(store, [bill_edit('s1', name='Bakery', pattern='corner bakery')], TODAY)
        assert 'CORNER BAKERY' in rules_by_pattern(store)

    def test_rental_target_forces_rental_account(self, store):
        add_statement(store, 's1', 'RIDGE HOA DUES', '-150.00')
        classify_batch(store, [bill_edit('s1', name='HOA', target_type=TargetType.SPANISH_FORK, section=None)], TODAY)

        [bill] = store.fetch_all(record_store.BILLS)
        assert bill['account'] == 'spanish_fork'
        assert rules_by_pattern(store)['RIDGE HOA DUES']['target_section'] == 'spanish_fork'

    def test_subscription_list(self, store):
        add_statement(store, 's1', 'Netflix.com 866-579-7172 CA', '-15.49')
        classify_batch(store, [bill_edit('s1', name='Netflix', target_type=TargetType.SUBSCRIPTION)], TODAY)
        [bill] = store.fetch_all(record_store.BILLS)
        assert bill['list_type'] == 'subscriptions'

    def test_goal_amounts_recalculated(self, store):
        store.create(record_store.GOALS, {'id': 'g1', 'name': 'Vacation', 'current_amount': '0'})
        add_statement(store, 's1', 'DELTA AIR 0062', '-300.00')
        add_statement(store, 's2', 'MARRIOTT HOTEL 55', '-200.50')

        result = classify_batch(store, [
            bill_edit('s1', name='Flights', target_type=TargetType.VARIABLE_EXPENSE, section=None, goal_id='g1'),
            bill_edit('s2', name='Hotel', target_type=TargetType.VARIABLE_EXPENSE, section=None, goal_id='g1'),
        ], TODAY)

        assert result.goals_updated == 1
        assert store.get(record_store.GOALS, 'g1')['current_amount'] == '500.50'
        assert store.get(record_store.STATEMENTS, 's1')['goal_id'] == 'g1'

    def test_unlinking_recalculates_previous_goal(self, store):
        store.create(record_store.GOALS, {'id': 'g1', 'name': 'Vacation', 'current_amount': '500.50'})
        add_statement(store, 's1', 'DELTA AIR 0062', '-300.00', goal_id='g1')
        add_statement(store, 's2', 'MARRIOTT HOTEL 55', '-200.50', goal_id='g1')

        classify_batch(store, [
            bill_edit('s1', name='Flights', target_type=TargetType.VARIABLE_EXPENSE, section=None),
        ], TODAY)

        assert store.get(record_store.STATEMENTS, 's1')['goal_id'] is None
        assert store.get(record_store.GOALS, 'g1')['current_amount'] == '200.50'

    def test_partial_success(self, store):
        """One bad item never fails the batch."""
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')
        add_statement(store, 's3', '', '-5.00')

        result = classify_batch(store, [
            bill_edit('missing'),
            bill_edit('s1'),
            bill_edit('s3'),
            bill_edit(''),
        ], TODAY)

        assert (result.succeeded, result.failed) == (1, 3)
        failures = {f.index: f for f in result.failures}
        assert failures[0].operation == 'get'
        assert failures[0].record_id == 'missing'
        assert failures[2].operation == 'validate'
        assert failures[3].operation == 'validate'

    def test_store_down_fails_every_item(self, store):
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')
        error = StoreError('fetch', record_store.BILLS, None, 'unavailable')

        with patch.object(store, 'fetch_all', side_effect=error):
            result = classify_batch(store, [bill_edit('s1'), bill_edit('s2')], TODAY)

        assert (result.succeeded, result.failed) == (0, 2)
        assert [f.collection for f in result.failures] == [record_store.BILLS, record_store.BILLS]
        assert rules_by_pattern(store) == {}

    def test_missing_goal_reported(self, store):
        add_statement(store, 's1', 'DELTA AIR 0062', '-300.00')

        result = classify_batch(store, [
            bill_edit('s1', name='Flights', target_type=TargetType.VARIABLE_EXPENSE, section=None, goal_id='gone'),
        ], TODAY)

        assert result.succeeded == 1
        assert result.goals_updated == 0
        [failure] = result.failures
        assert failure.index is None
        assert failure.collection == record_store.GOALS
        assert failure.record_id == 'gone'


class TestResetRules:
    """Tests for deleting all rules."""

    def test_reset(self, store):
        add_statement(store, 's1', 'WAL-MART #1234 OREM UT', '-52.10')
        classify_batch(store, [bill_edit('s1')], TODAY)

        assert reset_rules(store) == 1
        assert rules_by_pattern(store) == {}
        assert len(store.fetch_all(record_store.BILLS)) == 1
