"""Tests for the SQLite record store."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError, EndpointConnectionError

from app.models.entities import ClassificationEdit, TargetSection, TargetType
from app.services import record_store
from app.services.record_store import RecordStore, StoreError, build_order, build_where
from app.services.tagging import classify_batch


def client_error(code='500'):
    return ClientError({'Error': {'Code': code, 'Message': 'boom'}}, 'HeadObject')


class TestBuildWhere:
    """Tests for filter translation."""

    def test_empty(self):
        assert build_where(None) == ('', [])

    def test_operators(self):
        sql, params = build_where({'goal_id': 'g1', 'date__gte': '2026-02-01'})
        assert sql == " AND json_extract(data, '$.goal_id') = ? AND json_extract(data, '$.date') >= ?"
        assert params == ['g1', '2026-02-01']

    def test_null(self):
        sql, params = build_where({'goal_id': None, 'next_due__ne': None})
        assert sql == " AND json_extract(data, '$.goal_id') IS NULL AND json_extract(data, '$.next_due') IS NOT NULL"
        assert params == []

    def test_values_converted(self):
        _, params = build_where({'paid': True, 'amount': Decimal('1.50')})
        assert params == [1, '1.50']

    @pytest.mark.parametrize('key', ["name'); DROP TABLE records; --", 'date__between', '1bad'])
    def test_invalid_keys_rejected(self, key):
        with pytest.raises(ValueError):
            build_where({key: 'x'})

    def test_null_range_rejected(self):
        with pytest.raises(ValueError):
            build_where({'date__gt': None})

    def test_order(self):
        assert build_order('-date') == " ORDER BY json_extract(data, '$.date') DESC, created_at, rowid"
        with pytest.raises(ValueError):
            build_order('-da te')


class TestRecordStore:
    """Tests for CRUD operations."""

    def test_create_and_get(self, store):
        record = store.create(record_store.GOALS, {'name': 'Vacation', 'current_amount': Decimal('10.50')})

        assert len(record['id']) == 15
        assert record['name'] == 'Vacation'
        assert record['current_amount'] == '10.50'
        assert store.get(record_store.GOALS, record['id']) == record

    def test_create_with_id(self, store):
        record = store.create(record_store.GOALS, {'id': 'g1', 'name': 'Vacation'})
        assert record['id'] == 'g1'

    def test_get_missing(self, store):
        assert store.get(record_store.GOALS, 'nope') is None

    def test_collections_isolated(self, store):
        store.create(record_store.GOALS, {'id': 'x', 'name': 'Goal'})
        assert store.get(record_store.BILLS, 'x') is None

    def test_fetch_filters_and_sort(self, store):
        store.create(record_store.STATEMENTS, {'date': '2026-02-10', 'goal_id': 'g1'})
        store.create(record_store.STATEMENTS, {'date': '2026-01-10', 'goal_id': 'g1'})
        store.create(record_store.STATEMENTS, {'date': '2026-02-01', 'goal_id': None})

        dates = [r['date'] for r in store.fetch(record_store.STATEMENTS, {'goal_id': 'g1'}, sort='date')]
        assert dates == ['2026-01-10', '2026-02-10']

        recent = store.fetch(record_store.STATEMENTS, {'date__gte': '2026-02-01'}, sort='-date')
        assert [r['date'] for r in recent] == ['2026-02-10', '2026-02-01']

        unlinked = store.fetch(record_store.STATEMENTS, {'goal_id': None})
        assert [r['date'] for r in unlinked] == ['2026-02-01']

    def test_paging(self, store):
        for i in range(5):
            store.create(record_store.STATEMENTS, {'n': i})

        page_two = store.fetch(record_store.STATEMENTS, page_size=2, page=2)
        assert [r['n'] for r in page_two] == [2, 3]
        assert [r['n'] for r in store.fetch_all(record_store.STATEMENTS, page_size=2)] == [0, 1, 2, 3, 4]

    def test_update_merges(self, store):
        record = store.create(record_store.BILLS, {'name': 'Power', 'amount': '80'})
        updated = store.update(record_store.BILLS, record['id'], {'amount': '85', 'id': 'ignored'})

        assert updated['id'] == record['id']
        assert updated['name'] == 'Power'
        assert updated['amount'] == '85'

    def test_update_missing(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.update(record_store.BILLS, 'nope', {'amount': '1'})
        assert exc_info.value.operation == 'update'
        assert exc_info.value.collection == record_store.BILLS
        assert exc_info.value.record_id == 'nope'

    def test_delete(self, store):
        record = store.create(record_store.BILLS, {'name': 'Power'})
        assert store.delete(record_store.BILLS, record['id'])
        assert not store.delete(record_store.BILLS, record['id'])

    def test_delete_all(self, store):
        store.create(record_store.CLASSIFICATION_RULES, {'pattern': 'A'})
        store.create(record_store.CLASSIFICATION_RULES, {'pattern': 'B'})
        store.create(record_store.GOALS, {'name': 'Keep'})

        assert store.delete_all(record_store.CLASSIFICATION_RULES) == 2
        assert store.fetch_all(record_store.CLASSIFICATION_RULES) == []
        assert len(store.fetch_all(record_store.GOALS)) == 1

    def test_loaders(self, store):
        store.create(record_store.BILLS, {'name': 'Power', 'amount': '80', 'frequency': 'Monthly',
                                          'account': 'bills_account', 'next_due': '2026-02-20'})
        [bill] = record_store.load_obligations(store)
        assert bill.name == 'Power'
        assert bill.amount == Decimal('80')


class TestStoreFailures:
    """Tests for unavailable storage."""

    def test_unopenable_database(self, tmp_path):
        broken = RecordStore(str(tmp_path / 'missing-dir' / 'budget.db'))
        with pytest.raises(StoreError) as exc_info:
            broken.fetch(record_store.GOALS)
        assert exc_info.value.operation == 'connect'

    @patch('app.services.record_store.s3')
    def test_s3_error_on_connect(self, mock_s3, tmp_path):
        mock_s3.file_exists.side_effect = client_error()
        synced = RecordStore(str(tmp_path / 'budget.db'), bucket='budget-data')

        with pytest.raises(StoreError):
            synced.fetch(record_store.GOALS)

    @patch('app.services.record_store.s3')
    def test_download_and_upload(self, mock_s3, tmp_path):
        mock_s3.file_exists.return_value = True
        db_path = str(tmp_path / 'budget.db')
        synced = RecordStore(db_path, bucket='budget-data', db_key='budget.db')

        synced.create(record_store.GOALS, {'name': 'Vacation'})

        mock_s3.download_file.assert_called_once_with('budget-data', 'budget.db', db_path)
        mock_s3.upload_file.assert_called_once_with('budget-data', db_path, 'budget.db')

    @patch('app.services.record_store.s3')
    def test_upload_failure_surfaces(self, mock_s3, tmp_path):
        mock_s3.file_exists.return_value = False
        mock_s3.upload_file.side_effect = S3UploadFailedError('Failed to upload: AccessDenied')
        synced = RecordStore(str(tmp_path / 'budget.db'), bucket='budget-data')

        with pytest.raises(StoreError) as exc_info:
            synced.create(record_store.GOALS, {'id': 'g1', 'name': 'Vacation'})
        assert exc_info.value.operation == 'create'
        assert exc_info.value.record_id == 'g1'

    @patch('app.services.record_store.s3')
    def test_committed_write_kept_after_upload_failure(self, mock_s3, tmp_path):
        """The next successful save uploads the whole file, including this write."""
        mock_s3.file_exists.return_value = False
        mock_s3.upload_file.side_effect = S3UploadFailedError('Failed to upload: AccessDenied')
        synced = RecordStore(str(tmp_path / 'budget.db'), bucket='budget-data')

        with pytest.raises(StoreError):
            synced.create(record_store.GOALS, {'id': 'g1', 'name': 'Vacation'})
        assert synced.get(record_store.GOALS, 'g1')['name'] == 'Vacation'


def edit(statement_id):
    return ClassificationEdit(statement_id, TargetType.BILL, TargetSection.CHECKING_ACCOUNT, 'Walmart')


class TestBatchWithStoreDown:
    """A failing S3 sync never fails a classification batch as a whole."""

    def seed(self, db_path):
        local = RecordStore(db_path)
        local.create(record_store.STATEMENTS, {'id': 's1', 'date': '2026-02-03',
                                               'description': 'WAL-MART #1234 OREM UT', 'amount': '-52.10'})
        local.create(record_store.STATEMENTS, {'id': 's2', 'date': '2026-02-09',
                                               'description': 'WALMART.COM 8009256278', 'amount': '-18.75'})
        local.close()

    @patch('app.services.record_store.s3')
    def test_network_outage(self, mock_s3, tmp_path):
        db_path = str(tmp_path / 'budget.db')
        self.seed(db_path)
        mock_s3.file_exists.side_effect = EndpointConnectionError(endpoint_url='http://127.0.0.1:9')
        synced = RecordStore(db_path, bucket='budget-data')

        result = classify_batch(synced, [edit('s1'), edit('s2')], date(2026, 2, 20))

        assert (result.succeeded, result.failed) == (0, 2)
        assert all(f.operation == 'connect' for f in result.failures)

    @patch('app.services.record_store.s3')
    def test_upload_failure_per_item(self, mock_s3, tmp_path):
        db_path = str(tmp_path / 'budget.db')
        self.seed(db_path)
        mock_s3.file_exists.return_value = False
        mock_s3.upload_file.side_effect = S3UploadFailedError('Failed to upload: AccessDenied')
        synced = RecordStore(db_path, bucket='budget-data')

        result = classify_batch(synced, [edit('s1'), edit('s2')], date(2026, 2, 20))

        assert (result.succeeded, result.failed) == (0, 2)
        assert [f.record_id for f in result.failures] == ['s1', 's2']
        assert {f.operation for f in result.failures} == {'update'}
