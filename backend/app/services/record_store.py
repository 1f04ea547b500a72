"""Record store backed by a SQLite file synced to S3.

Records are JSON documents grouped by collection. The store offers the
generic fetch/create/update/delete contract the services rely on; it makes
no promise of atomicity across separate writes.
"""

import json
import re
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Generator, List, Optional, Tuple

from aws_lambda_powertools import Logger
from boto3.exceptions import Boto3Error
from botocore.exceptions import BotoCoreError, ClientError

from app.models.entities import (
    AutoTransfer,
    ClassificationRule,
    Goal,
    PaycheckConfig,
    RecurringObligation,
    Transaction,
)
from app.utils import s3
from app.utils.parsing import json_default
from app.utils.settings import Settings

logger = Logger(service="budget-record-store")

# Collections
STATEMENTS = 'statements'
CLASSIFICATION_RULES = 'classification_rules'
BILLS = 'bills'
AUTO_TRANSFERS = 'auto_transfers'
PAYCHECKS = 'paychecks'
GOALS = 'goals'

DEFAULT_PAGE_SIZE = 500

# Failures raised by the SQLite driver and by S3 (service errors, network errors, transfer errors)
STORE_ERRORS = (sqlite3.Error, ClientError, BotoCoreError, Boto3Error)

_FIELD_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_OPERATORS = {
    'eq': '=',
    'ne': '!=',
    'gt': '>',
    'gte': '>=',
    'lt': '<',
    'lte': '<=',
}


class StoreError(Exception):
    """A record store operation failed.

    Attributes:
        operation: Attempted operation (fetch, create, update, delete, ...)
        collection: Collection name
        record_id: Record id, when the operation targets one record
    """

    def __init__(self, operation: str, collection: str, record_id: Optional[str] = None, cause: Any = None):
        self.operation = operation
        self.collection = collection
        self.record_id = record_id
        target = f"{collection}/{record_id}" if record_id else collection
        super().__init__(f"{operation} {target} failed: {cause}")


def run_migrations(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if missing.

    Args:
        conn: SQLite connection
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS records (
            id TEXT NOT NULL,
            collection TEXT NOT NULL,
            data TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            PRIMARY KEY (collection, id)
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_records_collection ON records(collection, created_at)")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _filter_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return value


def build_where(filters: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
    """Translate a filter dict into SQL conditions on JSON fields.

    Keys are field names, optionally suffixed with __ne, __gt, __gte, __lt
    or __lte. A None value matches missing/null fields.

    Args:
        filters: Filter dict, e.g. {'goal_id': 'g1', 'date__gte': '2026-02-01'}

    Returns:
        (SQL fragment starting with " AND" or empty, params)
    """
    if not filters:
        return '', []

    clauses = []
    params: List[Any] = []
    for key, value in filters.items():
        field_name, _, op = key.partition('__')
        op = op or 'eq'
        if not _FIELD_NAME.match(field_name) or op not in _OPERATORS:
            raise ValueError(f"Invalid filter: {key}")

        column = f"json_extract(data, '$.{field_name}')"
        if field_name == 'id':
            column = 'id'

        if value is None:
            if op not in ('eq', 'ne'):
                raise ValueError(f"Invalid filter: {key} cannot compare with null")
            clauses.append(f"{column} IS {'NOT ' if op == 'ne' else ''}NULL")
            continue

        clauses.append(f"{column} {_OPERATORS[op]} ?")
        params.append(_filter_value(value))

    return ''.join(f" AND {c}" for c in clauses), params


def build_order(sort: Optional[str]) -> str:
    """Translate "field" / "-field" into an ORDER BY clause."""
    if not sort:
        return " ORDER BY created_at, rowid"
    descending = sort.startswith('-')
    field_name = sort.lstrip('-+')
    if not _FIELD_NAME.match(field_name):
        raise ValueError(f"Invalid sort: {sort}")
    direction = 'DESC' if descending else 'ASC'
    return f" ORDER BY json_extract(data, '$.{field_name}') {direction}, created_at, rowid"


def row_to_record(row: sqlite3.Row) -> dict:
    """Convert a records row to a plain dict with id and timestamps."""
    record = json.loads(row['data'])
    record['id'] = row['id']
    record['created_at'] = row['created_at']
    record['updated_at'] = row['updated_at']
    return record


class RecordStore:
    """Collection-based record store over SQLite, optionally synced to S3."""

    def __init__(self, db_path: str, bucket: str = '', db_key: str = 'budget.db'):
        self.db_path = db_path
        self.bucket = bucket
        self.db_key = db_key
        self._conn: Optional[sqlite3.Connection] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> 'RecordStore':
        return cls(db_path=settings.db_path, bucket=settings.data_bucket, db_key=settings.db_key)

    def connect(self) -> sqlite3.Connection:
        """Get the connection, downloading the database from S3 if needed.

        Returns:
            SQLite connection with row factory set
        """
        if self._conn is not None:
            return self._conn

        try:
            if self.bucket and s3.file_exists(self.bucket, self.db_key):
                s3.download_file(self.bucket, self.db_key, self.db_path)
                logger.info("Database downloaded", extra={"bucket": self.bucket, "key": self.db_key})
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            run_migrations(conn)
            conn.commit()
        except STORE_ERRORS as e:
            logger.error("Record store unavailable", extra={"db_path": self.db_path, "error": str(e)})
            raise StoreError('connect', '*', None, e) from e

        self._conn = conn
        return conn

    def save(self) -> None:
        """Commit and upload the database to S3 (when a bucket is configured).

        The local commit stays when the upload fails. The whole file is
        uploaded on every save, so the next successful save carries it.
        """
        if self._conn is None:
            return
        self._conn.commit()
        if self.bucket:
            s3.upload_file(self.bucket, self.db_path, self.db_key)

    def close(self) -> None:
        """Close database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _operation(
        self,
        operation: str,
        collection: str,
        record_id: Optional[str] = None,
        write: bool = False
    ) -> Generator[sqlite3.Connection, None, None]:
        """Run one store operation, wrapping failures in StoreError.

        Writes commit and sync on success. A failed statement rolls back; a
        failed upload after the commit is reported but not undone (see save).
        """
        conn = self.connect()
        try:
            try:
                yield conn
            except sqlite3.Error:
                if write:
                    conn.rollback()
                raise
            if write:
                self.save()
        except STORE_ERRORS as e:
            logger.error(
                "Record store operation failed",
                extra={"operation": operation, "collection": collection, "record_id": record_id, "error": str(e)}
            )
            raise StoreError(operation, collection, record_id, e) from e

    def fetch(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        page: int = 1
    ) -> List[dict]:
        """Fetch one page of records.

        Args:
            collection: Collection name
            filters: Equality/range filter (see build_where)
            sort: Field to sort by, "-" prefix for descending
            page_size: Records per page
            page: 1-based page number

        Returns:
            List of record dicts
        """
        where, params = build_where(filters)
        sql = f"SELECT * FROM records WHERE collection = ?{where}{build_order(sort)} LIMIT ? OFFSET ?"
        offset = max(page - 1, 0) * page_size
        with self._operation('fetch', collection) as conn:
            rows = conn.execute(sql, [collection, *params, page_size, offset]).fetchall()
        return [row_to_record(r) for r in rows]

    def fetch_all(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE
    ) -> List[dict]:
        """Fetch every matching record, page by page."""
        records: List[dict] = []
        page = 1
        while True:
            batch = self.fetch(collection, filters, sort, page_size, page)
            records.extend(batch)
            if len(batch) < page_size:
                return records
            page += 1

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        """Fetch one record by id, or None."""
        with self._operation('get', collection, record_id) as conn:
            row = conn.execute(
                "SELECT * FROM records WHERE collection = ? AND id = ?",
                (collection, record_id)
            ).fetchone()
        return row_to_record(row) if row else None

    def create(self, collection: str, fields: dict) -> dict:
        """Insert a record.

        Args:
            collection: Collection name
            fields: Record fields; an 'id' field is used if present

        Returns:
            Created record
        """
        data = {k: v for k, v in fields.items() if k not in ('id', 'created_at', 'updated_at')}
        record_id = str(fields.get('id') or uuid.uuid4().hex[:15])
        now = _now()
        with self._operation('create', collection, record_id, write=True) as conn:
            conn.execute(
                "INSERT INTO records (id, collection, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (record_id, collection, json.dumps(data, default=json_default), now, now)
            )
        return self.get(collection, record_id)

    def update(self, collection: str, record_id: str, fields: dict) -> dict:
        """Merge fields into an existing record.

        Raises:
            StoreError: If the record does not exist or the write fails
        """
        existing = self.get(collection, record_id)
        if existing is None:
            raise StoreError('update', collection, record_id, 'record not found')

        data = {k: v for k, v in existing.items() if k not in ('id', 'created_at', 'updated_at')}
        data.update({k: v for k, v in fields.items() if k not in ('id', 'created_at', 'updated_at')})
        with self._operation('update', collection, record_id, write=True) as conn:
            conn.execute(
                "UPDATE records SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (json.dumps(data, default=json_default), _now(), collection, record_id)
            )
        return self.get(collection, record_id)

    def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record. Returns False if it did not exist."""
        with self._operation('delete', collection, record_id, write=True) as conn:
            cursor = conn.execute("DELETE FROM records WHERE collection = ? AND id = ?", (collection, record_id))
        return cursor.rowcount > 0

    def delete_all(self, collection: str) -> int:
        """Delete every record of a collection. Returns the count deleted."""
        with self._operation('delete_all', collection, write=True) as conn:
            cursor = conn.execute("DELETE FROM records WHERE collection = ?", (collection,))
        logger.info("Collection cleared", extra={"collection": collection, "deleted": cursor.rowcount})
        return cursor.rowcount


def load_transactions(store: RecordStore) -> List[Transaction]:
    return [Transaction.from_dict(r) for r in store.fetch_all(STATEMENTS, sort='date')]


def load_rules(store: RecordStore) -> List[ClassificationRule]:
    return [ClassificationRule.from_dict(r) for r in store.fetch_all(CLASSIFICATION_RULES)]


def load_obligations(store: RecordStore) -> List[RecurringObligation]:
    return [RecurringObligation.from_dict(r) for r in store.fetch_all(BILLS)]


def load_transfers(store: RecordStore) -> List[AutoTransfer]:
    return [AutoTransfer.from_dict(r) for r in store.fetch_all(AUTO_TRANSFERS)]


def load_paychecks(store: RecordStore) -> List[PaycheckConfig]:
    return [PaycheckConfig.from_dict(r) for r in store.fetch_all(PAYCHECKS)]


def load_goals(store: RecordStore) -> List[Goal]:
    return [Goal.from_dict(r) for r in store.fetch_all(GOALS)]


# Store shared across Lambda invocations
_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Get or create the store configured from the environment."""
    global _store
    if _store is None:
        _store = RecordStore.from_settings(Settings.from_env())
    return _store


def set_store(store: Optional[RecordStore]) -> None:
    """Replace the shared store (None resets it)."""
    global _store
    if _store is not None and _store is not store:
        _store.close()
    _store = store
