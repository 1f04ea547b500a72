"""CSV processing for bank statement imports."""

import csv
import io
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from aws_lambda_powertools import Logger

from app.models.entities import Transaction
from app.utils.parsing import ZERO, parse_date, parse_money

logger = Logger(service="budget-csv")

# Accepted header spellings per field, compared case- and space-insensitively
HEADER_ALIASES = {
    'date': ['date', 'transaction date', 'posting date', 'post date', 'trans date'],
    'description': ['description', 'memo', 'payee', 'details', 'name'],
    'amount': ['amount', 'transaction amount'],
    'debit': ['debit', 'debits', 'withdrawal', 'withdrawals'],
    'credit': ['credit', 'credits', 'deposit', 'deposits'],
    'balance': ['balance', 'running balance'],
    'category': ['category', 'type'],
    'account': ['account', 'account name'],
}


@dataclass
class ParseResult:
    """Result of parsing a statement CSV."""
    transactions: List[Transaction]
    errors: List[str]
    warnings: List[str]
    duplicate_count: int


def _norm(header: str) -> str:
    return ''.join((header or '').lower().split())


def map_columns(fieldnames: Sequence[str]) -> Dict[str, str]:
    """Map logical fields to the CSV's actual header names.

    Args:
        fieldnames: Header row

    Returns:
        Dict of field -> header for every field found
    """
    by_norm = {_norm(name): name for name in fieldnames if name}
    columns = {}
    for field_name, aliases in HEADER_ALIASES.items():
        for alias in aliases:
            header = by_norm.get(_norm(alias))
            if header is not None:
                columns[field_name] = header
                break
    return columns


def _cell(row: dict, columns: Dict[str, str], field_name: str) -> str:
    header = columns.get(field_name)
    if header is None:
        return ''
    return (row.get(header) or '').strip()


def parse_statement_csv(
    content: str,
    account: Optional[str] = None,
    source_file: Optional[str] = None
) -> ParseResult:
    """Parse statement CSV content into transactions.

    The first row holds headers. Amount comes from an amount column
    (negative = outflow) or from debit/credit columns (credit - debit).
    Rows with an invalid date or amount are skipped and reported.

    Args:
        content: CSV file content
        account: Account label for every row (overrides an account column)
        source_file: Name of the imported file

    Returns:
        ParseResult with transactions and any errors/warnings
    """
    transactions: List[Transaction] = []
    errors: List[str] = []
    warnings: List[str] = []
    seen_transactions: set = set()  # For duplicate detection
    duplicate_count = 0

    reader = csv.DictReader(io.StringIO(content.lstrip('\ufeff')))
    columns = map_columns(reader.fieldnames or [])

    missing = [f for f in ('date', 'description') if f not in columns]
    if 'amount' not in columns and 'debit' not in columns and 'credit' not in columns:
        missing.append('amount')
    if missing:
        errors.append(f"Missing required columns: {', '.join(missing)}")
        return ParseResult([], errors, warnings, 0)

    for row_num, row in enumerate(reader, start=2):  # Start at 2 (1 is header)
        if not any((v or '').strip() for v in row.values() if isinstance(v, str)):
            continue

        date_str = _cell(row, columns, 'date')
        txn_date = parse_date(date_str)
        if txn_date is None:
            errors.append(f"Row {row_num}: Invalid date '{date_str}'")
            continue

        if 'amount' in columns:
            amount = parse_money(_cell(row, columns, 'amount'))
        else:
            debit = parse_money(_cell(row, columns, 'debit'))
            credit = parse_money(_cell(row, columns, 'credit'))
            amount = None if debit is None and credit is None else (credit or ZERO) - abs(debit or ZERO)
        if amount is None:
            errors.append(f"Row {row_num}: Invalid amount")
            continue

        description = _cell(row, columns, 'description')
        if not description:
            warnings.append(f"Row {row_num}: Missing description")

        balance_str = _cell(row, columns, 'balance')
        balance = parse_money(balance_str)
        if balance_str and balance is None:
            warnings.append(f"Row {row_num}: Invalid balance '{balance_str}' ignored")

        # Check for duplicates (same date + amount + description)
        txn_key = (txn_date, amount, description)
        if txn_key in seen_transactions:
            duplicate_count += 1
            warnings.append(f"Row {row_num}: Potential duplicate transaction")
        seen_transactions.add(txn_key)

        transactions.append(Transaction(
            id=None,
            date=txn_date,
            description=description,
            amount=amount,
            balance=balance,
            category=_cell(row, columns, 'category') or None,
            account=account or _cell(row, columns, 'account') or None,
            source_file=source_file
        ))

    logger.info(
        "Statement CSV parsed",
        extra={
            "source_file": source_file,
            "rows": len(transactions),
            "errors": len(errors),
            "duplicates": duplicate_count
        }
    )
    return ParseResult(transactions, errors, warnings, duplicate_count)
