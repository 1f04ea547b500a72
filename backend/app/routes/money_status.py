"""Money status routes."""

from datetime import MAXYEAR, MINYEAR, date

from app.services import cash_flow, record_store
from app.utils.http import error_response, make_response


def _today() -> date:
    return date.today()


def handle_get_money_status(query: dict) -> dict:
    """Cash-flow projection for a month.

    Args:
        query: Query parameters (month=YYYY-MM, defaults to the current month)

    Returns:
        Response with the MoneyStatus and last month's actual bill spend
    """
    today = _today()
    year, month = today.year, today.month
    if query.get('month'):
        try:
            year_str, _, month_str = query['month'].partition('-')
            year, month = int(year_str), int(month_str)
        except ValueError:
            return error_response(400, 'bad_request', 'month must be YYYY-MM')
        if not 1 <= month <= 12 or not MINYEAR < year < MAXYEAR:
            return error_response(400, 'bad_request', 'month must be YYYY-MM')

    store = record_store.get_store()
    transactions = record_store.load_transactions(store)
    rules = record_store.load_rules(store)

    status = cash_flow.compute_money_status(
        paychecks=record_store.load_paychecks(store),
        obligations=record_store.load_obligations(store),
        transfers=record_store.load_transfers(store),
        transactions=transactions,
        rules=rules,
        goals=record_store.load_goals(store),
        today=today,
        year=year,
        month=month
    )
    last_month_name, last_month_rows = cash_flow.last_month_actuals(transactions, rules, today)

    body = status.to_dict()
    body['last_month'] = {'month_name': last_month_name, 'bills': last_month_rows}
    return make_response(200, body)
