# tests/test_filter_transactions.py
import datetime as dt
from decimal import Decimal

from models import Transaction, TransactionCategory, TransactionStatus
from schemas import TransactionFilters
from utils import filter_transactions, sort_newest_first


def make_tx(id_, description, amount, category, status, when, user_id="user_001"):
    return Transaction(
        id=id_,
        description=description,
        amount=Decimal(str(amount)),
        date=when if isinstance(when, dt.datetime) else dt.datetime.fromisoformat(when),
        category=TransactionCategory(category),
        status=TransactionStatus(status),
        user_id=user_id,
    )


def base_transactions():
    return [
        make_tx(1, "Monthly salary", 1000, "Revenue", "Paid", "2025-01-01T08:00:00"),
        make_tx(2, "Yearly bonus", 500, "Revenue", "Pending", "2025-01-15T18:30:00"),
        make_tx(3, "Apartment rent", 700, "Expense", "Paid", "2025-01-05T12:00:00", "user_002"),
        make_tx(4, "Food shopping", "1500.00", "Expense", "Pending", "2025-01-20T09:00:00"),
        make_tx(5, "Previous month rent", 650, "Expense", "Paid", "2024-12-20T10:00:00", "user_002"),
    ]


def names(result):
    return {t.description for t in result}


def test_filter_no_filters_returns_all_newest_first():
    txs = base_transactions()
    result = filter_transactions(txs)
    assert [t.id for t in result] == [4, 2, 3, 1, 5]


def test_filter_by_category():
    result = filter_transactions(base_transactions(), category="Revenue")
    assert all(t.category == TransactionCategory.Revenue for t in result)
    assert names(result) == {"Monthly salary", "Yearly bonus"}


def test_filter_accepts_enum_members():
    result = filter_transactions(base_transactions(), status=TransactionStatus.Pending)
    assert names(result) == {"Yearly bonus", "Food shopping"}


def test_filter_by_user():
    result = filter_transactions(base_transactions(), user="user_002")
    assert names(result) == {"Apartment rent", "Previous month rent"}


def test_filter_by_date_range_inclusive():
    date_from = dt.datetime(2025, 1, 5, 12)
    date_to = dt.datetime(2025, 1, 15, 18, 30)
    result = filter_transactions(base_transactions(), date_from=date_from, date_to=date_to)
    assert names(result) == {"Apartment rent", "Yearly bonus"}


def test_filter_by_amount_range_inclusive():
    result = filter_transactions(base_transactions(), amount_from=650, amount_to=Decimal("700"))
    assert names(result) == {"Apartment rent", "Previous month rent"}


def test_search_description_case_insensitive():
    result = filter_transactions(base_transactions(), search="RENt")
    assert names(result) == {"Apartment rent", "Previous month rent"}


def test_search_amount_uses_plain_number_text():
    # 1500.00 reads as "1500", the same way the database casts it
    assert names(filter_transactions(base_transactions(), search="1500")) == {"Food shopping"}
    assert filter_transactions(base_transactions(), search="1500.00") == []


def test_search_user_id():
    result = filter_transactions(base_transactions(), search="USER_002")
    assert names(result) == {"Apartment rent", "Previous month rent"}


def test_filter_combined_criteria():
    result = filter_transactions(
        base_transactions(),
        date_from=dt.datetime(2025, 1, 1),
        date_to=dt.datetime(2025, 1, 31, 23, 59, 59),
        search="rent",
        category="Expense",
    )
    # should only pick the January rent, not the December one
    assert len(result) == 1
    assert result[0].description == "Apartment rent"


def test_filter_works_on_plain_dicts():
    rows = [
        {"id": 1, "description": "A", "amount": 10, "category": "Revenue", "status": "Paid",
         "user_id": "u", "date": "2025-01-01T00:00:00Z"},
        {"id": 2, "description": "B", "amount": 20, "category": "Expense", "status": "Paid",
         "user_id": "u", "date": "2025-01-02T00:00:00Z"},
    ]
    result = filter_transactions(rows, category="Expense")
    assert [r["id"] for r in result] == [2]


def test_filters_model_feeds_filter_function():
    filters = TransactionFilters(search="  ", date_from="2025-01-05", date_to="2025-01-15")
    result = filter_transactions(base_transactions(), **filters.model_dump())
    assert names(result) == {"Apartment rent", "Yearly bonus"}


def test_same_date_ties_break_by_id():
    when = dt.datetime(2025, 3, 1)
    txs = [
        make_tx(9, "c", 1, "Revenue", "Paid", when),
        make_tx(2, "a", 1, "Revenue", "Paid", when),
        make_tx(5, "b", 1, "Revenue", "Paid", when),
    ]
    assert [t.id for t in sort_newest_first(txs)] == [2, 5, 9]
