"""Utility functions for money, dates, filtering and summary computation.

Nothing in here touches the database: the client uses these helpers on
its local cache, and the server reuses the date and bucketing helpers.
"""
import datetime as dt
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional


def utcnow() -> dt.datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


def round_money(value: Any) -> float:
    """Round to 2 decimal places with HALF_UP (normal money rounding)."""
    if value is None:
        return 0.0
    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    return float(dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def amount_text(amount: Any) -> str:
    """Text form of an amount used by free-text search: 1500.00 -> "1500", 1200.50 -> "1200.5"."""
    dec = Decimal(str(amount)).normalize()
    return format(dec, "f")


def _is_date_only(value: Any) -> bool:
    if isinstance(value, dt.datetime):
        return False
    if isinstance(value, dt.date):
        return True
    if not isinstance(value, str):
        return False
    # any form date.fromisoformat accepts, e.g. 2025-01-10 or 20250110
    try:
        dt.date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def normalize_iso_datetime(value: Any) -> dt.datetime:
    """Parse an ISO-8601 date or datetime into naive UTC, or raise ValueError."""
    if isinstance(value, dt.datetime):
        return to_naive_utc(value)
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time.min)

    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return to_naive_utc(dt.datetime.fromisoformat(text))
        except ValueError:
            pass

    raise ValueError("Invalid date format. Expected an ISO-8601 date or datetime.")


def date_bound(value: Any, upper: bool = False) -> dt.datetime:
    """Resolve a filter bound. A date without a time covers the whole day."""
    parsed = normalize_iso_datetime(value)
    if upper and _is_date_only(value):
        return dt.datetime.combine(parsed.date(), dt.time.max)
    return parsed


def _get(t: Any, name: str) -> Any:
    # support both model objects and plain dicts
    if isinstance(t, dict):
        return t.get(name)
    return getattr(t, name, None)


def _text(value: Any) -> str:
    # Enum members compare by their value
    return getattr(value, "value", value) or ""


def matches_search(t: Any, search: str) -> bool:
    q = search.lower()
    description = (_get(t, "description") or "").lower()
    user_id = (_get(t, "user_id") or "").lower()
    amount = _get(t, "amount")
    return (
        q in description
        or q in user_id
        or (amount is not None and q in amount_text(amount))
    )


def filter_transactions(
    transactions: Iterable[Any],
    search: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    user: Optional[str] = None,
    date_from: Optional[dt.datetime] = None,
    date_to: Optional[dt.datetime] = None,
    amount_from: Optional[Any] = None,
    amount_to: Optional[Any] = None,
) -> list:
    """AND together every supplied predicate and return the matching rows
    sorted newest first. Same order and semantics as the SQL query in
    store.TransactionStore.list."""
    q = (search or "").strip()
    category = _text(category)
    status = _text(status)
    low = Decimal(str(amount_from)) if amount_from is not None else None
    high = Decimal(str(amount_to)) if amount_to is not None else None

    results = []
    for t in transactions:
        if q and not matches_search(t, q):
            continue
        if category and _text(_get(t, "category")) != category:
            continue
        if status and _text(_get(t, "status")) != status:
            continue
        if user and _get(t, "user_id") != user:
            continue

        when = _get(t, "date")
        if when is not None:
            when = _as_datetime(when)
        if date_from and (when is None or when < date_from):
            continue
        if date_to and (when is None or when > date_to):
            continue

        amount = Decimal(str(_get(t, "amount")))
        if low is not None and amount < low:
            continue
        if high is not None and amount > high:
            continue

        results.append(t)

    return sort_newest_first(results)


def _as_datetime(value: Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    return normalize_iso_datetime(value)


def sort_newest_first(transactions: Iterable[Any]) -> list:
    """Date descending, id ascending for equal dates."""
    rows = sorted(transactions, key=lambda t: _get(t, "id") or 0)
    return sorted(rows, key=lambda t: _as_datetime(_get(t, "date")), reverse=True)


def compute_summary(transactions: Iterable[Any]) -> dict:
    """Metric-card totals for a list of transactions.

    Revenue/expense totals are grouped by category, paid/pending totals
    by status. Every value defaults to 0 when nothing matches.
    """
    totals = {
        "Revenue": Decimal("0"),
        "Expense": Decimal("0"),
        "Paid": Decimal("0"),
        "Pending": Decimal("0"),
    }
    count = 0

    for t in transactions:
        amount = _get(t, "amount")
        if amount is None:
            continue
        dec = Decimal(str(amount))
        category = _text(_get(t, "category"))
        status = _text(_get(t, "status"))
        if category in totals:
            totals[category] += dec
        if status in totals:
            totals[status] += dec
        count += 1

    return summary_payload(
        revenue=totals["Revenue"],
        expenses=totals["Expense"],
        paid=totals["Paid"],
        pending=totals["Pending"],
        count=count,
    )


def summary_payload(revenue: Any, expenses: Any, paid: Any, pending: Any, count: int) -> dict:
    total_revenue = round_money(revenue)
    total_expenses = round_money(expenses)
    return {
        "totalRevenue": total_revenue,
        "totalExpenses": total_expenses,
        "netIncome": round_money(Decimal(str(total_revenue)) - Decimal(str(total_expenses))),
        "pendingAmount": round_money(pending),
        "paidAmount": round_money(paid),
        "transactionCount": int(count or 0),
    }


def month_key(when: dt.datetime) -> str:
    return f"{when.year:04d}-{when.month:02d}"


def trailing_months(months: int, now: Optional[dt.datetime] = None) -> list[str]:
    """The last `months` calendar months ending with the current one, oldest first."""
    now = now or utcnow()
    year, month = now.year, now.month
    keys = []
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(keys))


def window_start(months: int, now: Optional[dt.datetime] = None) -> dt.datetime:
    """First instant of the oldest month in the trailing window."""
    first = trailing_months(months, now)[0]
    year, month = map(int, first.split("-"))
    return dt.datetime(year, month, 1)


def bucket_by_month(
    transactions: Iterable[Any],
    months: int = 12,
    now: Optional[dt.datetime] = None,
) -> list[dict]:
    """Dense, ascending revenue/expense series; months without rows are 0."""
    keys = trailing_months(months, now)
    buckets = {key: {"Revenue": Decimal("0"), "Expense": Decimal("0")} for key in keys}

    for t in transactions:
        when = _get(t, "date")
        if when is None:
            continue
        when = _as_datetime(when)
        bucket = buckets.get(month_key(when))
        category = _text(_get(t, "category"))
        if bucket is None or category not in bucket:
            continue
        bucket[category] += Decimal(str(_get(t, "amount")))

    return [
        {
            "month": key,
            "revenue": round_money(buckets[key]["Revenue"]),
            "expenses": round_money(buckets[key]["Expense"]),
        }
        for key in keys
    ]
