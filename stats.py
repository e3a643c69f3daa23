"""Aggregation Engine: read-only dashboard numbers over the transactions table.

Every function takes an optional ``owner_id``; ``None`` aggregates over
all rows. Sums default to 0 when nothing matches.
"""
import datetime as dt
from typing import Optional

from sqlalchemy import func
from sqlmodel import Session, col, select

from models import Transaction, TransactionCategory, TransactionStatus
from utils import bucket_by_month, round_money, summary_payload, window_start

DEFAULT_MONTHS = 12


def _scoped(stmt, owner_id: Optional[str]):
    if owner_id is not None:
        stmt = stmt.where(Transaction.user_id == owner_id)
    return stmt


def _sums_by(session: Session, column, owner_id: Optional[str]) -> dict:
    stmt = _scoped(
        select(column, func.coalesce(func.sum(Transaction.amount), 0)).group_by(column),
        owner_id,
    )
    return {getattr(key, "value", key): total for key, total in session.exec(stmt).all()}


def summary(session: Session, owner_id: Optional[str] = None) -> dict:
    """Revenue/expense by category, paid/pending by status, and the row count."""
    by_category = _sums_by(session, col(Transaction.category), owner_id)
    by_status = _sums_by(session, col(Transaction.status), owner_id)
    count = session.exec(
        _scoped(select(func.count()).select_from(Transaction), owner_id)
    ).one()

    return summary_payload(
        revenue=by_category.get(TransactionCategory.Revenue.value, 0),
        expenses=by_category.get(TransactionCategory.Expense.value, 0),
        paid=by_status.get(TransactionStatus.Paid.value, 0),
        pending=by_status.get(TransactionStatus.Pending.value, 0),
        count=count,
    )


def monthly_series(
    session: Session,
    owner_id: Optional[str] = None,
    months: int = DEFAULT_MONTHS,
    now: Optional[dt.datetime] = None,
) -> list[dict]:
    """Revenue and expenses per calendar month over the trailing window.

    The series is dense and ascending: every month in the window appears,
    with zeros where nothing happened.
    """
    stmt = _scoped(
        select(Transaction.date, Transaction.category, Transaction.amount)
        .where(Transaction.date >= window_start(months, now)),
        owner_id,
    )
    rows = [
        {"date": when, "category": category, "amount": amount}
        for when, category, amount in session.exec(stmt).all()
    ]
    return bucket_by_month(rows, months=months, now=now)


def dashboard_stats(
    session: Session,
    owner_id: Optional[str] = None,
    months: int = DEFAULT_MONTHS,
    now: Optional[dt.datetime] = None,
) -> dict:
    stats = summary(session, owner_id)
    stats["monthlyData"] = monthly_series(session, owner_id, months=months, now=now)
    return stats


def category_breakdown(session: Session, owner_id: Optional[str] = None) -> list[dict]:
    stmt = _scoped(
        select(
            Transaction.category,
            func.count(),
            func.sum(Transaction.amount),
            func.avg(Transaction.amount),
        ).group_by(Transaction.category),
        owner_id,
    )
    order = list(TransactionCategory)
    rows = sorted(session.exec(stmt).all(), key=lambda row: order.index(TransactionCategory(row[0])))
    return [
        {
            "category": TransactionCategory(category).value,
            "count": count,
            "total": round_money(total),
            "average": round_money(average),
        }
        for category, count, total, average in rows
    ]


def status_breakdown(session: Session, owner_id: Optional[str] = None) -> list[dict]:
    stmt = _scoped(
        select(
            Transaction.status,
            func.count(),
            func.sum(Transaction.amount),
        ).group_by(Transaction.status),
        owner_id,
    )
    order = list(TransactionStatus)
    rows = sorted(session.exec(stmt).all(), key=lambda row: order.index(TransactionStatus(row[0])))
    return [
        {"status": TransactionStatus(status).value, "count": count, "total": round_money(total)}
        for status, count, total in rows
    ]
