"""Python client for the dashboard API.

Holds the same state the browser front end does: the auth token, a local
copy of every transaction, the current filter criteria and the rows that
pass them. Filtering happens locally with ``utils.filter_transactions``,
which mirrors the server's query semantics.
"""
import csv
import logging
from decimal import Decimal
from typing import IO, Any, Iterable, Optional

import httpx

from schemas import MAX_PAGE_SIZE, TransactionFilters, TransactionRead, UserRead
from utils import bucket_by_month, compute_summary, filter_transactions

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("date", "amount", "category", "status", "user", "description")


class ApiError(Exception):
    """Non-2xx answer from the API, carrying the envelope's error fields."""

    def __init__(self, status_code: int, error: str, details: Optional[list] = None):
        self.status_code = status_code
        self.error = error
        self.details = details or []
        super().__init__(f"{status_code}: {error}")


def _export_value(t: TransactionRead, column: str) -> str:
    if column == "date":
        return t.date.date().isoformat()
    if column == "amount":
        return f"{t.amount:.2f}"
    if column == "category":
        return t.category.value
    if column == "status":
        return t.status.value
    if column == "user":
        return t.user_id
    return t.description


class DashboardClient:
    def __init__(self, base_url: str = "http://localhost:8000", http: Optional[httpx.Client] = None):
        # Any httpx.Client works, including FastAPI's TestClient.
        self.http = http or httpx.Client(base_url=base_url)
        self.token: Optional[str] = None
        self.user: Optional[UserRead] = None
        self.transactions: list[TransactionRead] = []
        self.filters = TransactionFilters()
        self.filtered: list[TransactionRead] = []

    # auth

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def _headers(self) -> dict:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(self, method: str, url: str, **kwargs) -> dict:
        response = self.http.request(method, url, headers=self._headers(), **kwargs)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if response.is_error:
            raise ApiError(
                response.status_code,
                body.get("error") or response.reason_phrase,
                body.get("details"),
            )
        return body

    def _signed_in(self, body: dict) -> UserRead:
        data = body["data"]
        self.token = data["token"]
        self.user = UserRead.model_validate(data["user"])
        logger.info("Signed in as %s", self.user.username)
        return self.user

    def register(self, username: str, password: str, email: Optional[str] = None) -> UserRead:
        payload = {"username": username, "password": password}
        if email is not None:
            payload["email"] = email
        return self._signed_in(self._request("POST", "/auth/register", json=payload))

    def login(self, username: str, password: str) -> UserRead:
        body = self._request("POST", "/auth/login", json={"username": username, "password": password})
        return self._signed_in(body)

    def logout(self) -> None:
        self.token = None
        self.user = None
        self.transactions = []
        self.filtered = []

    def me(self) -> UserRead:
        return UserRead.model_validate(self._request("GET", "/auth/me")["data"])

    # transactions

    def refresh(self) -> list[TransactionRead]:
        """Load every page from the server into the local cache."""
        rows: list[TransactionRead] = []
        page = 1
        while True:
            body = self._request(
                "GET", "/api/transactions", params={"page": page, "limit": MAX_PAGE_SIZE}
            )
            rows.extend(TransactionRead.model_validate(item) for item in body["data"])
            if page >= body["pagination"]["totalPages"]:
                break
            page += 1

        self.transactions = rows
        self.apply_filters()
        return self.transactions

    def fetch_page(self, page: int = 1, limit: int = 20, **criteria) -> tuple[list[TransactionRead], dict]:
        """One server-filtered page; criteria use the API's query parameter names."""
        params = {k: v for k, v in criteria.items() if v is not None}
        params.update(page=page, limit=limit)
        body = self._request("GET", "/api/transactions", params=params)
        items = [TransactionRead.model_validate(item) for item in body["data"]]
        return items, body["pagination"]

    def set_filters(self, **criteria) -> list[TransactionRead]:
        """Merge criteria into the current filters and re-filter the cache."""
        merged = self.filters.model_dump()
        merged.update(criteria)
        self.filters = TransactionFilters.model_validate(merged)
        return self.apply_filters()

    def clear_filters(self) -> list[TransactionRead]:
        self.filters = TransactionFilters()
        return self.apply_filters()

    def apply_filters(self) -> list[TransactionRead]:
        self.filtered = filter_transactions(self.transactions, **self.filters.model_dump())
        return self.filtered

    def create_transaction(self, **fields) -> TransactionRead:
        body = self._request("POST", "/api/transactions", json=_jsonable(fields))
        created = TransactionRead.model_validate(body["data"])
        self.transactions.append(created)
        self.apply_filters()
        return created

    def update_transaction(self, transaction_id: int, **fields) -> TransactionRead:
        body = self._request("PUT", f"/api/transactions/{transaction_id}", json=_jsonable(fields))
        updated = TransactionRead.model_validate(body["data"])
        self.transactions = [updated if t.id == transaction_id else t for t in self.transactions]
        self.apply_filters()
        return updated

    def delete_transaction(self, transaction_id: int) -> None:
        self._request("DELETE", f"/api/transactions/{transaction_id}")
        self.transactions = [t for t in self.transactions if t.id != transaction_id]
        self.apply_filters()

    # dashboard

    def summary(self, filtered: bool = False) -> dict:
        """Metric-card numbers computed from the local cache."""
        return compute_summary(self.filtered if filtered else self.transactions)

    def monthly_series(self, months: int = 12) -> list[dict]:
        return bucket_by_month(self.transactions, months=months)

    def stats(self) -> dict:
        return self._request("GET", "/api/dashboard/stats")["data"]

    def category_breakdown(self) -> list[dict]:
        return self._request("GET", "/api/dashboard/categories")["data"]

    def status_breakdown(self) -> list[dict]:
        return self._request("GET", "/api/dashboard/status")["data"]

    def recent(self) -> list[TransactionRead]:
        body = self._request("GET", "/api/dashboard/recent")
        return [TransactionRead.model_validate(item) for item in body["data"]]

    # export

    def export_csv(self, fp: IO[str], columns: Iterable[str] = EXPORT_COLUMNS) -> int:
        """Write the filtered rows to `fp` as CSV; returns the number of rows written."""
        columns = list(columns)
        if not columns:
            raise ValueError("Select at least one column to export")
        unknown = [c for c in columns if c not in EXPORT_COLUMNS]
        if unknown:
            raise ValueError(f"Unknown export column(s): {', '.join(unknown)}")

        writer = csv.writer(fp, lineterminator="\n")
        writer.writerow(columns)
        for t in self.filtered:
            writer.writerow([_export_value(t, c) for c in columns])
        return len(self.filtered)

    def close(self) -> None:
        self.http.close()


def _jsonable(fields: dict) -> dict:
    out: dict[str, Any] = {}
    for key, value in fields.items():
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        elif isinstance(value, Decimal):
            value = float(value)
        out[key] = value
    return out
