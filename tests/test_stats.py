import datetime as dt

import pytest

import stats
from seed import DEMO_PASSWORD, DEMO_TRANSACTIONS, seed_database


@pytest.fixture
def admin_headers(client, seeded, auth_helpers):
    res = auth_helpers["login_user"]("admin", DEMO_PASSWORD)
    assert res.status_code == 200
    return auth_helpers["auth_headers"](res.json()["data"]["token"])


def test_seeded_totals_across_all_users(client, global_scope, admin_headers):
    res = client.get("/api/dashboard/stats", headers=admin_headers)
    assert res.status_code == 200
    data = res.json()["data"]

    assert data["totalRevenue"] == 4150.75
    assert data["totalExpenses"] == 9750.75
    assert data["netIncome"] == -5600.0
    assert data["paidAmount"] == 10700.75
    assert data["pendingAmount"] == 3200.75
    assert data["transactionCount"] == 10
    assert len(data["monthlyData"]) == 12


def test_paid_plus_pending_equals_revenue_plus_expenses(client, global_scope, admin_headers):
    data = client.get("/api/dashboard/stats", headers=admin_headers).json()["data"]
    assert data["paidAmount"] + data["pendingAmount"] == pytest.approx(
        data["totalRevenue"] + data["totalExpenses"]
    )


def test_stats_are_scoped_to_the_caller_by_default(client, admin_headers):
    data = client.get("/api/dashboard/stats", headers=admin_headers).json()["data"]

    # admin owns the three user_001 rows: 1500 + 800 + 650, all revenue
    assert data["totalRevenue"] == 2950.0
    assert data["totalExpenses"] == 0.0
    assert data["netIncome"] == 2950.0
    assert data["paidAmount"] == 2150.0
    assert data["pendingAmount"] == 800.0
    assert data["transactionCount"] == 3


def test_empty_store_gives_zeros(client, alice_headers):
    data = client.get("/api/dashboard/stats", headers=alice_headers).json()["data"]

    assert data["totalRevenue"] == 0
    assert data["totalExpenses"] == 0
    assert data["netIncome"] == 0
    assert data["paidAmount"] == 0
    assert data["pendingAmount"] == 0
    assert data["transactionCount"] == 0
    assert all(p["revenue"] == 0 and p["expenses"] == 0 for p in data["monthlyData"])


def test_stats_follow_creates_and_deletes(client, alice_headers, create_tx):
    create_tx(alice_headers, amount=200, category="Revenue", status="Paid")
    doomed = create_tx(alice_headers, amount=50.25, category="Expense", status="Pending")

    data = client.get("/api/dashboard/stats", headers=alice_headers).json()["data"]
    assert data["netIncome"] == 149.75
    assert data["transactionCount"] == 2

    client.delete(f"/api/transactions/{doomed['id']}", headers=alice_headers)
    data = client.get("/api/dashboard/stats", headers=alice_headers).json()["data"]
    assert data["netIncome"] == 200.0
    assert data["pendingAmount"] == 0.0


def test_monthly_series_is_dense_and_ascending(seeded):
    series = stats.monthly_series(seeded, months=12, now=dt.datetime(2024, 12, 15))

    assert [p["month"] for p in series] == [f"2024-{m:02d}" for m in range(1, 13)]
    by_month = {p["month"]: p for p in series}
    assert by_month["2024-01"] == {"month": "2024-01", "revenue": 1500.0, "expenses": 0.0}
    assert by_month["2024-02"] == {"month": "2024-02", "revenue": 0.0, "expenses": 1200.5}
    assert by_month["2024-10"]["expenses"] == 1200.0
    assert by_month["2024-11"] == {"month": "2024-11", "revenue": 0.0, "expenses": 0.0}
    assert sum(p["revenue"] for p in series) == pytest.approx(4150.75)


def test_monthly_series_window_excludes_older_rows(seeded):
    series = stats.monthly_series(seeded, months=3, now=dt.datetime(2024, 10, 1))

    assert [p["month"] for p in series] == ["2024-08", "2024-09", "2024-10"]
    assert [p["revenue"] for p in series] == [0.0, 650.0, 0.0]
    assert [p["expenses"] for p in series] == [150.0, 0.0, 1200.0]


def test_monthly_series_scoped_to_owner(seeded):
    series = stats.monthly_series(seeded, owner_id="user_002", now=dt.datetime(2024, 12, 1))
    assert sum(p["expenses"] for p in series) == pytest.approx(1200.5 + 2200.25 + 1200.0)
    assert sum(p["revenue"] for p in series) == 0


def test_category_breakdown(client, global_scope, admin_headers):
    res = client.get("/api/dashboard/categories", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["data"] == [
        {"category": "Revenue", "count": 5, "total": 4150.75, "average": 830.15},
        {"category": "Expense", "count": 5, "total": 9750.75, "average": 1950.15},
    ]


def test_status_breakdown(client, global_scope, admin_headers):
    res = client.get("/api/dashboard/status", headers=admin_headers)
    assert res.json()["data"] == [
        {"status": "Paid", "count": 6, "total": 10700.75},
        {"status": "Pending", "count": 4, "total": 3200.75},
    ]


def test_recent_is_newest_first(client, global_scope, admin_headers):
    res = client.get("/api/dashboard/recent", headers=admin_headers)
    data = res.json()["data"]

    assert len(data) == len(DEMO_TRANSACTIONS)
    assert data[0]["description"] == "Software licenses"
    assert data[-1]["description"] == "Product sales revenue"


def test_seed_is_idempotent(seeded):
    assert seed_database(seeded) is False
    assert stats.summary(seeded)["transactionCount"] == len(DEMO_TRANSACTIONS)
