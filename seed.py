"""Demo dataset: four users and ten transactions across 2024.

Run ``python seed.py`` to seed the configured database, or set
``SEED_DEMO_DATA=true`` to seed on application startup.
"""
import logging
from decimal import Decimal

from sqlalchemy import func
from sqlmodel import Session, select

from models import DEFAULT_PROFILE_URL, Transaction, TransactionCategory, TransactionStatus, User
from store import UserStore
from utils import normalize_iso_datetime

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    ("user_001", "admin", "admin@example.com"),
    ("user_002", "user1", "user1@example.com"),
    ("user_003", "user2", "user2@example.com"),
    ("user_004", "user3", "user3@example.com"),
]

# (date, amount, category, status, owner, description)
DEMO_TRANSACTIONS = [
    ("2024-01-15T08:34:12Z", "1500.00", "Revenue", "Paid", "user_001", "Product sales revenue"),
    ("2024-02-21T11:14:38Z", "1200.50", "Expense", "Paid", "user_002", "Office supplies purchase"),
    ("2024-03-03T18:22:04Z", "300.75", "Revenue", "Pending", "user_003", "Consulting services"),
    ("2024-04-10T05:03:11Z", "5000.00", "Expense", "Paid", "user_004", "Equipment purchase"),
    ("2024-05-20T12:01:45Z", "800.00", "Revenue", "Pending", "user_001", "Service fees"),
    ("2024-06-12T03:13:09Z", "2200.25", "Expense", "Paid", "user_002", "Marketing campaign"),
    ("2024-07-14T09:45:33Z", "900.00", "Revenue", "Pending", "user_003", "License fees"),
    ("2024-08-05T17:30:23Z", "150.00", "Expense", "Paid", "user_004", "Utility bills"),
    ("2024-09-10T02:10:59Z", "650.00", "Revenue", "Paid", "user_001", "Subscription revenue"),
    ("2024-10-30T14:55:12Z", "1200.00", "Expense", "Pending", "user_002", "Software licenses"),
]


def seed_database(session: Session) -> bool:
    """Seed the demo users and transactions if there are no users yet."""
    user_count = session.exec(select(func.count()).select_from(User)).one()
    if user_count:
        logger.info("Users already exist, skipping seed")
        return False

    users = UserStore(session)
    for user_id, username, email in DEMO_USERS:
        users.create_user(username, DEMO_PASSWORD, email=email, user_id=user_id, commit=False)

    session.add_all(
        [
            Transaction(
                date=normalize_iso_datetime(date),
                amount=Decimal(amount),
                category=TransactionCategory(category),
                status=TransactionStatus(status),
                user_id=owner,
                user_profile=DEFAULT_PROFILE_URL,
                description=description,
            )
            for date, amount, category, status, owner, description in DEMO_TRANSACTIONS
        ]
    )
    session.commit()
    logger.info("Seeded %d users and %d transactions", len(DEMO_USERS), len(DEMO_TRANSACTIONS))
    return True


if __name__ == "__main__":
    from config import settings
    from database import create_tables, make_engine
    from logging_config import setup_logging

    setup_logging(settings.log_level)
    engine = make_engine(settings.database_url)
    create_tables(engine)
    with Session(engine) as session:
        seed_database(session)
    engine.dispose()
