import uuid
from enum import Enum
from typing import Optional
from decimal import Decimal
from datetime import datetime

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Numeric

from utils import utcnow

DEFAULT_PROFILE_URL = "https://thispersondoesnotexist.com/"
DESCRIPTION_MAX_LEN = 500


class TransactionCategory(str, Enum):
    Revenue = "Revenue"
    Expense = "Expense"


class TransactionStatus(str, Enum):
    Paid = "Paid"
    Pending = "Pending"


def new_user_id() -> str:
    return uuid.uuid4().hex


# These classes describe what data will be stored in the database.
# Each class = one table.
class User(SQLModel, table=True):
    """Registered user. The password is only ever stored hashed."""
    __tablename__ = "users"

    id: str = Field(default_factory=new_user_id, primary_key=True)
    username: str = Field(index=True, unique=True, max_length=30)
    hashed_password: str
    email: Optional[str] = Field(default=None, index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """A single revenue or expense entry owned by one user.
    - 'category' = Revenue or Expense
    - 'status' = Paid or Pending
    - 'date' is stored as naive UTC.
    """
    __tablename__ = "transactions"

    id: Optional[int] = Field(default=None, primary_key=True)
    date: datetime = Field(index=True)
    amount: Decimal = Field(sa_column=Column(Numeric(12, 2), nullable=False))
    category: TransactionCategory = Field(index=True)
    status: TransactionStatus = Field(index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    user_profile: Optional[str] = Field(default=DEFAULT_PROFILE_URL)
    description: str = Field(max_length=DESCRIPTION_MAX_LEN)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
