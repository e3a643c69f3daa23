"""Pydantic/SQLModel schemas for API payloads and validation."""
import re
from typing import Any, Generic, Optional, TypeVar
from decimal import Decimal
import datetime as dt

from sqlmodel import SQLModel, Field
from pydantic import BaseModel, ConfigDict, field_serializer, field_validator

from models import DESCRIPTION_MAX_LEN, TransactionCategory, TransactionStatus
from utils import date_bound, normalize_iso_datetime

USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 30
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 256
# login only rejects absurd input; the real username rules apply at registration
LOGIN_FIELD_MAX_LEN = 256
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")


# Envelope

class Envelope(BaseModel, Generic[T]):
    """Every response body: {success, data?, error?, message?, details?}."""
    success: bool = True
    data: Optional[T] = None
    error: Optional[str] = None
    message: Optional[str] = None
    details: Optional[list[dict]] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    totalPages: int


class PaginatedEnvelope(BaseModel, Generic[T]):
    success: bool = True
    data: list[T]
    pagination: Pagination


# User & Auth schemas

def _check_email(v):
    if v is None:
        return None
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError("Valid email is required")
    return v


class UserRead(SQLModel):
    """Response model for a user (never carries the password hash)."""
    id: str
    username: str
    email: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class UserCreate(SQLModel):
    """Payload for registering a user."""
    username: str = Field(min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    email: Optional[str] = None
    password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _check_email(v)


class UserLogin(SQLModel):
    """Payload for logging in."""
    username: str = Field(min_length=1, max_length=LOGIN_FIELD_MAX_LEN)
    password: str = Field(min_length=1, max_length=LOGIN_FIELD_MAX_LEN)


class ProfileUpdate(SQLModel):
    """Partial profile update; only supplied fields change."""
    username: Optional[str] = Field(default=None, min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN)
    email: Optional[str] = None

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return _check_email(v)


class PasswordChange(BaseModel):
    """Payload to change password."""
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)


class AuthResult(BaseModel):
    """Body of a successful register/login."""
    user: UserRead
    token: str


class TokenPayload(BaseModel):
    """Decoded bearer token."""
    sub: str
    username: str
    iat: int
    exp: int

    @property
    def user_id(self) -> str:
        return self.sub


# Transaction schemas

class DescriptionDateMixin:
    """Shared validators for description trimming and date normalisation."""
    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v):
        if v is None:
            return None
        return normalize_iso_datetime(v)


class TransactionCreate(DescriptionDateMixin, SQLModel):
    """Payload for creating a transaction. The owner comes from the token."""
    date: dt.datetime
    amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    category: TransactionCategory
    status: TransactionStatus
    description: str = Field(min_length=1, max_length=DESCRIPTION_MAX_LEN)


class TransactionUpdate(DescriptionDateMixin, SQLModel):
    """Partial update payload. A field that is present must be valid; null is not allowed."""
    date: Optional[dt.datetime] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    category: Optional[TransactionCategory] = None
    status: Optional[TransactionStatus] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=DESCRIPTION_MAX_LEN)

    @field_validator("date", "amount", "category", "status", "description", mode="after")
    @classmethod
    def reject_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class TransactionRead(BaseModel):
    """Response model for a transaction; amount leaves as a JSON number."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: dt.datetime
    amount: Decimal
    category: TransactionCategory
    status: TransactionStatus
    user_id: str
    user_profile: Optional[str] = None
    description: str
    created_at: dt.datetime
    updated_at: dt.datetime

    @field_serializer("amount")
    def amount_as_number(self, amount: Decimal) -> float:
        return float(amount)


class TransactionFilters(BaseModel):
    """Filter criteria shared by the server query and the client's local filter.

    Date bounds are resolved on construction: a bare date in `date_to`
    means the end of that day.
    """
    search: Optional[str] = None
    category: Optional[TransactionCategory] = None
    status: Optional[TransactionStatus] = None
    user: Optional[str] = None
    date_from: Optional[dt.datetime] = None
    date_to: Optional[dt.datetime] = None
    amount_from: Optional[Decimal] = Field(default=None, ge=0)
    amount_to: Optional[Decimal] = Field(default=None, ge=0)

    @field_validator("search", "user", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("category", "status", mode="before")
    @classmethod
    def empty_enum_to_none(cls, v):
        return None if v == "" else v

    @field_validator("date_from", mode="before")
    @classmethod
    def lower_bound(cls, v):
        return None if v in (None, "") else date_bound(v)

    @field_validator("date_to", mode="before")
    @classmethod
    def upper_bound(cls, v):
        return None if v in (None, "") else date_bound(v, upper=True)


# Dashboard schemas

class MonthlyPoint(BaseModel):
    month: str
    revenue: float
    expenses: float


class DashboardStats(BaseModel):
    totalRevenue: float
    totalExpenses: float
    netIncome: float
    pendingAmount: float
    paidAmount: float
    transactionCount: int
    monthlyData: list[MonthlyPoint]


class CategoryStat(BaseModel):
    category: TransactionCategory
    count: int
    total: float
    average: float


class StatusStat(BaseModel):
    status: TransactionStatus
    count: int
    total: float


def envelope(data: Any = None, message: Optional[str] = None) -> dict:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body
