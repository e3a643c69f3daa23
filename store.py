"""Credential Store and Transaction Store.

Both wrap a SQLModel ``Session`` handed in by the caller (a request
dependency in the API, a plain ``with Session(engine)`` in scripts and
tests). ``owner_id`` arguments scope an operation to one user's rows;
``None`` means unscoped.
"""
import datetime as dt
import logging
from math import ceil
from typing import Any, Optional

from pydantic import ValidationError as SchemaError
from sqlalchemy import String, cast, func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from auth import burn_verify, get_password_hash, verify_password
from database import save_and_refresh
from errors import Conflict, InvalidCredentials, NotFound, ValidationError
from models import DEFAULT_PROFILE_URL, Transaction, User
from schemas import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TransactionCreate,
    TransactionFilters,
    TransactionUpdate,
)
from utils import utcnow

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def coerce(model, data: Any):
    """Validate a dict into `model`, turning pydantic errors into ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]) or "body", "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError(details=details)


def touch(previous: Optional[dt.datetime]) -> dt.datetime:
    """A fresh updated_at that is strictly later than the previous one."""
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + dt.timedelta(microseconds=1)
    return now


class UserStore:
    def __init__(self, session: Session):
        self.session = session

    def find_by_username(self, username: str) -> User | None:
        """Fetch a user by username or return None."""
        stmt = select(User).where(User.username == username)
        return self.session.exec(stmt).first()

    def find_by_id(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def find_by_email(self, email: str) -> User | None:
        return self.session.exec(select(User).where(User.email == email)).first()

    def list_users(self) -> list[User]:
        stmt = select(User).order_by(col(User.created_at).desc())
        return list(self.session.exec(stmt).all())

    def create_user(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
        commit: bool = True,
    ) -> User:
        """Insert a user after hashing the password.

        With ``commit=False`` the row is only flushed; the caller commits
        once whatever else belongs to the operation has succeeded.
        """
        if self.find_by_username(username):
            raise Conflict("Username already exists")
        if email and self.find_by_email(email):
            raise Conflict("Email already exists")

        user = User(
            username=username,
            email=email,
            hashed_password=get_password_hash(password),
        )
        if user_id is not None:
            user.id = user_id

        self.session.add(user)
        try:
            self.session.flush()
        except IntegrityError:
            # lost a race against a concurrent registration
            self.session.rollback()
            if email and self.session.exec(select(User).where(User.email == email)).first():
                raise Conflict("Email already exists")
            raise Conflict("Username already exists")

        if commit:
            self.commit(user)
        return user

    def commit(self, user: User) -> User:
        self.session.commit()
        self.session.refresh(user)
        return user

    def authenticate(self, username: str, password: str) -> User:
        """Return the user, or raise one InvalidCredentials for either failure."""
        user = self.find_by_username(username)
        if user is None:
            burn_verify(password)
            logger.info("Login failed for unknown user")
            raise InvalidCredentials()
        if not verify_password(password, user.hashed_password):
            logger.info("Login failed for user %s", user.id)
            raise InvalidCredentials()
        return user

    def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Change only the supplied fields, keeping username/email unique."""
        if username is None and email is None:
            raise ValidationError("No fields to update")

        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")

        if username is not None and username != user.username:
            existing = self.session.exec(
                select(User).where(User.username == username, User.id != user_id)
            ).first()
            if existing:
                raise Conflict("Username already exists")
            user.username = username

        if email is not None and email != user.email:
            existing = self.session.exec(
                select(User).where(User.email == email, User.id != user_id)
            ).first()
            if existing:
                raise Conflict("Email already exists")
            user.email = email

        user.updated_at = touch(user.updated_at)
        return save_and_refresh(self.session, user)

    def change_password(self, user_id: str, current_password: str, new_password: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError.for_field("current_password", "Current password is incorrect")

        user.hashed_password = get_password_hash(new_password)
        user.updated_at = touch(user.updated_at)
        return save_and_refresh(self.session, user)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def apply_filters(stmt, filters: TransactionFilters, owner_id: Optional[str] = None):
    """AND every supplied criterion onto `stmt`; only the search ORs internally."""
    if owner_id is not None:
        stmt = stmt.where(Transaction.user_id == owner_id)

    if filters.search:
        pattern = _like_pattern(filters.search)
        stmt = stmt.where(
            or_(
                col(Transaction.description).ilike(pattern, escape="\\"),
                cast(col(Transaction.amount), String).ilike(pattern, escape="\\"),
                col(Transaction.user_id).ilike(pattern, escape="\\"),
            )
        )

    if filters.category is not None:
        stmt = stmt.where(Transaction.category == filters.category)
    if filters.status is not None:
        stmt = stmt.where(Transaction.status == filters.status)
    if filters.user:
        stmt = stmt.where(Transaction.user_id == filters.user)

    if filters.date_from is not None:
        stmt = stmt.where(Transaction.date >= filters.date_from)
    if filters.date_to is not None:
        stmt = stmt.where(Transaction.date <= filters.date_to)

    if filters.amount_from is not None:
        stmt = stmt.where(Transaction.amount >= filters.amount_from)
    if filters.amount_to is not None:
        stmt = stmt.where(Transaction.amount <= filters.amount_to)

    return stmt


class TransactionStore:
    def __init__(self, session: Session):
        self.session = session

    def recent(self, limit: int = RECENT_LIMIT, owner_id: Optional[str] = None) -> list[Transaction]:
        stmt = select(Transaction)
        if owner_id is not None:
            stmt = stmt.where(Transaction.user_id == owner_id)
        stmt = stmt.order_by(col(Transaction.date).desc(), col(Transaction.id)).limit(limit)
        return list(self.session.exec(stmt).all())

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        owner_id: Optional[str] = None,
    ) -> tuple[list[Transaction], int]:
        """One page of matching rows, newest first, plus the unpaginated total."""
        filters = filters or TransactionFilters()
        if page < 1:
            raise ValidationError.for_field("page", "Page must be a positive integer")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError.for_field("limit", f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        count_stmt = apply_filters(
            select(func.count()).select_from(Transaction), filters, owner_id
        )
        total = self.session.exec(count_stmt).one()
        offset = (page - 1) * limit
        if offset >= total:
            # past the last page; also keeps huge offsets out of the query
            return [], total

        stmt = (
            apply_filters(select(Transaction), filters, owner_id)
            .order_by(col(Transaction.date).desc(), col(Transaction.id))
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.exec(stmt).all()), total

    def get(self, transaction_id: int, owner_id: Optional[str] = None) -> Transaction | None:
        transaction = self.session.get(Transaction, transaction_id)
        if transaction is None:
            return None
        if owner_id is not None and transaction.user_id != owner_id:
            return None
        return transaction

    def get_or_404(self, transaction_id: int, owner_id: Optional[str] = None) -> Transaction:
        transaction = self.get(transaction_id, owner_id)
        if transaction is None:
            raise NotFound("Transaction not found")
        return transaction

    def create(self, data: Any, owner_id: str) -> Transaction:
        payload = coerce(TransactionCreate, data)
        if self.session.get(User, owner_id) is None:
            raise NotFound("User not found")

        now = utcnow()
        row = Transaction(
            date=payload.date,
            amount=payload.amount,
            category=payload.category,
            status=payload.status,
            description=payload.description,
            user_id=owner_id,
            user_profile=DEFAULT_PROFILE_URL,
            created_at=now,
            updated_at=now,
        )
        row = save_and_refresh(self.session, row)
        logger.info("Created transaction %s for user %s", row.id, owner_id)
        return row

    def update(self, transaction_id: int, data: Any, owner_id: Optional[str] = None) -> Transaction:
        """Patch a transaction. Only the fields provided are changed."""
        payload = coerce(TransactionUpdate, data)
        transaction = self.get_or_404(transaction_id, owner_id)

        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(transaction, field, value)
        transaction.updated_at = touch(transaction.updated_at)

        return save_and_refresh(self.session, transaction)

    def delete(self, transaction_id: int, owner_id: Optional[str] = None) -> None:
        transaction = self.get_or_404(transaction_id, owner_id)
        self.session.delete(transaction)
        self.session.commit()
        logger.info("Deleted transaction %s", transaction_id)


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0
