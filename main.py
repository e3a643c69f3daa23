"""Main FastAPI application for the financial transaction dashboard."""
import datetime as dt
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, Depends, Query
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from prometheus_fastapi_instrumentator import Instrumentator

import stats
from auth import create_access_token, decode_access_token
from config import Settings, get_settings, settings
from database import create_tables, get_session, make_engine
from errors import Unauthorized, register_error_handlers
from logging_config import setup_logging
from models import TransactionCategory, TransactionStatus, User
from schemas import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    AuthResult,
    CategoryStat,
    DashboardStats,
    Envelope,
    PaginatedEnvelope,
    PasswordChange,
    ProfileUpdate,
    StatusStat,
    TransactionCreate,
    TransactionFilters,
    TransactionRead,
    TransactionUpdate,
    UserCreate,
    UserLogin,
    UserRead,
    envelope,
)
from seed import seed_database
from store import TransactionStore, UserStore, coerce, total_pages

APP_NAME = "financial-dashboard"
APP_VERSION = "0.2.0"

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run once when the app starts:
    - Open the engine and create tables (waiting for the database)
    - Seed the demo dataset when asked to
    and dispose of the engine on shutdown.
    """
    setup_logging(settings.log_level)
    engine = make_engine(settings.database_url)
    create_tables(engine)

    if settings.seed_demo_data:
        with Session(engine) as session:
            seed_database(session)

    app.state.engine = engine
    logger.info("Database ready, tables created (scope=%s)", settings.data_scope)
    try:
        yield
    finally:
        engine.dispose()
        logger.info("Database engine disposed")


#FastAPI is the main framework that handles HTTP requests.
app = FastAPI(title="Financial Dashboard", version=APP_VERSION, lifespan=lifespan)
register_error_handlers(app)
# Expose Prometheus metrics at /metrics
instrumentator = Instrumentator().instrument(app)
instrumentator.expose(app)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


#API endpoint for quick health checks
@app.get("/")
def root():
    return {"message": "Financial Dashboard API is running. See /health for status."}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "timestamp": dt.datetime.now(dt.timezone.utc).isoformat(),
        "app": APP_NAME,
        "version": APP_VERSION,
    }


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    """Resolve the current user from a bearer token."""
    if not token:
        raise Unauthorized("Access token required")

    payload = decode_access_token(token)
    user = UserStore(session).find_by_id(payload.user_id)
    if user is None:
        raise Unauthorized("Invalid or expired token")
    return user


def get_owner_scope(
    current_user: User = Depends(get_current_user),
    app_settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """Owner id to scope reads by, or None when the deployment is single-tenant."""
    return current_user.id if app_settings.per_user else None


def get_filters(
    search: Optional[str] = None,
    category: Optional[TransactionCategory] = None,
    status_: Optional[TransactionStatus] = Query(None, alias="status"),
    user: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    amount_from: Optional[Decimal] = Query(None, alias="amountFrom", ge=0),
    amount_to: Optional[Decimal] = Query(None, alias="amountTo", ge=0),
) -> TransactionFilters:
    return coerce(
        TransactionFilters,
        {
            "search": search,
            "category": category,
            "status": status_,
            "user": user,
            "date_from": date_from,
            "date_to": date_to,
            "amount_from": amount_from,
            "amount_to": amount_to,
        },
    )


# AUTH ENDPOINTS
@app.post(
    "/auth/register",
    response_model=Envelope[AuthResult],
    response_model_exclude_none=True,
    status_code=201,
)
def register_user(
    user_in: UserCreate,
    session: Session = Depends(get_session),
):
    """Register a new user and sign them in.

    The row is only committed once the token has been issued.
    """
    users = UserStore(session)
    user = users.create_user(user_in.username, user_in.password, email=user_in.email, commit=False)
    token = create_access_token(user.id, user.username)
    users.commit(user)
    logger.info("Registered user %s", user.username)
    return envelope({"user": user, "token": token})


@app.post("/auth/login", response_model=Envelope[AuthResult], response_model_exclude_none=True)
def login(
    user_in: UserLogin,
    session: Session = Depends(get_session),
):
    """Authenticate a user and return a bearer token."""
    user = UserStore(session).authenticate(user_in.username, user_in.password)
    token = create_access_token(user.id, user.username)
    return envelope({"user": user, "token": token})


@app.get("/auth/me", response_model=Envelope[UserRead], response_model_exclude_none=True)
def read_current_user(current_user: User = Depends(get_current_user)):
    """Return the current authenticated user."""
    return envelope(current_user)


@app.post("/auth/change-password", response_model=Envelope, response_model_exclude_none=True)
def change_password(
    payload: PasswordChange,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Change the current user's password."""
    UserStore(session).change_password(
        current_user.id, payload.current_password, payload.new_password
    )
    return envelope(message="Password updated")


# USER ENDPOINTS
@app.get("/api/users", response_model=Envelope[list[UserRead]], response_model_exclude_none=True)
def list_users(
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """List every user, newest first."""
    return envelope(UserStore(session).list_users())


@app.get("/api/users/profile", response_model=Envelope[UserRead], response_model_exclude_none=True)
def read_profile(current_user: User = Depends(get_current_user)):
    return envelope(current_user)


@app.put("/api/users/profile", response_model=Envelope[UserRead], response_model_exclude_none=True)
def update_profile(
    payload: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Change username and/or email; only supplied fields are touched."""
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    user = UserStore(session).update_profile(current_user.id, **data)
    return envelope(user)


# TRANSACTION ENDPOINTS
@app.get(
    "/api/transactions",
    response_model=PaginatedEnvelope[TransactionRead],
    response_model_exclude_none=True,
)
def list_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    filters: TransactionFilters = Depends(get_filters),
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    """Filtered page of transactions, newest first."""
    items, total = TransactionStore(session).list(filters, page=page, limit=limit, owner_id=owner_id)
    body = envelope(items)
    body["pagination"] = {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages(total, limit),
    }
    return body


@app.get(
    "/api/transactions/{transaction_id}",
    response_model=Envelope[TransactionRead],
    response_model_exclude_none=True,
)
def get_transaction(
    transaction_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    return envelope(TransactionStore(session).get_or_404(transaction_id, owner_id))


@app.post(
    "/api/transactions",
    response_model=Envelope[TransactionRead],
    response_model_exclude_none=True,
    status_code=201,
)
def create_transaction(
    payload: TransactionCreate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    """Create a transaction owned by the caller."""
    return envelope(TransactionStore(session).create(payload, current_user.id))


# Partially update a transaction by id. Only the fields provided in the request are changed.
@app.put(
    "/api/transactions/{transaction_id}",
    response_model=Envelope[TransactionRead],
    response_model_exclude_none=True,
)
def update_transaction(
    transaction_id: int,
    payload: TransactionUpdate,
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    return envelope(TransactionStore(session).update(transaction_id, payload, owner_id))


@app.delete("/api/transactions/{transaction_id}", response_model=Envelope, response_model_exclude_none=True)
def delete_transaction(
    transaction_id: int,
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    TransactionStore(session).delete(transaction_id, owner_id)
    return envelope(message="Transaction deleted successfully")


# DASHBOARD / STATS
# Totals, per-month series and breakdowns; floats rounded like money.
@app.get(
    "/api/dashboard/stats",
    response_model=Envelope[DashboardStats],
    response_model_exclude_none=True,
)
def dashboard_stats(
    owner_id: Optional[str] = Depends(get_owner_scope),
    app_settings: Settings = Depends(get_settings),
    session: Session = Depends(get_session),
):
    return envelope(stats.dashboard_stats(session, owner_id, months=app_settings.monthly_window))


@app.get(
    "/api/dashboard/categories",
    response_model=Envelope[list[CategoryStat]],
    response_model_exclude_none=True,
)
def category_stats(
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    return envelope(stats.category_breakdown(session, owner_id))


@app.get(
    "/api/dashboard/status",
    response_model=Envelope[list[StatusStat]],
    response_model_exclude_none=True,
)
def status_stats(
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    return envelope(stats.status_breakdown(session, owner_id))


@app.get(
    "/api/dashboard/recent",
    response_model=Envelope[list[TransactionRead]],
    response_model_exclude_none=True,
)
def recent_transactions(
    owner_id: Optional[str] = Depends(get_owner_scope),
    session: Session = Depends(get_session),
):
    return envelope(TransactionStore(session).recent(owner_id=owner_id))
