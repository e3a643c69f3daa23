"""Application settings read from the environment (and an optional .env file)."""
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

DATA_SCOPES = ("user", "global")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./dashboard.db"
    secret_key: str = "CHANGE_ME_TO_SOMETHING_RANDOM_AND_SECRET"
    algorithm: str = "HS256"
    access_token_expire_hours: int = 24
    # "user": every read is limited to the caller's rows.
    # "global": single-tenant, everyone sees every row.
    data_scope: str = "user"
    monthly_window: int = 12
    seed_demo_data: bool = False
    log_level: str = "INFO"

    @property
    def per_user(self) -> bool:
        return self.data_scope == "user"

    @staticmethod
    def load() -> "Settings":
        data_scope = os.getenv("DATA_SCOPE", "user").strip().lower()
        if data_scope not in DATA_SCOPES:
            raise RuntimeError(f"DATA_SCOPE must be one of {DATA_SCOPES}, got {data_scope!r}")

        expire_hours = _env_int("ACCESS_TOKEN_EXPIRE_HOURS", 24)
        if expire_hours <= 0:
            raise RuntimeError("ACCESS_TOKEN_EXPIRE_HOURS must be positive")

        monthly_window = _env_int("MONTHLY_WINDOW", 12)
        if monthly_window < 1:
            raise RuntimeError("MONTHLY_WINDOW must be at least 1")

        return Settings(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./dashboard.db").strip(),
            secret_key=os.getenv("SECRET_KEY", Settings.secret_key),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256").strip(),
            access_token_expire_hours=expire_hours,
            data_scope=data_scope,
            monthly_window=monthly_window,
            seed_demo_data=_env_bool("SEED_DEMO_DATA", False),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        )


settings = Settings.load()


def get_settings() -> Settings:
    """FastAPI dependency; tests override it to switch scope."""
    return settings
