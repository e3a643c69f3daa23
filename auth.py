from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PayloadError

from config import settings
from errors import Unauthorized
from schemas import TokenPayload

SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE_HOURS = settings.access_token_expire_hours

#  Use Argon2id (modern, memory-hard)
pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    # Argon2id settings
    argon2__type="ID",
    argon2__memory_cost=65536,  # 64 MB
    argon2__time_cost=3,
    argon2__parallelism=1,
)

# Verified against when the username does not exist, so an unknown user
# costs the same hash work as a wrong password.
_DUMMY_HASH = pwd_context.hash("not-a-real-password")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def burn_verify(plain_password: str) -> None:
    pwd_context.verify(plain_password, _DUMMY_HASH)


def get_password_hash(password: str) -> str:
    # Optional: enforce a max length to avoid pathological huge input
    if len(password) > 256:
        raise ValueError("Password too long")
    return pwd_context.hash(password)


def create_access_token(
    user_id: str,
    username: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)

    issued_at = datetime.now(timezone.utc)
    to_encode = {
        "sub": user_id,
        "username": username,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + expires_delta).timestamp()),
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """Check signature and expiry. Every failure looks the same to the caller."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        return TokenPayload(**payload)
    except (JWTError, PayloadError, TypeError):
        raise Unauthorized("Invalid or expired token")
