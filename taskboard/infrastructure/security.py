"""Security helpers for hashing and token generation."""

from datetime import datetime, timedelta, timezone
from hashlib import sha256

from jose import JWTError, jwt
from passlib.context import CryptContext

from taskboard.config import get_settings
from taskboard.domain.entities import User

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=310_000,
)

_ALGORITHM = "HS256"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def password_signature(user: User) -> str:
    """Fingerprint of the stored password hash and active flag.

    Embedded in issued tokens; changing the password or deactivating the
    account invalidates every token signed before.
    """

    return sha256(f"{user.password}:{int(user.is_active)}".encode()).hexdigest()


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode({**data, "exp": expire}, settings.secret_key, algorithm=_ALGORITHM)


def create_user_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    """Issue a bearer token for ``user``."""

    return create_access_token(
        {"sub": user.email, "pwd_sig": password_signature(user)},
        expires_delta=expires_delta,
    )


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


__all__ = [
    "create_access_token",
    "create_user_access_token",
    "decode_access_token",
    "get_password_hash",
    "password_signature",
]
