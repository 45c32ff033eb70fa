"""Password hashing and access tokens."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from taskhub.config import get_settings
from taskhub.core.exceptions import AuthenticationError


@dataclass(frozen=True)
class Identity:
    """Caller identity carried by a bearer token."""

    user_id: UUID
    organization_id: UUID
    role: str
    email: str


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=get_settings().bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(
    user_id: UUID,
    organization_id: UUID,
    role: str,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT carrying the caller's identity."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    to_encode = {
        "sub": str(user_id),
        "org_id": str(organization_id),
        "role": role,
        "email": email,
        "exp": expire,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key.get_secret_value(),
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> Identity:
    """Validate a token and return its identity; AuthenticationError otherwise."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key.get_secret_value(),
            algorithms=[settings.jwt_algorithm],
        )
        return Identity(
            user_id=UUID(payload["sub"]),
            organization_id=UUID(payload["org_id"]),
            role=payload["role"],
            email=payload.get("email", ""),
        )
    except (JWTError, KeyError, TypeError, ValueError):
        raise AuthenticationError("Invalid or expired token")
