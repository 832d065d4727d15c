"""
Authentication utilities for JWT bearer tokens.
Tokens are issued by the identity provider; this service verifies them and reads
the user id and role claims.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from app.config import settings


ADMIN_ROLE = "admin"


class TokenPayload:
    """JWT token payload structure."""

    def __init__(self, user_id: str, role: Optional[str], exp: Optional[datetime] = None):
        self.user_id = user_id
        self.role = role
        self.exp = exp

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenPayload":
        """Create TokenPayload from dictionary."""
        exp = data.get("exp")
        return cls(
            user_id=data["sub"],
            role=data.get("role"),
            exp=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None
        )


def create_access_token(
    user_id: str,
    role: str = "user",
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create JWT access token with user claims.
    Used by local tooling and tests; production tokens come from the identity provider.

    Args:
        user_id: User identifier (token subject)
        role: User's role
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

    to_encode = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
        "iat": now,
        "type": "access"
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def verify_token(token: str) -> TokenPayload:
    """
    Verify and decode JWT access token.

    Args:
        token: JWT token string

    Returns:
        TokenPayload with the user claims

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )

        if payload.get("type", "access") != "access":
            raise JWTError("Invalid token type. Expected access")

        if not payload.get("sub"):
            raise JWTError("Invalid token payload")

        return TokenPayload.from_dict(payload)

    except JWTError:
        raise
    except Exception as e:
        raise JWTError(f"Token validation error: {str(e)}")
