"""Security utilities for JWT authentication."""

from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from daysummary.config import get_settings
from daysummary.core.exceptions import AuthenticationError, AuthorizationError

settings = get_settings()

SERVICE_ROLE = "service"


class TokenData(BaseModel):
    """Data extracted from JWT token."""
    subject: str
    role: str = "user"
    exp: Optional[datetime] = None

    @property
    def is_service(self) -> bool:
        return self.role == SERVICE_ROLE


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token (``sub`` and optionally ``role``).
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (
        expires_delta or timedelta(hours=settings.jwt_expire_hours)
    )
    to_encode.update({"exp": expire})

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_token(token: str) -> TokenData:
    """Decode and validate a JWT token.

    Raises:
        AuthenticationError: If token is invalid or expired.
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as e:
        raise AuthenticationError(f"Invalid token: {str(e)}")

    subject = payload.get("sub")
    if subject is None:
        raise AuthenticationError("Invalid token: missing subject")
    return TokenData(subject=str(subject), role=payload.get("role") or "user")


def ensure_can_access_user(token: TokenData, user_id: str) -> None:
    """Users may only touch their own data; service tokens may touch anyone's."""
    if token.is_service or token.subject == user_id:
        return
    raise AuthorizationError(f"Token subject may not access user {user_id}")
