"""API dependencies for dependency injection."""

from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import sessionmaker

from daysummary.core.exceptions import AuthenticationError
from daysummary.core.security import TokenData, decode_token
from daysummary.database import SessionLocal
from daysummary.services.openai_service import OpenAIService

# Tokens are issued by the identity provider; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/auth/token",
    auto_error=False,  # Don't auto-raise, we handle it manually
)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
) -> TokenData:
    """Get the current authenticated caller from JWT token.

    Raises:
        AuthenticationError: If not authenticated or token invalid.
    """
    if not token:
        raise AuthenticationError("Not authenticated")

    return decode_token(token)


def get_session_factory() -> sessionmaker:
    """Session factory handed to services that open one session per query."""
    return SessionLocal


def get_llm_service() -> OpenAIService:
    """LLM client used for narrative generation."""
    return OpenAIService()
