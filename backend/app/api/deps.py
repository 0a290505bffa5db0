"""API dependencies for dependency injection."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.auth_service import AuthService

# Security scheme
security = HTTPBearer()

# Type aliases for cleaner signatures
DbSession = Annotated[AsyncSession, Depends(get_db)]


@dataclass
class AuthenticatedUser:
    """Caller identity taken from the bearer token."""

    id: str
    github_token: str


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> AuthenticatedUser:
    """Get the current authenticated user from JWT token."""
    auth_service = AuthService()

    payload = auth_service.verify_jwt(credentials.credentials)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    github_token = payload.get("github_token")
    if not user_id or not github_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    return AuthenticatedUser(id=str(user_id), github_token=github_token)


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
