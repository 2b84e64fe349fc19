"""FastAPI dependencies for authentication, database and app-wide services."""

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import decode_token
from db import get_db as get_db_session
from models.user import User
from repos import users_repo
from services.ai_gateway import AIGateway
from services.realtime import ChangeBus

# HTTP Bearer token security scheme
security = HTTPBearer()


async def get_db() -> AsyncSession:
    """
    Dependency to get database session.
    Reuses the get_db function from db.py.
    """
    async for session in get_db_session():
        yield session


async def authenticate_token(token: str, db: AsyncSession) -> User:
    """
    Resolve a bearer token to an active user.

    Raises:
        HTTPException: 401 if the token is invalid or the user is unknown,
            403 if the user is inactive
    """
    try:
        token_payload = decode_token(token)
        user_id = UUID(token_payload.sub)
    except (JWTError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
        )

    user = await users_repo.get_by_id(db, user_id=user_id)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token from Authorization header
        db: Database session

    Returns:
        User: The authenticated user

    Raises:
        HTTPException: If token is invalid, expired, or user not found
    """
    return await authenticate_token(credentials.credentials, db)


def get_change_bus(request: Request) -> ChangeBus:
    """The process-wide change bus held on app.state."""
    return request.app.state.change_bus


def get_ai_gateway(request: Request) -> AIGateway:
    """The AI gateway held on app.state."""
    return request.app.state.ai_gateway
