"""Authentication endpoints (DEV-ONLY)."""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.deps import get_current_user, get_db
from auth.jwt import create_access_token
from models.user import User, UserResponse
from repos import users_repo

router = APIRouter()


class DevLoginRequest(BaseModel):
    """Request schema for dev login."""

    email: EmailStr
    name: str | None = None


class DevLoginResponse(BaseModel):
    """Response schema for dev login."""

    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


@router.post("/auth/dev-login", response_model=DevLoginResponse)
async def dev_login(
    request: DevLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    DEV-ONLY endpoint to login user and return JWT token.

    This endpoint:
    - Finds or creates a user by email
    - Returns a signed JWT with user_id and email

    Args:
        request: Login request with email and optional display name
        db: Database session

    Returns:
        DevLoginResponse: JWT token and user information
    """
    # Check if dev environment
    if config.settings.APP_ENV == "production":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Dev login is not available in production",
        )

    email_lower = request.email.lower()

    try:
        user = await users_repo.get_by_email(db, email=email_lower)
        if not user:
            user_name = request.name or email_lower.split("@")[0].replace(".", " ").title()
            user = await users_repo.create(
                db,
                User(email=email_lower, name=user_name, is_active=True),
            )
            await db.commit()
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to login: {str(e)}",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    token = create_access_token(user_id=user.id, email=user.email)
    return DevLoginResponse(
        access_token=token,
        user_id=str(user.id),
        email=user.email,
    )


@router.get("/auth/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """The authenticated user."""
    return current_user
