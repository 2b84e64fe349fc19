"""Profile endpoints: own profile and public contact cards."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from models.profile import ContactCard, ProfileResponse, ProfileUpdate
from models.user import User
from services import profiles_service

router = APIRouter()


@router.get("/profiles/me", response_model=ProfileResponse)
async def get_my_profile_endpoint(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await profiles_service.get_my_profile(db, user=current_user)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch profile: {str(e)}",
        )


@router.put("/profiles/me", response_model=ProfileResponse)
async def upsert_my_profile_endpoint(
    profile_data: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create or update the caller's profile."""
    try:
        return await profiles_service.upsert_my_profile(
            db,
            user=current_user,
            payload=profile_data,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save profile: {str(e)}",
        )


@router.get("/profiles/{user_id}", response_model=ContactCard)
async def get_contact_card_endpoint(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Public contact details of a user, e.g. the auditor shown on a project."""
    try:
        return await profiles_service.get_contact_card(db, user_id=user_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch contact: {str(e)}",
        )
