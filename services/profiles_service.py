"""Service layer for user profiles and contact cards."""

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from models.profile import ContactCard, Profile, ProfileUpdate
from models.user import User
from repos import profiles_repo


async def get_my_profile(
    session: AsyncSession,
    *,
    user: User,
) -> Profile:
    """
    Get the caller's own profile.

    Raises:
        HTTPException: 404 if the caller has not saved a profile yet
    """
    profile = await profiles_repo.get_by_user_id(session, user_id=user.id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found",
        )
    return profile


async def upsert_my_profile(
    session: AsyncSession,
    *,
    user: User,
    payload: ProfileUpdate,
) -> Profile:
    """
    Create or update the caller's profile.

    Only fields present in the request body are written.

    Args:
        session: Database session
        user: Authenticated user; a profile can only be written by its owner
        payload: Profile fields

    Returns:
        The stored profile
    """
    profile = await profiles_repo.get_by_user_id(session, user_id=user.id)
    values = payload.model_dump(exclude_unset=True)

    if profile is None:
        profile = await profiles_repo.create(session, Profile(id=user.id, **values))
    else:
        for field, value in values.items():
            setattr(profile, field, value)

    await session.commit()
    await session.refresh(profile)
    return profile


async def get_contact_card(
    session: AsyncSession,
    *,
    user_id: UUID,
) -> ContactCard:
    """
    Public contact details of a user (no bot credentials).

    Raises:
        HTTPException: 404 if the user does not exist
    """
    found = await profiles_repo.get_contact(session, user_id=user_id)
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    user, profile = found
    return ContactCard(
        id=user.id,
        email=user.email,
        full_name=profile.full_name if profile and profile.full_name else user.name,
        phone=profile.phone if profile else None,
        whatsapp=profile.whatsapp if profile else None,
        telegram=profile.telegram if profile else None,
    )
