"""Repository for Profile database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.profile import Profile
from models.user import User


async def get_by_user_id(
    session: AsyncSession,
    *,
    user_id: UUID,
) -> Profile | None:
    result = await session.execute(select(Profile).where(Profile.id == user_id))
    return result.scalar_one_or_none()


async def get_contact(
    session: AsyncSession,
    *,
    user_id: UUID,
) -> tuple[User, Profile | None] | None:
    """
    Load a user together with their profile, if any.

    Returns:
        (user, profile) or None when the user does not exist
    """
    query = (
        select(User, Profile)
        .outerjoin(Profile, Profile.id == User.id)
        .where(User.id == user_id)
    )
    result = await session.execute(query)
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def create(session: AsyncSession, profile: Profile) -> Profile:
    session.add(profile)
    await session.flush()
    await session.refresh(profile)
    return profile
