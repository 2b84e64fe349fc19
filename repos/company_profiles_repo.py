"""Repository for CompanyProfile database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.company_profile import CompanyProfile


async def get_by_project_id(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> CompanyProfile | None:
    result = await session.execute(
        select(CompanyProfile).where(CompanyProfile.project_id == project_id)
    )
    return result.scalar_one_or_none()


async def create(session: AsyncSession, company_profile: CompanyProfile) -> CompanyProfile:
    session.add(company_profile)
    await session.flush()
    await session.refresh(company_profile)
    return company_profile
