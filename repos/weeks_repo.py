"""Repository for Week database operations."""

from uuid import UUID

from sqlalchemy import delete as sql_delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.week import Week


async def get_by_id(
    session: AsyncSession,
    *,
    week_id: UUID,
    for_update: bool = False,
) -> Week | None:
    """
    Get a week by ID.

    Args:
        session: Database session
        week_id: Week ID to fetch
        for_update: Lock the row for a read-modify-write of its plan
            (ignored by backends without row locks)

    Returns:
        Week if found, None otherwise
    """
    query = select(Week).where(Week.id == week_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_by_project(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> list[Week]:
    """
    List a project's weeks ordered by start date.

    Args:
        session: Database session
        project_id: Owning project

    Returns:
        List of weeks
    """
    query = (
        select(Week)
        .where(Week.project_id == project_id)
        .order_by(Week.start_date.asc(), Week.created_at.asc())
    )
    result = await session.execute(query)
    return [week for week in result.scalars().all()]


async def create(session: AsyncSession, week: Week) -> Week:
    session.add(week)
    await session.flush()
    await session.refresh(week)
    return week


async def delete(session: AsyncSession, week: Week) -> None:
    await session.delete(week)
    await session.flush()


async def delete_by_project(session: AsyncSession, *, project_id: UUID) -> list[UUID]:
    """Delete every week of a project; returns the deleted ids."""
    result = await session.execute(
        sql_delete(Week).where(Week.project_id == project_id).returning(Week.id)
    )
    return [row[0] for row in result.all()]
