"""Repository for Project database operations."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.project import Project


async def get_by_id(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> Project | None:
    """
    Get a project by ID.

    Args:
        session: Database session
        project_id: Project ID to fetch

    Returns:
        Project if found, None otherwise
    """
    result = await session.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def list(session: AsyncSession) -> list[Project]:
    """
    List all projects, newest first.

    Args:
        session: Database session

    Returns:
        List of projects
    """
    query = select(Project).order_by(Project.created_at.desc())
    result = await session.execute(query)
    return [project for project in result.scalars().all()]


async def create(session: AsyncSession, project: Project) -> Project:
    """
    Create a new project.

    Args:
        session: Database session
        project: Project instance to create

    Returns:
        Created project
    """
    session.add(project)
    await session.flush()
    await session.refresh(project)
    return project


async def delete(session: AsyncSession, project: Project) -> None:
    await session.delete(project)
    await session.flush()
