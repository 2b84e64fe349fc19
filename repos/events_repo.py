"""Repository for Event database operations."""

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from models.event import Event

Parent = aliased(Event)


def _with_parent():
    return (
        select(Event, Parent.content, Parent.author_email)
        .outerjoin(Parent, Event.parent_event_id == Parent.id)
    )


def _rows_to_dicts(rows) -> list[dict[str, Any]]:
    items = []
    for event, parent_content, parent_author in rows:
        parent = None
        if event.parent_event_id is not None and parent_content is not None:
            parent = {"content": parent_content, "author_email": parent_author}
        items.append({"event": event, "parent": parent})
    return items


async def get_by_id(
    session: AsyncSession,
    *,
    event_id: UUID,
) -> Event | None:
    result = await session.execute(select(Event).where(Event.id == event_id))
    return result.scalar_one_or_none()


async def get_with_parent(
    session: AsyncSession,
    *,
    event_id: UUID,
) -> dict[str, Any] | None:
    result = await session.execute(_with_parent().where(Event.id == event_id))
    items = _rows_to_dicts(result.all())
    return items[0] if items else None


async def list_by_task(
    session: AsyncSession,
    *,
    task_id: str,
) -> list[dict[str, Any]]:
    """
    List a plan item's events, oldest first, each with its quoted parent.

    Args:
        session: Database session
        task_id: Plan item id

    Returns:
        List of {"event": Event, "parent": {"content", "author_email"} | None}
    """
    query = (
        _with_parent()
        .where(Event.task_id == task_id)
        .order_by(Event.created_at.asc())
    )
    result = await session.execute(query)
    return _rows_to_dicts(result.all())


async def list_by_week(
    session: AsyncSession,
    *,
    week_id: UUID,
) -> list[dict[str, Any]]:
    """List every event of a week, oldest first, each with its quoted parent."""
    query = (
        _with_parent()
        .where(Event.week_id == week_id)
        .order_by(Event.created_at.asc())
    )
    result = await session.execute(query)
    return _rows_to_dicts(result.all())


async def list_models_by_week(
    session: AsyncSession,
    *,
    week_id: UUID,
) -> list[Event]:
    query = select(Event).where(Event.week_id == week_id).order_by(Event.created_at.asc())
    result = await session.execute(query)
    return [event for event in result.scalars().all()]


async def count_by_task(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> dict[str, int]:
    """
    Count events per plan item across a project.

    Args:
        session: Database session
        project_id: Project to aggregate over

    Returns:
        Mapping of task_id to event count (items without events are absent)
    """
    query = (
        select(Event.task_id, func.count(Event.id))
        .where(Event.project_id == project_id)
        .group_by(Event.task_id)
    )
    result = await session.execute(query)
    return {task_id: count for task_id, count in result.all()}


async def create(session: AsyncSession, event: Event) -> Event:
    session.add(event)
    await session.flush()
    await session.refresh(event)
    return event


async def delete(session: AsyncSession, event: Event) -> None:
    await session.delete(event)
    await session.flush()
