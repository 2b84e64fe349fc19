"""Service layer for the per-item event feed.

Events are append-only. Creating or deleting one also shifts the owning
item's event_count inside the week's plan, in the same transaction. Counts
can still drift (for example if an item is deleted and re-added), so a
project-wide resync recomputes them from the event table.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from models.event import Event, EventData, EventResponse, EventType, FileAttachment, ParentQuote
from models.plan import dump_plan, load_plan
from models.user import User
from models.week import WeekResponse
from repos import events_repo, weeks_repo
from services import plan_tree, storage
from services.projects_service import get_owned_project, get_project
from services.realtime import ChangeBus, to_record
from services.weeks_service import adjust_event_count, get_week

logger = logging.getLogger(__name__)

RECOGNIZED_NOTES_HEADER = "**Recognized notes:**"


def _to_response(item: dict[str, Any]) -> EventResponse:
    response = EventResponse.model_validate(item["event"])
    if item["parent"] is not None:
        response.parent = ParentQuote(**item["parent"])
    return response


async def list_task_events(
    session: AsyncSession,
    *,
    task_id: str,
) -> list[EventResponse]:
    """
    List a plan item's events, oldest first, with quoted parents resolved.

    Args:
        session: Database session
        task_id: Plan item id

    Returns:
        List of events
    """
    items = await events_repo.list_by_task(session, task_id=task_id)
    return [_to_response(item) for item in items]


async def list_week_events(
    session: AsyncSession,
    *,
    week_id: UUID,
) -> list[EventResponse]:
    """
    List every event of a week (the stage history feed).

    Raises:
        HTTPException: 404 if week not found
    """
    await get_week(session, week_id=week_id)
    items = await events_repo.list_by_week(session, week_id=week_id)
    return [_to_response(item) for item in items]


async def _store_attachments(
    user: User,
    task_id: str,
    files: list[UploadFile],
) -> tuple[list[FileAttachment], list[str]]:
    """Upload every file or none: on failure the ones already written are removed."""
    attachments: list[FileAttachment] = []
    written: list[str] = []
    # Timestamps strictly increase so names that sanitize alike get distinct keys
    timestamp_ms = 0
    for upload in files:
        filename = upload.filename or "file"
        timestamp_ms = max(storage.now_ms(), timestamp_ms + 1)
        key = storage.generate_storage_key(user.id, task_id, filename, timestamp_ms)
        try:
            await storage.save_upload(upload, key)
        except (OSError, ValueError) as e:
            logger.error("Attachment upload failed for %s: %s", filename, e)
            await _remove_files(written)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to upload {filename}: {str(e)}",
            )
        written.append(key)
        attachments.append(
            FileAttachment(
                name=filename,
                url=storage.public_url(key),
                type=upload.content_type,
            )
        )
    return attachments, written


async def _remove_files(keys: list[str]) -> None:
    for key in keys:
        try:
            await storage.delete_file(key)
        except OSError as e:
            logger.warning("Could not remove orphaned upload %s: %s", key, e)


async def create_event(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    task_id: str,
    event_type: EventType = EventType.COMMENT,
    content: str = "",
    parent_event_id: UUID | None = None,
    meeting_time: datetime | None = None,
    participants: list[str] | None = None,
    files: list[UploadFile] | None = None,
    bus: ChangeBus | None = None,
) -> EventResponse:
    """
    Append an event to a plan item's feed.

    Everything is validated before any file is written; every file is
    uploaded before the row is inserted.

    Args:
        session: Database session
        user: Author
        week_id: Week holding the item
        task_id: Plan item id
        event_type: comment, meeting, documentation_review or interview
        content: Text body
        parent_event_id: Event being replied to (same item only)
        meeting_time: For meeting events
        participants: For meeting events
        files: Attachments
        bus: Change bus to notify after commit

    Returns:
        Created event with its parent quote resolved

    Raises:
        HTTPException: 404 if the week or item is missing; 400 for an empty
            comment or a parent from another item; 500 if an upload fails
    """
    files = [f for f in (files or []) if f is not None]
    content = (content or "").strip()

    week = await get_week(session, week_id=week_id, for_update=True)
    if plan_tree.find_item(load_plan(week.plan), task_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan item not found",
        )

    if event_type == EventType.COMMENT and not content and not files:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A comment needs text or at least one attachment",
        )

    if parent_event_id is not None:
        parent = await events_repo.get_by_id(session, event_id=parent_event_id)
        if parent is None or parent.task_id != task_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Parent event must belong to the same plan item",
            )

    attachments, written = await _store_attachments(user, task_id, files)

    data = EventData(
        meeting_time=meeting_time,
        participants=participants or None,
        file_urls=attachments or None,
    )
    event = Event(
        project_id=week.project_id,
        week_id=week.id,
        task_id=task_id,
        user_id=user.id,
        author_email=user.email,
        type=event_type.value,
        content=content,
        data=data.model_dump(mode="json", exclude_none=True),
        parent_event_id=parent_event_id,
    )

    try:
        event = await events_repo.create(session, event)
        await adjust_event_count(session, week=week, task_id=task_id, delta=1)
        await session.commit()
    except Exception:
        await session.rollback()
        await _remove_files(written)
        raise

    await session.refresh(week)
    item = await events_repo.get_with_parent(session, event_id=event.id)
    response = _to_response(item)

    if bus is not None:
        bus.publish_insert("events", response.model_dump(mode="json"))
        bus.publish_update("weeks", to_record(WeekResponse, week))
    logger.info("Event %s (%s) added to item %s by %s", event.id, event.type, task_id, user.id)
    return response


async def delete_event(
    session: AsyncSession,
    *,
    user: User,
    event_id: UUID,
    bus: ChangeBus | None = None,
) -> None:
    """
    Delete an event (author only). Replies keep existing with their parent
    link cleared.

    Raises:
        HTTPException: 404 if event not found, 403 if the caller is not its author
    """
    event = await events_repo.get_by_id(session, event_id=event_id)
    if not event:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    if event.user_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author can delete this event",
        )

    old = to_record(EventResponse, event)
    week = await weeks_repo.get_by_id(session, week_id=event.week_id, for_update=True)
    if week is not None:
        await adjust_event_count(session, week=week, task_id=event.task_id, delta=-1)
    await events_repo.delete(session, event)
    await session.commit()

    if bus is not None:
        bus.publish_delete("events", old)
        if week is not None:
            await session.refresh(week)
            bus.publish_update("weeks", to_record(WeekResponse, week))


async def get_event_counts(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> dict[str, int]:
    """
    Events per plan item across a project.

    Raises:
        HTTPException: 404 if project not found
    """
    await get_project(session, project_id=project_id)
    return await events_repo.count_by_task(session, project_id=project_id)


async def resync_event_counts(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    bus: ChangeBus | None = None,
) -> dict[str, int]:
    """
    Rewrite every item's event_count in the project from the event table.

    Only weeks whose counts actually change are written.

    Returns:
        The aggregated counts

    Raises:
        HTTPException: 404 if project not found, 403 if not the auditor
    """
    await get_owned_project(
        session, project_id=project_id, user=user, action="resync event counts"
    )
    counts = await events_repo.count_by_task(session, project_id=project_id)
    weeks = await weeks_repo.list_by_project(session, project_id=project_id)

    changed = []
    for listed in weeks:
        week = await weeks_repo.get_by_id(session, week_id=listed.id, for_update=True)
        plan = load_plan(week.plan)
        synced = plan_tree.apply_event_counts(plan, counts)
        if synced != plan:
            week.plan = dump_plan(synced)
            week.row_version += 1
            changed.append(week)
    await session.commit()

    for week in changed:
        await session.refresh(week)
        if bus is not None:
            bus.publish_update("weeks", to_record(WeekResponse, week))
    logger.info("Resynced event counts for project %s: %d weeks updated", project_id, len(changed))
    return counts
