"""Event feed endpoints: per-item discussion, stage history and counts."""

from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_change_bus, get_current_user, get_db
from models.event import EventResponse, EventType
from models.user import User
from services import events_service
from services.realtime import ChangeBus

router = APIRouter()


@router.get("/tasks/{task_id}/events", response_model=List[EventResponse])
async def list_task_events_endpoint(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List a plan item's events, oldest first, with reply quotes resolved.
    """
    try:
        return await events_service.list_task_events(db, task_id=task_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch events: {str(e)}",
        )


@router.get("/weeks/{week_id}/events", response_model=List[EventResponse])
async def list_week_events_endpoint(
    week_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Stage history: every event of every item in the week."""
    try:
        return await events_service.list_week_events(db, week_id=week_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch events: {str(e)}",
        )


@router.post(
    "/weeks/{week_id}/tasks/{task_id}/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_event_endpoint(
    week_id: UUID,
    task_id: str,
    type: EventType = Form(EventType.COMMENT),
    content: str = Form(""),
    parent_event_id: UUID | None = Form(None),
    meeting_time: datetime | None = Form(None),
    participants: List[str] | None = Form(None),
    files: List[UploadFile] | None = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Add an event (multipart form) to a plan item, with optional attachments.

    Raises:
        400 for an empty comment or a parent from another item, 404 if the
        item is not in the week's plan.
    """
    try:
        return await events_service.create_event(
            db,
            user=current_user,
            week_id=week_id,
            task_id=task_id,
            event_type=type,
            content=content,
            parent_event_id=parent_event_id,
            meeting_time=meeting_time,
            participants=participants,
            files=files,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create event: {str(e)}",
        )


@router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """Delete an event. Only its author may do so."""
    try:
        await events_service.delete_event(db, user=current_user, event_id=event_id, bus=bus)
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete event: {str(e)}",
        )


@router.get("/projects/{project_id}/event-counts", response_model=dict[str, int])
async def get_event_counts_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Events per plan item across the project."""
    try:
        return await events_service.get_event_counts(db, project_id=project_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to count events: {str(e)}",
        )


@router.post("/projects/{project_id}/event-counts/resync", response_model=dict[str, int])
async def resync_event_counts_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """Recompute every item's event_count from the event table (auditor only)."""
    try:
        return await events_service.resync_event_counts(
            db,
            user=current_user,
            project_id=project_id,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to resync event counts: {str(e)}",
        )
