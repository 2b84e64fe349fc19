"""Service layer for the AI assistant features around a stage."""

import logging
from uuid import UUID

from fastapi import HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from models.ai import ChatTurn
from models.event import EventType
from models.plan import load_plan
from models.user import User
from models.week import WeekStatus
from repos import events_repo
from services import ai_service, events_service, plan_tree
from services.ai_errors import translate_ai_errors
from services.ai_gateway import AIGateway, ChatMessage
from services.projects_service import get_project, role_for
from services.realtime import ChangeBus
from services.status_workflow import Role, can_generate_report
from services.weeks_service import get_week

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}


async def generate_week_report(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    gateway: AIGateway,
) -> str:
    """
    Markdown report on a completed stage for the business owner.

    Raises:
        HTTPException: 404 if week not found, 403 if not the auditor, 409 if
            the stage is not completed, 502 on AI failure
    """
    week = await get_week(session, week_id=week_id)
    project = await get_project(session, project_id=week.project_id)
    role = role_for(project, user)
    if role != Role.AUDITOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the project auditor can generate reports",
        )
    if not can_generate_report(WeekStatus(week.status), role):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Reports are available for completed stages only",
        )

    events = await events_repo.list_models_by_week(session, week_id=week.id)
    with translate_ai_errors():
        report = await ai_service.generate_comprehensive_report(
            gateway,
            project=project,
            week=week,
            plan=load_plan(week.plan),
            events=events,
        )
    logger.info("Generated report for week %s from %d events", week.id, len(events))
    return report


async def recognize_notes(
    session: AsyncSession,
    *,
    user: User,
    image: UploadFile,
    gateway: AIGateway,
    week_id: UUID | None = None,
    task_id: str | None = None,
    bus: ChangeBus | None = None,
) -> tuple[str, UUID | None]:
    """
    OCR a photo of notes; with week_id and task_id the text is also posted
    as a comment on that plan item.

    Returns:
        (recognized text, id of the created event or None)

    Raises:
        HTTPException: 400 for a non-image upload or only one of week_id/task_id,
            404 if the week or plan item is missing (checked before the AI call),
            502 on AI failure, plus anything create_event raises
    """
    if (week_id is None) != (task_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="week_id and task_id must be given together",
        )
    mime_type = image.content_type or "image/jpeg"
    if mime_type not in SUPPORTED_IMAGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported image type: {mime_type}",
        )

    if week_id is not None:
        week = await get_week(session, week_id=week_id)
        if plan_tree.find_item(load_plan(week.plan), task_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Plan item not found",
            )

    data = await image.read()
    with translate_ai_errors():
        text = await ai_service.recognize_text_from_image(gateway, data, mime_type)

    if week_id is None:
        return text, None

    event = await events_service.create_event(
        session,
        user=user,
        week_id=week_id,
        task_id=task_id,
        event_type=EventType.COMMENT,
        content=f"{events_service.RECOGNIZED_NOTES_HEADER}\n\n{text}",
        bus=bus,
    )
    return text, event.id


async def analyze_interview(gateway: AIGateway, *, context: str) -> str:
    with translate_ai_errors():
        return await ai_service.process_interview_audio(gateway, context)


async def describe_stage(
    gateway: AIGateway,
    *,
    message: str,
    history: list[ChatTurn],
) -> str:
    """One turn of the stage-description chat; the client keeps the history."""
    with translate_ai_errors():
        return await ai_service.generate_stage_description(
            gateway,
            message,
            [ChatMessage(role=turn.role, text=turn.text) for turn in history],
        )
