"""Service layer for weeks (stages), their plans and the approval workflow.

Every plan edit is a read-modify-write on the stored document: the week is
re-read under a row lock, the pure plan_tree operation is applied, and the
result is written back with row_version incremented. Callers may pass the
row_version they last saw; a mismatch is rejected with 409 instead of
overwriting someone else's edit.
"""

import logging
from datetime import date
from typing import Callable
from uuid import UUID

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from models.plan import (
    DayInput,
    Plan,
    PlanItem,
    PlanItemInput,
    PlanReplace,
    PlanStats,
    dump_plan,
    load_plan,
)
from models.project import Project
from models.user import User
from models.week import Week, WeekCreate, WeekResponse, WeekStatus, WeekStatusChange, WeekUpdate
from repos import weeks_repo
from services import plan_tree
from services.plan_tree import Outcome
from services.projects_service import get_owned_project, get_project, role_for
from services.realtime import ChangeBus, to_record
from services.status_workflow import (
    TRANSITIONS,
    ConfirmationRequired,
    RejectionCommentRequired,
    Role,
    TransitionNotAllowed,
    can_add_day,
    can_add_item,
    can_edit_plan,
    check_transition,
)

logger = logging.getLogger(__name__)


async def get_week(
    session: AsyncSession,
    *,
    week_id: UUID,
    for_update: bool = False,
) -> Week:
    """
    Get a week by ID.

    Raises:
        HTTPException: 404 if week not found
    """
    week = await weeks_repo.get_by_id(session, week_id=week_id, for_update=for_update)
    if not week:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Week not found",
        )
    return week


async def _week_with_role(
    session: AsyncSession,
    *,
    week_id: UUID,
    user: User,
    for_update: bool = False,
) -> tuple[Week, Project, Role]:
    week = await get_week(session, week_id=week_id, for_update=for_update)
    project = await get_project(session, project_id=week.project_id)
    return week, project, role_for(project, user)


def _ensure_allowed(
    check: Callable[[WeekStatus, Role], bool],
    week: Week,
    role: Role,
    action: str,
) -> None:
    """403 for the wrong role, 409 when the stage status forbids the action."""
    if role != Role.AUDITOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the project auditor can {action}",
        )
    current = WeekStatus(week.status)
    if not check(current, role):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {action} while the stage is {current.value}",
        )


def _check_version(week: Week, expected_version: int | None) -> None:
    if expected_version is not None and expected_version != week.row_version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Plan was modified concurrently (expected version {expected_version}, "
                f"current {week.row_version}); reload and retry"
            ),
        )


def _check_inside(week_start: date, week_end: date, day: date) -> None:
    if day < week_start or day > week_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Date {day.isoformat()} is outside the week ({week_start.isoformat()} - {week_end.isoformat()})",
        )


async def _save(
    session: AsyncSession,
    week: Week,
    bus: ChangeBus | None,
    *,
    plan: Plan | None = None,
) -> Week:
    """Commit the week with row_version bumped and notify subscribers."""
    if plan is not None:
        week.plan = dump_plan(plan)
    week.row_version += 1
    await session.commit()
    await session.refresh(week)
    if bus is not None:
        bus.publish_update("weeks", to_record(WeekResponse, week))
    return week


async def list_weeks(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> list[Week]:
    """
    List a project's weeks ordered by start date.

    Raises:
        HTTPException: 404 if project not found
    """
    await get_project(session, project_id=project_id)
    return await weeks_repo.list_by_project(session, project_id=project_id)


async def create_week(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    payload: WeekCreate,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Create a draft week with one empty day per date in its range.

    Args:
        session: Database session
        user: Authenticated user (must audit the project)
        project_id: Owning project
        payload: Title, description and date range
        bus: Change bus to notify after commit

    Returns:
        Created week

    Raises:
        HTTPException: 404 if project not found, 403 if not the auditor,
            400 if end_date is before start_date
    """
    project = await get_owned_project(
        session, project_id=project_id, user=user, action="add stages"
    )
    if payload.end_date < payload.start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date cannot be earlier than start_date",
        )
    week = Week(
        project_id=project.id,
        user_id=user.id,
        title=payload.title,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=WeekStatus.DRAFT.value,
        plan=dump_plan(plan_tree.seed_plan(payload.start_date, payload.end_date)),
        row_version=1,
    )
    week = await weeks_repo.create(session, week)
    await session.commit()
    await session.refresh(week)

    if bus is not None:
        bus.publish_insert("weeks", to_record(WeekResponse, week))
    return week


async def update_week(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    payload: WeekUpdate,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Edit a draft week. New dates re-shape the plan to the new range,
    keeping days that stay inside it.

    Raises:
        HTTPException: 404, 403 (not the auditor), 409 (not a draft or stale
            version), 400 (end before start)
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "edit this stage")
    _check_version(week, payload.expected_version)

    start_date = payload.start_date or week.start_date
    end_date = payload.end_date or week.end_date
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date cannot be earlier than start_date",
        )

    if payload.title is not None:
        week.title = payload.title
    if payload.description is not None:
        week.description = payload.description

    plan = None
    if start_date != week.start_date or end_date != week.end_date:
        plan = plan_tree.merge_plan_for_range(load_plan(week.plan), start_date, end_date)
        week.start_date = start_date
        week.end_date = end_date

    return await _save(session, week, bus, plan=plan)


async def delete_week(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    bus: ChangeBus | None = None,
) -> None:
    """
    Delete a draft week together with its events.

    Raises:
        HTTPException: 404, 403 (not the auditor), 409 (not a draft)
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "delete this stage")
    old = {"id": str(week.id), "project_id": str(week.project_id)}

    await weeks_repo.delete(session, week)
    await session.commit()

    if bus is not None:
        bus.publish_delete("weeks", old)


async def change_status(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    payload: WeekStatusChange,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Move a week through the approval workflow.

    Args:
        session: Database session
        user: Authenticated user; the role is derived from project ownership
        week_id: Week to transition
        payload: Target status, rejection comment and confirmation flag
        bus: Change bus to notify after commit

    Returns:
        Updated week

    Raises:
        HTTPException: 404 if week not found; 403 if the role may not make an
            otherwise valid transition; 409 if the transition does not exist
            from the current status or needs confirmation; 400 if a rejection
            has no comment
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    current = WeekStatus(week.status)

    try:
        transition = check_transition(
            current,
            payload.status,
            role,
            rejection_comment=payload.rejection_comment,
            confirmed=payload.confirmed,
        )
    except TransitionNotAllowed as e:
        code = (
            status.HTTP_403_FORBIDDEN
            if (current, payload.status) in TRANSITIONS
            else status.HTTP_409_CONFLICT
        )
        raise HTTPException(status_code=code, detail=str(e))
    except RejectionCommentRequired as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ConfirmationRequired as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    week.status = transition.status.value
    week.rejection_comment = transition.rejection_comment
    week = await _save(session, week, bus)

    logger.info(
        "Week %s status %s -> %s by %s (%s)",
        week.id,
        transition.previous.value,
        transition.status.value,
        user.id,
        role.value,
    )
    return week


async def add_day(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    payload: DayInput,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Add an empty day to the plan.

    Raises:
        HTTPException: 409 "Day already exists in plan" for a duplicate date
            (the existing day is left untouched), 400 for a date outside the week
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_add_day, week, role, "add days")
    _check_version(week, payload.expected_version)
    _check_inside(week.start_date, week.end_date, payload.date)

    mutation = plan_tree.add_day(load_plan(week.plan), payload.date)
    if mutation.outcome == Outcome.DUPLICATE:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Day already exists in plan",
        )
    return await _save(session, week, bus, plan=mutation.plan)


async def delete_day(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    day: date,
    expected_version: int | None = None,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Remove a day and its items. Events logged against those items are kept.

    Raises:
        HTTPException: 404 if the day is not in the plan
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "delete days")
    _check_version(week, expected_version)

    mutation = plan_tree.delete_day(load_plan(week.plan), day)
    if not mutation.applied:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Day not found in plan",
        )
    return await _save(session, week, bus, plan=mutation.plan)


def _build_item(payload: PlanItemInput, item_id: str | None = None) -> PlanItem:
    try:
        return payload.to_item(item_id=item_id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {payload.type.value} data: {str(e)}",
        )


async def add_item(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    day: date,
    payload: PlanItemInput,
    bus: ChangeBus | None = None,
) -> tuple[Week, PlanItem]:
    """
    Append an item to a day. The server assigns the item id.

    Returns:
        (updated week, created item)

    Raises:
        HTTPException: 404 if the day is not in the plan
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_add_item, week, role, "add plan items")
    _check_version(week, payload.expected_version)

    mutation = plan_tree.add_item(load_plan(week.plan), day, _build_item(payload))
    if not mutation.applied:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Day not found in plan",
        )
    week = await _save(session, week, bus, plan=mutation.plan)
    return week, mutation.item


async def edit_item(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    item_id: str,
    payload: PlanItemInput,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Replace an item in place, keeping its id, position and event count.

    Raises:
        HTTPException: 404 if the item is not in the plan
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "edit plan items")
    _check_version(week, payload.expected_version)

    mutation = plan_tree.edit_item(load_plan(week.plan), _build_item(payload, item_id=item_id))
    if not mutation.applied:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan item not found",
        )
    return await _save(session, week, bus, plan=mutation.plan)


async def delete_item(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    item_id: str,
    expected_version: int | None = None,
    bus: ChangeBus | None = None,
) -> Week:
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "delete plan items")
    _check_version(week, expected_version)

    mutation = plan_tree.delete_item(load_plan(week.plan), item_id)
    if not mutation.applied:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Plan item not found",
        )
    return await _save(session, week, bus, plan=mutation.plan)


async def replace_plan(
    session: AsyncSession,
    *,
    user: User,
    week_id: UUID,
    payload: PlanReplace,
    bus: ChangeBus | None = None,
) -> Week:
    """
    Replace the whole plan document.

    The caller must send the row_version it edited. Event counts are
    server-maintained, so the stored counts win over whatever the client sent.

    Raises:
        HTTPException: 409 on a stale version, 400 for days outside the week
    """
    week, _, role = await _week_with_role(session, week_id=week_id, user=user, for_update=True)
    _ensure_allowed(can_edit_plan, week, role, "edit the plan")
    _check_version(week, payload.expected_version)

    outside = plan_tree.dates_outside_range(payload.plan, week.start_date, week.end_date)
    if outside:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Plan has days outside the week: {', '.join(d.isoformat() for d in outside)}",
        )

    counts = {item.id: item.event_count for item in plan_tree.iter_items(load_plan(week.plan))}
    plan = plan_tree.apply_event_counts(payload.plan, counts)
    return await _save(session, week, bus, plan=plan)


async def get_stats(
    session: AsyncSession,
    *,
    week_id: UUID,
) -> PlanStats:
    week = await get_week(session, week_id=week_id)
    return plan_tree.plan_stats(load_plan(week.plan))


async def adjust_event_count(
    session: AsyncSession,
    *,
    week: Week,
    task_id: str,
    delta: int,
) -> bool:
    """
    Shift an item's event_count inside the current transaction (no commit).

    Returns:
        False when the item is no longer in the plan
    """
    mutation = plan_tree.adjust_event_count(load_plan(week.plan), task_id, delta)
    if not mutation.applied:
        return False
    week.plan = dump_plan(mutation.plan)
    week.row_version += 1
    return True
