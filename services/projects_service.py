"""Service layer for Project business logic."""

import logging
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

import config
from models.plan import dump_plan
from models.project import ApprovalPeriod, Project, ProjectCreate, ProjectResponse, ProjectUpdate
from models.user import User
from models.week import (
    GeneratedProjectResponse,
    ProjectRoleResponse,
    Week,
    WeekResponse,
    WeekStatus,
    WeekTransitions,
)
from repos import projects_repo, weeks_repo
from services import ai_service
from services.ai_errors import translate_ai_errors
from services.ai_gateway import AIGateway
from services.ai_service import GeneratedAuditPlan
from services.realtime import ChangeBus, to_record
from services.status_workflow import Role, available_transitions

logger = logging.getLogger(__name__)


def role_for(project: Project, user: User) -> Role:
    """The owner audits; everyone else is the counterpart."""
    return Role.AUDITOR if project.user_id == user.id else Role.COUNTERPART


async def list_projects(session: AsyncSession) -> list[Project]:
    """
    List all projects, newest first.

    Args:
        session: Database session

    Returns:
        List of projects
    """
    return await projects_repo.list(session)


async def get_project(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> Project:
    """
    Get a project by ID.

    Args:
        session: Database session
        project_id: Project ID to fetch

    Returns:
        Project if found

    Raises:
        HTTPException: 404 if project not found
    """
    project = await projects_repo.get_by_id(session, project_id=project_id)

    if not project:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Project not found",
        )

    return project


async def get_owned_project(
    session: AsyncSession,
    *,
    project_id: UUID,
    user: User,
    action: str = "modify this project",
) -> Project:
    """
    Get a project the caller audits.

    Raises:
        HTTPException: 404 if project not found, 403 if the caller is not its auditor
    """
    project = await get_project(session, project_id=project_id)
    if role_for(project, user) != Role.AUDITOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the project auditor can {action}",
        )
    return project


async def create_project(
    session: AsyncSession,
    *,
    user: User,
    payload: ProjectCreate,
    bus: ChangeBus | None = None,
) -> Project:
    """
    Create a new project owned by the caller.

    Args:
        session: Database session
        user: Authenticated user, who becomes the auditor
        payload: Project creation data
        bus: Change bus to notify after commit

    Returns:
        Created project
    """
    project = Project(
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        approval_period=payload.approval_period.value,
    )

    created_project = await projects_repo.create(session, project)
    await session.commit()
    await session.refresh(created_project)

    if bus is not None:
        bus.publish_insert("projects", to_record(ProjectResponse, created_project))
    return created_project


async def update_project(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    payload: ProjectUpdate,
    bus: ChangeBus | None = None,
) -> Project:
    """
    Update an existing project (owner only).

    Args:
        session: Database session
        user: Authenticated user
        project_id: Project ID to update
        payload: Project update data (only provided fields will be updated)
        bus: Change bus to notify after commit

    Returns:
        Updated project

    Raises:
        HTTPException: 404 if project not found, 403 if not the owner
    """
    project = await get_owned_project(session, project_id=project_id, user=user)
    old = to_record(ProjectResponse, project)

    # Update only provided fields
    if payload.name is not None:
        project.name = payload.name
    if payload.description is not None:
        project.description = payload.description
    if payload.approval_period is not None:
        project.approval_period = payload.approval_period.value

    await session.commit()
    await session.refresh(project)

    if bus is not None:
        bus.publish_update("projects", to_record(ProjectResponse, project), old)
    return project


async def delete_project(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    bus: ChangeBus | None = None,
) -> None:
    """
    Delete a project and, by cascade, its weeks and company profile.

    Raises:
        HTTPException: 404 if project not found, 403 if not the owner
    """
    project = await get_owned_project(session, project_id=project_id, user=user)
    old = to_record(ProjectResponse, project)
    weeks = await weeks_repo.list_by_project(session, project_id=project_id)
    week_records = [{"id": str(week.id), "project_id": str(project_id)} for week in weeks]

    await projects_repo.delete(session, project)
    await session.commit()

    if bus is not None:
        bus.publish_delete("projects", old)
        for record in week_records:
            bus.publish_delete("weeks", record)
    logger.info("Deleted project %s with %d weeks", project_id, len(week_records))


async def get_project_role(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
) -> ProjectRoleResponse:
    """The caller's role and the status transitions open to them per week."""
    project = await get_project(session, project_id=project_id)
    role = role_for(project, user)
    weeks = await weeks_repo.list_by_project(session, project_id=project_id)
    return ProjectRoleResponse(
        project_id=project.id,
        role=role.value,
        weeks=[
            WeekTransitions(
                week_id=week.id,
                status=WeekStatus(week.status),
                available_transitions=available_transitions(WeekStatus(week.status), role),
            )
            for week in weeks
        ],
    )


async def _generate_plan(
    gateway: AIGateway,
    *,
    name: str,
    description: str,
    start_date,
    end_date,
    approval_period,
) -> GeneratedAuditPlan:
    with translate_ai_errors():
        return await ai_service.generate_audit_plan(
            gateway,
            project_name=name,
            project_description=description,
            start_date=start_date,
            end_date=end_date,
            duration_weeks=ai_service.duration_in_weeks(start_date, end_date),
            approval_period=approval_period,
        )


def _weeks_from_plan(project: Project, generated: GeneratedAuditPlan) -> list[Week]:
    return [
        Week(
            project_id=project.id,
            user_id=project.user_id,
            title=generated_week.title,
            start_date=generated_week.start_date,
            end_date=generated_week.end_date,
            status=WeekStatus.DRAFT.value,
            plan=dump_plan(generated_week.plan),
            row_version=1,
        )
        for generated_week in generated.weeks
    ]


async def generate_project(
    session: AsyncSession,
    *,
    user: User,
    payload: ProjectCreate,
    gateway: AIGateway,
    bus: ChangeBus | None = None,
) -> GeneratedProjectResponse:
    """
    Create a project together with an AI-drafted plan.

    The plan is generated before anything is written; a failed generation
    leaves no project behind.

    Args:
        session: Database session
        user: Authenticated user, who becomes the auditor
        payload: Project data; a missing end date defaults to DEFAULT_PROJECT_WEEKS
        gateway: AI gateway
        bus: Change bus to notify after commit

    Returns:
        The project and its draft weeks

    Raises:
        HTTPException: 502 if generation fails or the reply is malformed
    """
    end_date = payload.end_date or ai_service.default_end_date(
        payload.start_date, config.settings.DEFAULT_PROJECT_WEEKS
    )
    generated = await _generate_plan(
        gateway,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=end_date,
        approval_period=payload.approval_period,
    )

    project = Project(
        user_id=user.id,
        name=payload.name,
        description=payload.description,
        start_date=payload.start_date,
        end_date=end_date,
        approval_period=payload.approval_period.value,
    )
    project = await projects_repo.create(session, project)
    weeks = [await weeks_repo.create(session, week) for week in _weeks_from_plan(project, generated)]
    await session.commit()
    await session.refresh(project)

    response = GeneratedProjectResponse(
        project=ProjectResponse.model_validate(project),
        weeks=[WeekResponse.model_validate(week) for week in weeks],
    )
    if bus is not None:
        bus.publish_insert("projects", response.project.model_dump(mode="json"))
        for week in response.weeks:
            bus.publish_insert("weeks", week.model_dump(mode="json"))
    logger.info("Generated project %s with %d weeks", project.id, len(weeks))
    return response


async def regenerate_plan(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    gateway: AIGateway,
    bus: ChangeBus | None = None,
) -> list[Week]:
    """
    Replace every week of a project with a freshly generated plan (owner only).

    Generation happens first; the existing weeks are only deleted once a valid
    plan is in hand, and the swap is committed as one transaction.

    Raises:
        HTTPException: 404/403 as for get_owned_project, 502 on generation failure
    """
    project = await get_owned_project(
        session, project_id=project_id, user=user, action="regenerate the plan"
    )
    end_date = project.end_date or ai_service.default_end_date(
        project.start_date, config.settings.DEFAULT_PROJECT_WEEKS
    )
    generated = await _generate_plan(
        gateway,
        name=project.name,
        description=project.description,
        start_date=project.start_date,
        end_date=end_date,
        approval_period=ApprovalPeriod(project.approval_period),
    )

    deleted_ids = await weeks_repo.delete_by_project(session, project_id=project.id)
    weeks = [await weeks_repo.create(session, week) for week in _weeks_from_plan(project, generated)]
    await session.commit()

    if bus is not None:
        for week_id in deleted_ids:
            bus.publish_delete("weeks", {"id": str(week_id), "project_id": str(project.id)})
        for week in weeks:
            bus.publish_insert("weeks", to_record(WeekResponse, week))
    logger.info(
        "Regenerated plan for project %s: %d weeks replaced by %d",
        project.id,
        len(deleted_ids),
        len(weeks),
    )
    return weeks
