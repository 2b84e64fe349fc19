"""Project endpoints, including AI-backed project creation."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_ai_gateway, get_change_bus, get_current_user, get_db
from models.project import ProjectCreate, ProjectResponse, ProjectUpdate
from models.user import User
from models.week import GeneratedProjectResponse, ProjectRoleResponse, WeekResponse
from services.ai_gateway import AIGateway
from services.projects_service import (
    create_project,
    delete_project,
    generate_project,
    get_project,
    get_project_role,
    list_projects,
    regenerate_plan,
    update_project,
)
from services.realtime import ChangeBus

router = APIRouter()


@router.get("/projects", response_model=List[ProjectResponse])
async def list_projects_endpoint(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List all projects, newest first.

    Returns:
        List of projects.
    """
    try:
        projects = await list_projects(db)
        return projects
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch projects: {str(e)}",
        )


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a specific project by ID.

    Raises:
        404 if project not found.
    """
    try:
        project = await get_project(db, project_id=project_id)
        return project
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch project: {str(e)}",
        )


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project_endpoint(
    project_data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Create a new project. The caller becomes its auditor.
    """
    try:
        project = await create_project(
            db,
            user=current_user,
            payload=project_data,
            bus=bus,
        )
        return project
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create project: {str(e)}",
        )


@router.post(
    "/projects/generate",
    response_model=GeneratedProjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_project_endpoint(
    project_data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    """
    Create a project with an AI-drafted multi-week plan.

    Nothing is stored if generation fails (502).
    """
    try:
        return await generate_project(
            db,
            user=current_user,
            payload=project_data,
            gateway=gateway,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create project: {str(e)}",
        )


@router.put("/projects/{project_id}", response_model=ProjectResponse)
async def update_project_endpoint(
    project_id: UUID,
    project_data: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Update an existing project (auditor only).

    Only provided fields will be updated.
    """
    try:
        project = await update_project(
            db,
            user=current_user,
            project_id=project_id,
            payload=project_data,
            bus=bus,
        )
        return project
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update project: {str(e)}",
        )


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """Delete a project with all its stages (auditor only)."""
    try:
        await delete_project(db, user=current_user, project_id=project_id, bus=bus)
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete project: {str(e)}",
        )


@router.get("/projects/{project_id}/role", response_model=ProjectRoleResponse)
async def get_project_role_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's role on the project and the transitions open per stage."""
    try:
        return await get_project_role(db, user=current_user, project_id=project_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch project role: {str(e)}",
        )


@router.post("/projects/{project_id}/regenerate-plan", response_model=List[WeekResponse])
async def regenerate_plan_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
    gateway: AIGateway = Depends(get_ai_gateway),
):
    """
    Replace all stages with a freshly generated plan (auditor only).

    Existing stages are kept if generation fails (502).
    """
    try:
        return await regenerate_plan(
            db,
            user=current_user,
            project_id=project_id,
            gateway=gateway,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to regenerate plan: {str(e)}",
        )
