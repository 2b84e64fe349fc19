"""Week (stage) endpoints: CRUD, plan edits and the approval workflow."""

from datetime import date
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_change_bus, get_current_user, get_db
from models.plan import DayInput, PlanItemInput, PlanReplace, PlanStats
from models.user import User
from models.week import PlanItemCreated, WeekCreate, WeekResponse, WeekStatusChange, WeekUpdate
from services import weeks_service
from services.realtime import ChangeBus

router = APIRouter()


@router.get("/projects/{project_id}/weeks", response_model=List[WeekResponse])
async def list_weeks_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    List a project's stages ordered by start date.
    """
    try:
        return await weeks_service.list_weeks(db, project_id=project_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch weeks: {str(e)}",
        )


@router.post(
    "/projects/{project_id}/weeks",
    response_model=WeekResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_week_endpoint(
    project_id: UUID,
    week_data: WeekCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Create a draft stage; its plan gets one empty day per date in range.
    """
    try:
        return await weeks_service.create_week(
            db,
            user=current_user,
            project_id=project_id,
            payload=week_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to create week: {str(e)}",
        )


@router.get("/weeks/{week_id}", response_model=WeekResponse)
async def get_week_endpoint(
    week_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await weeks_service.get_week(db, week_id=week_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch week: {str(e)}",
        )


@router.put("/weeks/{week_id}", response_model=WeekResponse)
async def update_week_endpoint(
    week_id: UUID,
    week_data: WeekUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Edit a draft stage. Changing the dates re-shapes the plan.
    """
    try:
        return await weeks_service.update_week(
            db,
            user=current_user,
            week_id=week_id,
            payload=week_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update week: {str(e)}",
        )


@router.delete("/weeks/{week_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_week_endpoint(
    week_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    try:
        await weeks_service.delete_week(db, user=current_user, week_id=week_id, bus=bus)
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete week: {str(e)}",
        )


@router.patch("/weeks/{week_id}/status", response_model=WeekResponse)
async def change_week_status_endpoint(
    week_id: UUID,
    status_change: WeekStatusChange,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Request a workflow transition.

    Raises:
        403 if the caller's role may not make the transition, 409 if it is not
        available from the current status or needs confirmation, 400 if a
        rejection has no comment.
    """
    try:
        return await weeks_service.change_status(
            db,
            user=current_user,
            week_id=week_id,
            payload=status_change,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to change week status: {str(e)}",
        )


@router.get("/weeks/{week_id}/stats", response_model=PlanStats)
async def get_week_stats_endpoint(
    week_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await weeks_service.get_stats(db, week_id=week_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to compute week stats: {str(e)}",
        )


@router.put("/weeks/{week_id}/plan", response_model=WeekResponse)
async def replace_plan_endpoint(
    week_id: UUID,
    plan_data: PlanReplace,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Replace the whole plan document.

    Raises:
        409 if expected_version does not match the stored row_version.
    """
    try:
        return await weeks_service.replace_plan(
            db,
            user=current_user,
            week_id=week_id,
            payload=plan_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to update plan: {str(e)}",
        )


@router.post("/weeks/{week_id}/days", response_model=WeekResponse, status_code=status.HTTP_201_CREATED)
async def add_day_endpoint(
    week_id: UUID,
    day_data: DayInput,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Add an empty day to the plan.

    Raises:
        409 "Day already exists in plan" for a duplicate date.
    """
    try:
        return await weeks_service.add_day(
            db,
            user=current_user,
            week_id=week_id,
            payload=day_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to add day: {str(e)}",
        )


@router.delete("/weeks/{week_id}/days/{day}", response_model=WeekResponse)
async def delete_day_endpoint(
    week_id: UUID,
    day: date,
    expected_version: int | None = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    try:
        return await weeks_service.delete_day(
            db,
            user=current_user,
            week_id=week_id,
            day=day,
            expected_version=expected_version,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete day: {str(e)}",
        )


@router.post(
    "/weeks/{week_id}/days/{day}/items",
    response_model=PlanItemCreated,
    status_code=status.HTTP_201_CREATED,
)
async def add_item_endpoint(
    week_id: UUID,
    day: date,
    item_data: PlanItemInput,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Append an item to a day. The response carries the server-assigned id.
    """
    try:
        week, item = await weeks_service.add_item(
            db,
            user=current_user,
            week_id=week_id,
            day=day,
            payload=item_data,
            bus=bus,
        )
        return PlanItemCreated(week=WeekResponse.model_validate(week), item=item)
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to add plan item: {str(e)}",
        )


@router.put("/weeks/{week_id}/items/{item_id}", response_model=WeekResponse)
async def edit_item_endpoint(
    week_id: UUID,
    item_id: str,
    item_data: PlanItemInput,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """
    Replace an item in place.

    Raises:
        404 if the item is not in the plan.
    """
    try:
        return await weeks_service.edit_item(
            db,
            user=current_user,
            week_id=week_id,
            item_id=item_id,
            payload=item_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to edit plan item: {str(e)}",
        )


@router.delete("/weeks/{week_id}/items/{item_id}", response_model=WeekResponse)
async def delete_item_endpoint(
    week_id: UUID,
    item_id: str,
    expected_version: int | None = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    try:
        return await weeks_service.delete_item(
            db,
            user=current_user,
            week_id=week_id,
            item_id=item_id,
            expected_version=expected_version,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to delete plan item: {str(e)}",
        )
