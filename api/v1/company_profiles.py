"""Company profile endpoints (one profile per project)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_change_bus, get_current_user, get_db
from models.company_profile import CompanyProfileResponse, CompanyProfileUpdate
from models.user import User
from services import company_profiles_service
from services.realtime import ChangeBus

router = APIRouter()


@router.get("/projects/{project_id}/company-profile", response_model=CompanyProfileResponse)
async def get_company_profile_endpoint(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the audited company's profile.

    Returns a default named after the project (exists=false) when none is stored.
    """
    try:
        return await company_profiles_service.get_company_profile(db, project_id=project_id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Failed to fetch company profile: {str(e)}",
        )


@router.put("/projects/{project_id}/company-profile", response_model=CompanyProfileResponse)
async def upsert_company_profile_endpoint(
    project_id: UUID,
    profile_data: CompanyProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    bus: ChangeBus = Depends(get_change_bus),
):
    """Create or replace the company profile (auditor only)."""
    try:
        return await company_profiles_service.upsert_company_profile(
            db,
            user=current_user,
            project_id=project_id,
            payload=profile_data,
            bus=bus,
        )
    except HTTPException:
        raise
    except Exception as e:
        await db.rollback()
        raise HTTPException(
            status_code=500,
            detail=f"Failed to save company profile: {str(e)}",
        )
