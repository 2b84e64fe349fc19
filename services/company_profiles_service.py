"""Service layer for the audited company's profile on a project."""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from models.company_profile import CompanyProfile, CompanyProfileResponse, CompanyProfileUpdate
from models.user import User
from repos import company_profiles_repo
from services.projects_service import get_owned_project, get_project
from services.realtime import ChangeBus

logger = logging.getLogger(__name__)


async def get_company_profile(
    session: AsyncSession,
    *,
    project_id: UUID,
) -> CompanyProfileResponse:
    """
    Get a project's company profile.

    When none is stored yet a default named after the project is returned
    with exists=False.

    Raises:
        HTTPException: 404 if project not found
    """
    project = await get_project(session, project_id=project_id)
    company_profile = await company_profiles_repo.get_by_project_id(session, project_id=project_id)
    if company_profile is None:
        return CompanyProfileResponse(
            project_id=project.id,
            company_name=project.name,
            exists=False,
        )
    return CompanyProfileResponse.model_validate(company_profile)


async def upsert_company_profile(
    session: AsyncSession,
    *,
    user: User,
    project_id: UUID,
    payload: CompanyProfileUpdate,
    bus: ChangeBus | None = None,
) -> CompanyProfileResponse:
    """
    Create or replace a project's company profile (auditor only).

    Args:
        session: Database session
        user: Authenticated user
        project_id: Project the profile belongs to
        payload: Company name, address and contacts
        bus: Change bus to notify after commit

    Returns:
        The stored profile

    Raises:
        HTTPException: 404 if project not found, 403 if not the auditor
    """
    await get_owned_project(
        session, project_id=project_id, user=user, action="edit the company profile"
    )
    contacts = [contact.model_dump() for contact in payload.contacts]

    company_profile = await company_profiles_repo.get_by_project_id(session, project_id=project_id)
    created = company_profile is None
    if created:
        company_profile = await company_profiles_repo.create(
            session,
            CompanyProfile(
                project_id=project_id,
                company_name=payload.company_name,
                address=payload.address,
                contacts=contacts,
            ),
        )
    else:
        company_profile.company_name = payload.company_name
        company_profile.address = payload.address
        company_profile.contacts = contacts

    await session.commit()
    await session.refresh(company_profile)

    logger.info("Company profile for project %s %s", project_id, "created" if created else "updated")
    response = CompanyProfileResponse.model_validate(company_profile)
    if bus is not None:
        record = response.model_dump(mode="json")
        if created:
            bus.publish_insert("company_profiles", record)
        else:
            bus.publish_update("company_profiles", record)
    return response
