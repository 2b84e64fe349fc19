"""Main API router that includes versioned routers."""

from fastapi import APIRouter

from api.v1 import ai, auth, company_profiles, events, health, profiles, projects, realtime, storage, weeks

# Main API router
api_router = APIRouter()

# Include v1 routers
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(health.router, tags=["health"])
v1_router.include_router(auth.router, tags=["auth"])
v1_router.include_router(projects.router, tags=["projects"])
v1_router.include_router(weeks.router, tags=["weeks"])
v1_router.include_router(events.router, tags=["events"])
v1_router.include_router(storage.router, tags=["storage"])
v1_router.include_router(ai.router, tags=["ai"])
v1_router.include_router(profiles.router, tags=["profiles"])
v1_router.include_router(company_profiles.router, tags=["company-profiles"])
v1_router.include_router(realtime.router, tags=["realtime"])

api_router.include_router(v1_router)
