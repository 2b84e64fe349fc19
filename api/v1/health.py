"""Health and database connectivity checks."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

import config
from api.deps import get_db

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status, environment, active AI provider and open realtime subscriptions
    """
    return {
        "status": "ok",
        "env": config.settings.ENV,
        "ai_provider": request.app.state.ai_gateway.provider.name,
        "realtime_subscriptions": request.app.state.change_bus.subscription_count,
    }


@router.get("/db-check")
async def db_check(db: AsyncSession = Depends(get_db)):
    """
    Check database connectivity.

    Raises:
        HTTPException: If database connection fails
    """
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"db": "ok"}
    except Exception as e:
        raise HTTPException(
            status_code=500,
            detail=f"Database connection failed: {str(e)}",
        )
