"""FastAPI application factory and main entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
import logging_config
from api import router as api_router
from db import close_db, init_db
from services.ai_gateway import AIGateway
from services.realtime import ChangeBus

# Setup logging
logging_config.setup_logging(config.settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    await init_db()
    yield
    # Shutdown
    app.state.change_bus.close()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title="Audit Planner Backend",
    description="FastAPI backend for audit projects, stage plans and their event feeds",
    version="0.1.0",
    lifespan=lifespan,
)

# Process-wide services shared by every request
app.state.change_bus = ChangeBus(queue_size=config.settings.REALTIME_QUEUE_SIZE)
app.state.ai_gateway = AIGateway.from_settings(config.settings)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router.api_router, prefix=config.settings.API_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Audit Planner Backend API",
        "version": "0.1.0",
    }
