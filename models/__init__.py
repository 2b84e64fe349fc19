"""Database models."""

from db import Base

# Import all models so Alembic can detect them
from models.user import User
from models.project import Project
from models.week import Week
from models.event import Event
from models.profile import Profile
from models.company_profile import CompanyProfile

__all__ = [
    "Base",
    "User",
    "Project",
    "Week",
    "Event",
    "Profile",
    "CompanyProfile",
]
