"""Company profile model - the audited company's details for a project."""

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import JSON, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base
from models.user import utcnow


class CompanyProfile(Base):
    """CompanyProfile ORM model - at most one per project."""

    __tablename__ = "company_profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    contacts: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


# Pydantic schemas
class ContactPerson(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = ""
    role: str = ""
    email: str = ""
    phone: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def assign_id(cls, value: Any) -> Any:
        return value or str(uuid4())


class CompanyProfileUpdate(BaseModel):
    company_name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    contacts: list[ContactPerson] = Field(default_factory=list)


class CompanyProfileResponse(BaseModel):
    """Company profile; exists=False when the project has none stored yet."""

    model_config = ConfigDict(from_attributes=True)

    project_id: UUID
    company_name: str
    address: str | None = None
    contacts: list[ContactPerson] = Field(default_factory=list)
    updated_at: datetime | None = None
    exists: bool = True
