"""Project model - an audit engagement owned by its auditor."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base
from models.user import utcnow


class ApprovalPeriod(str, Enum):
    """How often the counterpart signs off on stages."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Project(Base):
    """Project ORM model - represents an audit engagement.

    The owning user is the auditor; every other authenticated viewer acts as
    the counterpart (business owner) for workflow purposes.
    """

    __tablename__ = "projects"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    approval_period: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalPeriod.WEEKLY.value,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utcnow,
    )

    __table_args__ = (
        {"comment": "Projects are audit engagements owned by an auditor"},
    )


# Pydantic schemas
class ProjectBase(BaseModel):
    """Base project schema."""

    name: str = Field(min_length=1, max_length=255)
    description: str = ""
    start_date: date
    end_date: date | None = None
    approval_period: ApprovalPeriod = ApprovalPeriod.WEEKLY

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date")
        return self


class ProjectCreate(ProjectBase):
    """Schema for creating a project.

    Note: user_id is NOT included - the owner is the authenticated caller.
    """


class ProjectUpdate(BaseModel):
    """Schema for updating a project (all fields optional)."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    approval_period: ApprovalPeriod | None = None


class ProjectResponse(BaseModel):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    description: str
    start_date: date
    end_date: date | None
    approval_period: ApprovalPeriod
    created_at: datetime
    updated_at: datetime | None = None
