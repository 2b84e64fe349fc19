"""Week model - a time-boxed stage of a project carrying its daily plan."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base
from models.plan import DayPlan, PlanItem
from models.project import ProjectResponse
from models.user import utcnow


class WeekStatus(str, Enum):
    """Approval workflow states of a stage."""

    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class Week(Base):
    """Week (stage) ORM model.

    The plan is stored as one JSON document; every plan edit rewrites the
    whole document and bumps row_version.
    """

    __tablename__ = "weeks"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=WeekStatus.DRAFT.value,
    )  # draft|pending_approval|approved|rejected|completed
    rejection_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    plan: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    row_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
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


# Pydantic schemas
class WeekBase(BaseModel):
    """Base week schema."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    start_date: date
    end_date: date


class WeekCreate(WeekBase):
    """Schema for creating a week; the plan is seeded from the date range."""


class WeekUpdate(BaseModel):
    """Schema for editing a draft week. Date changes re-shape the plan."""

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    expected_version: int | None = None


class WeekStatusChange(BaseModel):
    """Body for a status transition request."""

    status: WeekStatus
    rejection_comment: str | None = None
    confirmed: bool = False


class WeekResponse(BaseModel):
    """Schema for week response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    user_id: UUID
    title: str
    description: str | None
    start_date: date
    end_date: date
    status: WeekStatus
    rejection_comment: str | None
    plan: dict[date, DayPlan]
    row_version: int
    created_at: datetime
    updated_at: datetime | None = None


class WeekTransitions(BaseModel):
    week_id: UUID
    status: WeekStatus
    available_transitions: list[WeekStatus]


class ProjectRoleResponse(BaseModel):
    """The caller's role on a project and what it may do to each stage."""

    project_id: UUID
    role: str
    weeks: list[WeekTransitions] = Field(default_factory=list)


class PlanItemCreated(BaseModel):
    week: WeekResponse
    item: PlanItem


class GeneratedProjectResponse(BaseModel):
    project: ProjectResponse
    weeks: list[WeekResponse]
