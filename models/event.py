"""Event model - append-only feed entries attached to a plan item."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base
from models.user import utcnow


class EventType(str, Enum):
    COMMENT = "comment"
    MEETING = "meeting"
    DOCUMENTATION_REVIEW = "documentation_review"
    INTERVIEW = "interview"


class Event(Base):
    """Event ORM model.

    task_id references a PlanItem id inside the week's plan document. It is a
    weak reference: deleting the item or its day leaves the event in place.
    """

    __tablename__ = "events"

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
    week_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("weeks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    author_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default=EventType.COMMENT.value)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    parent_event_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("events.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ix_events_task_created", "task_id", "created_at"),
    )


# Pydantic schemas
class FileAttachment(BaseModel):
    """Uploaded attachment descriptor stored in data.file_urls."""

    name: str
    url: str
    type: str | None = None


class EventData(BaseModel):
    meeting_time: datetime | None = None
    participants: list[str] | None = None
    file_urls: list[FileAttachment] | None = None


class ParentQuote(BaseModel):
    """Quoted content of the event being replied to."""

    content: str
    author_email: str | None = None


class EventResponse(BaseModel):
    """Schema for event response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    week_id: UUID
    task_id: str
    user_id: UUID
    author_email: str | None
    type: EventType
    content: str
    data: EventData = Field(default_factory=EventData)
    parent_event_id: UUID | None = None
    parent: ParentQuote | None = None
    created_at: datetime
