"""Profile model - per-user contact and notification settings."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db import Base
from models.user import utcnow


class Profile(Base):
    """Profile ORM model. Its id is the owning user's id."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    whatsapp: Mapped[str | None] = mapped_column(String(64), nullable=True)
    telegram: Mapped[str | None] = mapped_column(String(64), nullable=True)
    telegram_bot_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


# Pydantic schemas
class ProfileBase(BaseModel):
    """Editable profile fields."""

    full_name: str | None = None
    phone: str | None = None
    whatsapp: str | None = None
    telegram: str | None = None


class ProfileUpdate(ProfileBase):
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None


class ProfileResponse(ProfileUpdate):
    """Own profile, including bot credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    updated_at: datetime


class ContactCard(ProfileBase):
    """Public view of another user's profile (no bot credentials)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str | None = None
