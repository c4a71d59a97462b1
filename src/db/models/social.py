"""
Social media models: connected accounts and auto-reply automation flows.

A flow belongs to one account. Accounts belong to a teacher (teacher_id)
and/or a studio (studio_id). Flows outlive the homework submissions that
reference them.
"""
from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, Text, func
from sqlalchemy import Enum as SAEnum
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.homework.types import SocialPlatform, TriggerType

from .base import Base


class SocialAccount(Base):
    __tablename__ = "social_media_accounts"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    platform: Mapped[SocialPlatform] = mapped_column(
        SAEnum(SocialPlatform, native_enum=False, length=32), nullable=False
    )
    username: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text)
    teacher_id: Mapped[str | None] = mapped_column(Text, index=True)
    studio_id: Mapped[str | None] = mapped_column(Text, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    flows: Mapped[list[AutomationFlow]] = relationship(back_populates="account")

    def __repr__(self) -> str:
        return f"<SocialAccount {self.platform.value}:{self.username}>"


class AutomationFlow(Base):
    """
    Auto-reply automation on a connected account.

    Counters are only ever changed with in-place SQL increments by the
    flow registry.
    """

    __tablename__ = "social_media_flows"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("social_media_accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    trigger_type: Mapped[TriggerType] = mapped_column(
        SAEnum(TriggerType, native_enum=False, length=32), nullable=False
    )
    trigger_keywords: Mapped[list[str]] = mapped_column(JSON, default=list)
    response_message: Mapped[str] = mapped_column(Text, nullable=False)
    booking_message: Mapped[str | None] = mapped_column(Text)
    include_booking_link: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    total_triggered: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_responded: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_booked: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=func.now())
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    account: Mapped[SocialAccount] = relationship(back_populates="flows")

    __table_args__ = (Index("idx_flows_account_active", "account_id", "is_active"),)

    def __repr__(self) -> str:
        return f"<AutomationFlow {self.name!r} trigger={self.trigger_type.value}>"
