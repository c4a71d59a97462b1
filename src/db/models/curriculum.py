"""
Curriculum models for social media training.

Owned by curriculum authoring; the homework engine only reads them.

- TrainingCategory: groups modules ("Content Creation", "Profile Optimization")
- TrainingModule: one lesson, optionally carrying homework
- Homework: quantified task template; requirements and instructions are
  stored as JSON lists and decoded by the homework catalog
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Integer, Text, func
from sqlalchemy import Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class TrainingCategory(Base):
    __tablename__ = "social_training_categories"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    modules: Mapped[list[TrainingModule]] = relationship(
        back_populates="category", order_by="TrainingModule.order"
    )


class TrainingModule(Base):
    __tablename__ = "social_training_modules"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("social_training_categories.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    video_url: Mapped[str | None] = mapped_column(Text)
    duration_minutes: Mapped[int | None] = mapped_column(Integer)
    order: Mapped[int] = mapped_column(Integer, default=0)
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    category: Mapped[TrainingCategory | None] = relationship(back_populates="modules")
    homework: Mapped[list[Homework]] = relationship(back_populates="module")

    def __repr__(self) -> str:
        return f"<TrainingModule {self.title!r}>"


class Homework(Base):
    """
    Homework attached to a training module.

    requirements JSON:
        [{"task": "Create Instagram Reels", "quantity": 8, "metric": "reels_created"}, ...]

    instructions JSON:
        [{"task": "Create Instagram Reels", "steps": ["Pick a hook", "Film", "Post"]}, ...]
    """

    __tablename__ = "social_training_homework"

    id: Mapped[UUID] = mapped_column(SAUuid, primary_key=True, default=uuid4)
    module_id: Mapped[UUID] = mapped_column(
        ForeignKey("social_training_modules.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    requirements: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    instructions: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)
    points: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(default=func.now())

    module: Mapped[TrainingModule] = relationship(back_populates="homework")

    __table_args__ = (CheckConstraint("points >= 0", name="ck_homework_points_non_negative"),)

    def __repr__(self) -> str:
        return f"<Homework {self.title!r} points={self.points}>"
