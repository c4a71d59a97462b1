"""Read-only adapter over curriculum-owned homework definitions."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from src.db.models import Homework, TrainingModule
from src.homework.errors import NotFound
from src.homework.types import HomeworkDefinition, Instruction, ModuleSummary, Requirement


def decode_requirements(raw: list[dict[str, Any]] | None, homework_id: UUID | None = None) -> tuple[Requirement, ...]:
    """Decode the stored requirement list, skipping malformed entries."""
    requirements: list[Requirement] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            logger.warning("Skipping non-object requirement on homework {}: {!r}", homework_id, entry)
            continue
        try:
            requirements.append(Requirement.from_dict(entry))
        except ValueError as e:
            logger.warning("Skipping malformed requirement on homework {}: {}", homework_id, e)
    return tuple(requirements)


def decode_instructions(raw: list[dict[str, Any]] | None, homework_id: UUID | None = None) -> tuple[Instruction, ...]:
    instructions: list[Instruction] = []
    for entry in raw or []:
        if not isinstance(entry, dict):
            logger.warning("Skipping non-object instruction on homework {}: {!r}", homework_id, entry)
            continue
        try:
            instructions.append(Instruction.from_dict(entry))
        except ValueError as e:
            logger.warning("Skipping malformed instruction on homework {}: {}", homework_id, e)
    return tuple(instructions)


def to_definition(homework: Homework) -> HomeworkDefinition:
    module = homework.module
    return HomeworkDefinition(
        id=homework.id,
        title=homework.title,
        description=homework.description,
        requirements=decode_requirements(homework.requirements, homework.id),
        instructions=decode_instructions(homework.instructions, homework.id),
        points=homework.points or 0,
        module=ModuleSummary(
            id=module.id,
            title=module.title,
            category_name=module.category.name if module.category else None,
        ),
    )


class HomeworkCatalog:
    """Look up homework definitions by id."""

    def __init__(self, session: Session):
        self.session = session

    def get_homework(self, homework_id: UUID) -> HomeworkDefinition:
        stmt = (
            select(Homework)
            .where(Homework.id == homework_id)
            .options(selectinload(Homework.module).selectinload(TrainingModule.category))
        )
        homework = self.session.scalars(stmt).first()
        if homework is None:
            raise NotFound("Homework", homework_id)
        return to_definition(homework)

    def list_modules(self, published_only: bool = True) -> list[tuple[TrainingModule, list[HomeworkDefinition]]]:
        """Modules in display order with their active homework."""
        stmt = (
            select(TrainingModule)
            .options(
                selectinload(TrainingModule.homework).selectinload(Homework.module),
                selectinload(TrainingModule.category),
            )
            .order_by(TrainingModule.order)
        )
        if published_only:
            stmt = stmt.where(TrainingModule.is_published.is_(True))
        return [
            (module, [to_definition(hw) for hw in module.homework if hw.is_active])
            for module in self.session.scalars(stmt).all()
        ]
