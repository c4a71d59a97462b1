"""
Demo data for local development.

Creates one training category with two homework-bearing modules, an
Instagram account for a teacher and two automation flows on it.
Safe to run repeatedly: nothing is created when the demo category exists.
"""
from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session

from src.db.models import Homework, SocialAccount, TrainingCategory, TrainingModule
from src.homework.flows import FlowRegistry
from src.homework.types import SocialPlatform, TriggerType

DEMO_CATEGORY = "Content Creation"


def seed_demo_data(session: Session, teacher_id: str = "teacher-demo") -> bool:
    """Insert the demo curriculum and flows. Returns False when already seeded."""
    existing = session.scalars(select(TrainingCategory).where(TrainingCategory.name == DEMO_CATEGORY)).first()
    if existing is not None:
        logger.info("Demo data already present, skipping")
        return False

    category = TrainingCategory(
        name=DEMO_CATEGORY,
        description="Master the art of creating scroll-stopping content that books clients",
        order=1,
    )
    hooks = TrainingModule(
        category=category,
        title="The Hook Formula That Goes Viral",
        description="Proven hook templates for fitness studios.",
        duration_minutes=25,
        order=1,
    )
    engagement = TrainingModule(
        category=category,
        title="Turning Comments Into Conversations",
        description="Drive comments and move them to DMs.",
        duration_minutes=20,
        order=2,
    )
    session.add_all(
        [
            category,
            Homework(
                module=hooks,
                title="Create 8 Reels Using Hook Formula",
                description="Create 8 Reels using the hook formulas. Set up comment-to-DM automation to track results.",
                requirements=[
                    {"task": "Create Instagram Reels", "quantity": 8, "metric": "reels_created"},
                    {"task": "Set up auto-reply flow", "quantity": 1, "metric": "flow_created"},
                    {"task": "Get bookings from reels", "quantity": 3, "metric": "bookings"},
                ],
                instructions=[
                    {"task": "Create Instagram Reels", "steps": ["Pick a hook", "Film in vertical", "Post with a CTA"]},
                ],
                points=50,
            ),
            Homework(
                module=engagement,
                title="Post and Engage",
                description="Post reels and grow the conversation underneath them.",
                requirements=[
                    {"task": "post", "quantity": 3, "metric": "posts"},
                    {"task": "comment", "quantity": 50, "metric": "comments"},
                ],
                points=30,
            ),
        ]
    )

    account = SocialAccount(
        platform=SocialPlatform.INSTAGRAM,
        username="zenith_teacher",
        display_name="Zenith Teacher",
        teacher_id=teacher_id,
    )
    session.add(account)
    session.flush()

    flows = FlowRegistry(session)
    flows.create_flow(
        account_id=account.id,
        name="Book Now Auto-Reply",
        trigger_type=TriggerType.COMMENT_KEYWORD,
        trigger_keywords=["book", "info", "interested", "price"],
        response_message="Thanks for your interest! Book your first class here:",
        booking_message="Book your intro class here:",
    )
    flows.create_flow(
        account_id=account.id,
        name="Story Reply - Class Info",
        trigger_type=TriggerType.STORY_REPLY,
        trigger_keywords=["when", "time", "class", "schedule"],
        response_message="Our classes run every day from 6am-8pm. Want the schedule?",
    )
    logger.info("Seeded demo curriculum and flows for teacher {}", teacher_id)
    return True
