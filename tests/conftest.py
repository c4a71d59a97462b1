"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Tests run against an in-memory SQLite database with every table created.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Point the module-level engine at SQLite before anything imports config
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("APP_BASE_URL", "https://studio.example.com")

from sqlalchemy.orm import sessionmaker  # noqa: E402

from src.db.database import build_engine  # noqa: E402
from src.db.models import (  # noqa: E402
    Base,
    Homework,
    SocialAccount,
    TrainingCategory,
    TrainingModule,
)
from src.homework.engine import HomeworkSubmissionEngine  # noqa: E402
from src.homework.flows import FlowRegistry  # noqa: E402
from src.homework.ledger import AttributionLedger  # noqa: E402
from src.homework.tracking import TrackingCodeGenerator  # noqa: E402
from src.homework.types import SocialPlatform, TriggerType  # noqa: E402

TEACHER = "teacher-1"
OTHER_TEACHER = "teacher-2"


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite-backed API and scenarios)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def db_engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def booking_url():
    return lambda teacher_id: f"https://studio.example.com/zenith/book?teacher={teacher_id}"


@pytest.fixture
def tracking(booking_url):
    return TrackingCodeGenerator(booking_url=booking_url)


@pytest.fixture
def flows(db_session):
    return FlowRegistry(db_session)


@pytest.fixture
def engine(db_session, flows, tracking):
    return HomeworkSubmissionEngine(db_session, flows=flows, tracking=tracking)


@pytest.fixture
def ledger(db_session, engine, flows):
    return AttributionLedger(db_session, engine=engine, flows=flows)


@pytest.fixture
def training_module(db_session):
    category = TrainingCategory(name="Content Creation", order=1)
    module = TrainingModule(category=category, title="Turning Comments Into Conversations", order=1)
    db_session.add_all([category, module])
    db_session.flush()
    return module


@pytest.fixture
def homework(db_session, training_module):
    """The posts/comments homework: 3 posts and 50 comments."""
    hw = Homework(
        module=training_module,
        title="Post and Engage",
        requirements=[
            {"task": "post", "quantity": 3, "metric": "posts"},
            {"task": "comment", "quantity": 50, "metric": "comments"},
        ],
        instructions=[{"task": "post", "steps": ["Pick a hook", "Film", "Publish"]}],
        points=30,
    )
    db_session.add(hw)
    db_session.flush()
    return hw


@pytest.fixture
def second_homework(db_session, training_module):
    hw = Homework(
        module=training_module,
        title="Rewrite Your Bio",
        requirements=[{"task": "Update your bio", "quantity": 1, "metric": "bio_updated"}],
        points=10,
    )
    db_session.add(hw)
    db_session.flush()
    return hw


@pytest.fixture
def bookings_homework(db_session, training_module):
    """Homework whose completion needs attributed bookings."""
    hw = Homework(
        module=training_module,
        title="Create Reels That Book",
        requirements=[
            {"task": "Create Instagram Reels", "quantity": 1, "metric": "reels_created"},
            {"task": "Get bookings from reels", "quantity": 2, "metric": "bookings"},
        ],
        points=50,
    )
    db_session.add(hw)
    db_session.flush()
    return hw


def _account(db_session, teacher_id, username):
    account = SocialAccount(platform=SocialPlatform.INSTAGRAM, username=username, teacher_id=teacher_id)
    db_session.add(account)
    db_session.flush()
    return account


@pytest.fixture
def teacher_flow(db_session, flows):
    account = _account(db_session, TEACHER, "zenith_teacher")
    return flows.create_flow(
        account_id=account.id,
        name="Book Now Auto-Reply",
        trigger_type=TriggerType.COMMENT_KEYWORD,
        trigger_keywords=["Book", "info", " price "],
        response_message="Book your first class here:",
    )


@pytest.fixture
def other_teacher_flow(db_session, flows):
    account = _account(db_session, OTHER_TEACHER, "other_teacher")
    return flows.create_flow(
        account_id=account.id,
        name="DM Welcome Flow",
        trigger_type=TriggerType.INBOUND_DM_KEYWORD,
        trigger_keywords=["hi", "hello"],
        response_message="Hey there!",
    )
