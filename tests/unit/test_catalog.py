"""
Unit tests for the homework catalog adapter and requirement value types.
"""

from uuid import uuid4

import pytest

from src.db.models import Homework, TrainingModule
from src.homework.catalog import HomeworkCatalog, decode_instructions, decode_requirements
from src.homework.errors import NotFound
from src.homework.types import Requirement


class TestDecodeRequirements:
    def test_decodes_typed_requirements(self):
        requirements = decode_requirements(
            [
                {"task": "post", "quantity": 3, "metric": "posts"},
                {"task": "comment", "quantity": 50, "metric": "comments"},
            ]
        )

        assert requirements == (
            Requirement(task="post", quantity=3, metric="posts"),
            Requirement(task="comment", quantity=50, metric="comments"),
        )

    def test_skips_malformed_entries(self):
        requirements = decode_requirements(
            [
                {"task": "no metric", "quantity": 1},
                {"task": "negative", "quantity": -1, "metric": "x"},
                {"task": "float", "quantity": 1.5, "metric": "y"},
                "not an object",
                {"quantity": 2, "metric": "reels"},
            ]
        )

        assert requirements == (Requirement(task="reels", quantity=2, metric="reels"),)

    def test_none_is_empty(self):
        assert decode_requirements(None) == ()

    def test_instructions_keep_step_order(self):
        instructions = decode_instructions([{"task": "post", "steps": ["hook", " ", "film", "publish"]}])

        assert instructions[0].task == "post"
        assert instructions[0].steps == ("hook", "film", "publish")


class TestRequirement:
    def test_percent_complete_is_capped(self):
        req = Requirement(task="post", quantity=3, metric="posts")

        assert req.percent_complete(0) == 0.0
        assert req.percent_complete(1) == pytest.approx(33.333, rel=1e-3)
        assert req.percent_complete(3) == 100.0
        assert req.percent_complete(9) == 100.0

    def test_zero_quantity_is_already_met(self):
        req = Requirement(task="optional", quantity=0, metric="extra")

        assert req.percent_complete(0) == 100.0
        assert req.is_met(0)


class TestHomeworkCatalog:
    def test_get_homework(self, db_session, homework):
        definition = HomeworkCatalog(db_session).get_homework(homework.id)

        assert definition.title == "Post and Engage"
        assert definition.points == 30
        assert definition.metrics == frozenset({"posts", "comments"})
        assert definition.module.title == "Turning Comments Into Conversations"
        assert definition.module.category_name == "Content Creation"
        assert definition.instructions[0].steps == ("Pick a hook", "Film", "Publish")

    def test_is_satisfied_by(self, db_session, homework):
        definition = HomeworkCatalog(db_session).get_homework(homework.id)

        assert not definition.is_satisfied_by({})
        assert not definition.is_satisfied_by({"posts": 3, "comments": 49})
        assert definition.is_satisfied_by({"posts": 3, "comments": 50})
        assert definition.is_satisfied_by({"posts": 10, "comments": 80, "other": 1})

    def test_unknown_homework(self, db_session):
        with pytest.raises(NotFound):
            HomeworkCatalog(db_session).get_homework(uuid4())

    def test_list_modules_skips_unpublished_and_inactive(self, db_session, homework, training_module):
        hidden = TrainingModule(title="Draft", order=5, is_published=False)
        retired = Homework(module=training_module, title="Retired", requirements=[], is_active=False)
        db_session.add_all([hidden, retired])
        db_session.flush()

        modules = HomeworkCatalog(db_session).list_modules()

        assert [m.title for m, _ in modules] == ["Turning Comments Into Conversations"]
        assert [hw.title for hw in modules[0][1]] == ["Post and Engage"]
