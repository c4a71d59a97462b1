"""
Integration Tests for the REST API.

Drives the FastAPI app through TestClient against a seeded in-memory
SQLite database. Each request runs in its own committed session, the
same way production requests do.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from src.api.main import app
from src.db.database import get_db
from src.db.models import Homework, SocialAccount
from src.db.seed import seed_demo_data
from src.homework.flows import FlowRegistry
from src.homework.types import SocialPlatform, TriggerType

pytestmark = pytest.mark.integration

TEACHER = "teacher-demo"


@pytest.fixture
def seeded(session_factory):
    """Seed demo data plus a flow owned by another teacher; return the ids tests need."""
    session = session_factory()
    try:
        seed_demo_data(session, teacher_id=TEACHER)
        other = SocialAccount(platform=SocialPlatform.TIKTOK, username="someone_else", teacher_id="teacher-other")
        session.add(other)
        session.flush()
        foreign_flow = FlowRegistry(session).create_flow(
            account_id=other.id,
            name="Ad Click Welcome",
            trigger_type=TriggerType.AD_CLICK,
            response_message="Welcome!",
        )
        homework = {hw.title: str(hw.id) for hw in session.scalars(select(Homework))}
        flows = {f.name: str(f.id) for f in FlowRegistry(session).list_for_teacher(TEACHER)}
        ids = {
            "post_and_engage": homework["Post and Engage"],
            "reels": homework["Create 8 Reels Using Hook Formula"],
            "book_now_flow": flows["Book Now Auto-Reply"],
            "foreign_flow": str(foreign_flow.id),
        }
        session.commit()
    finally:
        session.close()
    return ids


@pytest.fixture
def client(session_factory, seeded):
    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _start(client, homework_id, teacher_id=TEACHER, flow_id=None):
    payload = {"teacher_id": teacher_id, "homework_id": homework_id}
    if flow_id:
        payload["attached_flow_id"] = flow_id
    return client.post("/api/homework/start", json=payload)


class TestHealth:
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["components"]["database"] == "ok"


class TestCatalog:
    def test_lists_modules_in_order(self, client):
        response = client.get("/api/homework/catalog")

        assert response.status_code == 200
        modules = response.json()
        assert [m["title"] for m in modules] == [
            "The Hook Formula That Goes Viral",
            "Turning Comments Into Conversations",
        ]
        reels = modules[0]["homework"][0]
        assert reels["points"] == 50
        assert {r["metric"] for r in reels["requirements"]} == {"reels_created", "flow_created", "bookings"}


class TestSubmissions:
    def test_start_returns_tracking_link(self, client, seeded):
        response = _start(client, seeded["post_and_engage"])

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "ACTIVE"
        assert body["tracking_code"].startswith("hw_")
        assert body["tracking_url"].startswith("https://studio.example.com/book?")
        assert body["overall_percent"] == 0.0

    def test_second_start_conflicts(self, client, seeded):
        _start(client, seeded["post_and_engage"])

        response = _start(client, seeded["reels"])

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "active_homework_exists"
        assert body["active_homework_id"] == seeded["post_and_engage"]
        assert body["message"] == "Finish or cancel your current homework first."

    def test_progress_to_completion(self, client, seeded):
        submission_id = _start(client, seeded["post_and_engage"]).json()["id"]

        first = client.post(f"/api/homework/{submission_id}/progress", json={"metric": "posts", "delta": 3})
        second = client.post(f"/api/homework/{submission_id}/progress", json={"metric": "comments", "delta": 50})

        assert first.json()["status"] == "ACTIVE"
        body = second.json()
        assert body["status"] == "COMPLETED"
        assert body["is_completed"] is True
        assert body["points_awarded"] == 30
        assert body["progress"] == {"posts": 3, "comments": 50}

    @pytest.mark.parametrize(
        "payload, error",
        [
            ({"metric": "posts", "delta": -1}, "invalid_progress_delta"),
            ({"metric": "followers", "delta": 1}, "unknown_metric"),
        ],
    )
    def test_rejected_progress(self, client, seeded, payload, error):
        submission_id = _start(client, seeded["post_and_engage"]).json()["id"]

        response = client.post(f"/api/homework/{submission_id}/progress", json=payload)

        assert response.status_code == 422
        assert response.json()["error"] == error

    def test_evidence(self, client, seeded):
        submission_id = _start(client, seeded["post_and_engage"]).json()["id"]

        response = client.put(
            f"/api/homework/{submission_id}/evidence",
            json={"urls": ["https://instagram.com/p/abc", "", "  "], "notes": "first reel"},
        )
        too_many = client.put(
            f"/api/homework/{submission_id}/evidence",
            json={"urls": [f"https://instagram.com/p/{i}" for i in range(25)]},
        )

        assert response.status_code == 200
        assert response.json()["submission_urls"] == ["https://instagram.com/p/abc"]
        assert too_many.status_code == 422
        assert too_many.json()["error"] == "too_many_evidence_links"

    def test_attach_flow(self, client, seeded):
        submission_id = _start(client, seeded["post_and_engage"]).json()["id"]

        own = client.put(f"/api/homework/{submission_id}/flow", json={"flow_id": seeded["book_now_flow"]})
        foreign = client.put(f"/api/homework/{submission_id}/flow", json={"flow_id": seeded["foreign_flow"]})
        detached = client.put(f"/api/homework/{submission_id}/flow", json={"flow_id": None})

        assert own.json()["attached_flow_id"] == seeded["book_now_flow"]
        assert foreign.status_code == 403
        assert detached.json()["attached_flow_id"] is None

    def test_cancel_twice_and_restart(self, client, seeded):
        started = _start(client, seeded["post_and_engage"]).json()

        cancelled = client.post(f"/api/homework/{started['id']}/cancel")
        again = client.post(f"/api/homework/{started['id']}/cancel")
        restarted = client.post(
            "/api/homework/restart", json={"teacher_id": TEACHER, "homework_id": seeded["post_and_engage"]}
        )

        assert cancelled.json()["status"] == "CANCELLED"
        assert again.status_code == 409
        assert again.json()["error"] == "submission_not_active"
        assert restarted.status_code == 201
        assert restarted.json()["restarted_from_id"] == started["id"]
        assert restarted.json()["tracking_code"] != started["tracking_code"]

    def test_list_submissions(self, client, seeded):
        started = _start(client, seeded["post_and_engage"]).json()

        response = client.get("/api/homework", params={"teacher_id": TEACHER})

        body = response.json()
        assert body["has_active_homework"] is True
        assert body["active_homework_id"] == seeded["post_and_engage"]
        assert body["active_submission_id"] == started["id"]
        assert [s["id"] for s in body["submissions"]] == [started["id"]]

    def test_unknown_submission(self, client):
        response = client.get("/api/homework/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestFlowsAndTracking:
    def test_list_flows(self, client):
        response = client.get("/api/flows", params={"teacher_id": TEACHER})

        assert response.status_code == 200
        assert {f["name"] for f in response.json()} == {"Book Now Auto-Reply", "Story Reply - Class Info"}

    def test_foreign_flow_lookup(self, client, seeded):
        response = client.get(f"/api/flows/{seeded['foreign_flow']}", params={"teacher_id": TEACHER})

        assert response.status_code == 403
        assert response.json()["error"] == "flow_ownership_mismatch"

    def test_trigger_click_and_conversion(self, client, seeded):
        flow_id = seeded["book_now_flow"]
        code = _start(client, seeded["post_and_engage"], flow_id=flow_id).json()["tracking_code"]

        trigger = client.post("/api/tracking/trigger", json={"flow_id": flow_id})
        assert trigger.status_code == 202
        assert trigger.json()["recorded"] is True
        click = client.post("/api/tracking/click", json={"tracking_code": code})
        conversion = client.post(
            "/api/tracking/conversion", json={"tracking_code": code, "booking_id": "bk-1", "revenue_cents": 2000}
        )
        duplicate = client.post("/api/tracking/conversion", json={"tracking_code": code, "booking_id": "bk-1"})

        assert click.status_code == 202
        assert click.json()["recorded"] is True
        assert conversion.json()["recorded"] is True
        assert duplicate.json()["recorded"] is False

        stats = client.get(f"/api/tracking/{code}/stats").json()
        assert (stats["clicks"], stats["conversions"], stats["revenue_cents"]) == (1, 1, 2000)

        flow = client.get(f"/api/flows/{flow_id}").json()
        assert (flow["total_triggered"], flow["total_booked"]) == (1, 1)
        assert flow["booking_rate"] == 100.0

    def test_trigger_counts_only_matching_interactions(self, client, seeded):
        flow_id = seeded["book_now_flow"]

        hit = client.post(
            "/api/tracking/trigger",
            json={"flow_id": flow_id, "trigger_type": "COMMENT_KEYWORD", "content": "How do I book?"},
        )
        miss = client.post(
            "/api/tracking/trigger",
            json={"flow_id": flow_id, "trigger_type": "COMMENT_KEYWORD", "content": "love this"},
        )
        wrong_type = client.post("/api/tracking/trigger", json={"flow_id": flow_id, "trigger_type": "AD_CLICK"})
        response = client.post("/api/tracking/response", json={"flow_id": flow_id})

        assert [r.json()["recorded"] for r in (hit, miss, wrong_type)] == [True, False, False]
        assert response.status_code == 204
        flow = client.get(f"/api/flows/{flow_id}").json()
        assert (flow["total_triggered"], flow["total_responded"]) == (1, 1)
        assert flow["response_rate"] == 100.0

    def test_unknown_code_is_accepted_but_not_recorded(self, client):
        response = client.post("/api/tracking/conversion", json={"tracking_code": "hw_nobody12345"})

        assert response.status_code == 202
        assert response.json() == {"recorded": False, "event_id": None}

    def test_stats_for_unknown_code(self, client):
        response = client.get("/api/tracking/hw_nobody12345/stats")

        assert response.status_code == 404
