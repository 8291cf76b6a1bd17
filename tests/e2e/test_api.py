"""
End-to-End Tests for the HTTP API

Runs the FastAPI app against an in-memory document store with the auth
dependency overridden per test:
- Consultation routes and their error mapping
- Consultant pool and analytics
- Store catalog, quote and checkout
"""

import pytest
import sys
import os

# Add project root to path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
sys.path.insert(0, os.path.join(project_root, "student_services", "src"))
sys.path.insert(0, os.path.join(project_root, "backend"))

from fastapi.testclient import TestClient

import main
from lib.auth import get_optional_user
from lib.supabase_client import get_document_store
from student_services.config import Settings
from student_services.document_store import InMemoryDocumentStore

STUDENT = {"id": "stu-1", "email": "sara@example.com", "role": "student", "full_name": "Sara", "phone": None}
CONSULTANT = {"id": "con-1", "email": "lina@example.com", "role": "consultant", "full_name": "Dr. Lina", "phone": None}


class BrokenStore(InMemoryDocumentStore):
    async def query(self, collection, filters=None):
        raise RuntimeError("upstream unavailable")


def seed():
    return {
        "users": {
            "stu-1": {"name": "Sara", "role": "student"},
            "con-1": {"name": "Dr. Lina", "role": "consultant", "hourly_rate": 200},
        },
        "consultations": {
            "c1": {"student_id": "stu-1", "topic": "Recursion", "description": "Base cases",
                   "type": "technical", "status": "pending", "mentor_id": None, "duration": 60},
            "c2": {"student_id": "stu-1", "topic": "CV", "description": "Review",
                   "type": "career", "status": "completed", "mentor_id": "con-1",
                   "duration": 90, "rating": 4},
        },
        "store_items": {
            "kit": {"name": "Arduino Kit", "price": 150, "in_stock": True},
            "book": {"name": "Clean Code", "price": 40, "in_stock": True},
        },
    }


@pytest.fixture
def state():
    return {"user": None, "store": InMemoryDocumentStore(seed())}


@pytest.fixture
def client(state):
    main.app.dependency_overrides[get_document_store] = lambda: state["store"]
    main.app.dependency_overrides[main.get_settings] = lambda: Settings(checkout_latency_seconds=0)
    main.app.dependency_overrides[get_optional_user] = lambda: state["user"]
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def checkout_form():
    return {
        "full_name": "Sara Ahmed",
        "email": "sara@example.com",
        "phone": "0501234567",
        "address": "King Fahd Road 12",
        "city": "Riyadh",
        "payment_method": "mada",
        "agree_to_terms": True,
    }


class TestConsultationRoutes:
    """Test suite for /api/consultations."""

    def test_health(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_anonymous_list_rejected(self, client):
        response = client.get("/api/consultations")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "auth_required"

    def test_anonymous_create_rejected(self, client):
        response = client.post("/api/consultations", json={"topic": "t", "description": "d", "type": "technical"})

        assert response.status_code == 401
        assert response.json()["detail"]["message"] == "You must sign in first."

    def test_student_list_and_filters(self, client, state):
        state["user"] = STUDENT

        assert len(client.get("/api/consultations").json()) == 2

        filtered = client.get("/api/consultations", params={"status": "completed"}).json()
        assert [c["id"] for c in filtered] == ["c2"]
        assert filtered[0]["mentor_name"] == "Dr. Lina"

        searched = client.get("/api/consultations", params={"q": "base"}).json()
        assert [c["id"] for c in searched] == ["c1"]

    def test_summary(self, client, state):
        state["user"] = STUDENT
        summary = client.get("/api/consultations/summary").json()

        assert summary["pending"] == 1
        assert summary["completed"] == 1
        assert summary["total"] == 2

    def test_create(self, client, state):
        state["user"] = STUDENT
        response = client.post("/api/consultations", json={
            "topic": "Databases",
            "description": "Normalization",
            "type": "academic",
            "duration": 30,
            "preferredDate": "2025-06-01T10:00:00Z",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["student_id"] == "stu-1"
        assert body["preferredDate"].startswith("2025-06-01T10:00:00")

    def test_create_invalid_duration(self, client, state):
        state["user"] = STUDENT
        response = client.post("/api/consultations", json={
            "topic": "Databases", "description": "Normalization", "type": "academic", "duration": 45,
        })

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "validation_error"

    def test_invalid_transition(self, client, state):
        state["user"] = STUDENT
        response = client.patch("/api/consultations/c1", json={"status": "completed"})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "invalid_transition"

    def test_unknown_consultation(self, client, state):
        state["user"] = STUDENT
        response = client.post("/api/consultations/missing/cancel")

        assert response.status_code == 404

    def test_cancel(self, client, state):
        state["user"] = STUDENT
        response = client.post("/api/consultations/c1/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    def test_outsider_cannot_change(self, client, state):
        state["user"] = {**STUDENT, "id": "stu-2", "full_name": "Omar"}

        assert client.post("/api/consultations/c1/cancel").status_code == 403
        response = client.patch("/api/consultations/c2", json={"mentor_id": "stu-2"})
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_student_cannot_accept(self, client, state):
        state["user"] = STUDENT
        assert client.post("/api/consultations/c1/accept").status_code == 403

    def test_store_failure(self, client, state):
        state["user"] = STUDENT
        state["store"] = BrokenStore(seed())
        response = client.get("/api/consultations")

        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "store_failure"


class TestConsultantRoutes:
    """Test suite for the consultant pool, accept/complete and analytics."""

    def test_pool_requires_mentor(self, client, state):
        assert client.get("/api/consultations/pool").status_code == 401
        state["user"] = STUDENT
        assert client.get("/api/consultations/pool").status_code == 403

    def test_accept_and_complete(self, client, state):
        state["user"] = CONSULTANT
        pool = client.get("/api/consultations/pool").json()
        assert [c["id"] for c in pool["unassigned"]] == ["c1"]

        accepted = client.post("/api/consultations/c1/accept", json={"scheduledDate": "2025-06-02T08:00:00Z"})
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "scheduled"
        assert accepted.json()["mentor_id"] == "con-1"

        completed = client.post("/api/consultations/c1/complete", json={"rating": 5, "feedback": "Thanks"})
        assert completed.status_code == 200
        assert completed.json()["rating"] == 5

        pool = client.get("/api/consultations/pool").json()
        assert pool["unassigned"] == []
        assert {c["id"] for c in pool["mine"]} == {"c1", "c2"}

    def test_stats(self, client, state):
        state["user"] = CONSULTANT
        body = client.get("/api/consultants/me/stats").json()

        assert body["stats"]["completed"] == 1
        assert body["stats"]["earnings"] == 300.0
        assert body["reviews"]["average"] == 4.0
        assert body["reviews"]["positive_percentage"] == 100.0
        assert [review["id"] for review in body["recent_reviews"]] == ["c2"]

    def test_pool_counts_by_type(self, client, state):
        state["user"] = CONSULTANT
        pool = client.get("/api/consultations/pool").json()

        assert pool["unassigned_by_type"]["technical"] == 1
        assert pool["unassigned_by_type"]["career"] == 0

    def test_forbidden_detail(self, client, state):
        state["user"] = STUDENT
        response = client.get("/api/consultants/me/stats")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "forbidden"

    def test_schedule(self, client, state):
        state["user"] = CONSULTANT
        client.post("/api/consultations/c1/accept", json={"scheduledDate": "2099-01-15T09:00:00Z"})

        body = client.get("/api/consultants/me/schedule", params={"day": "2099-01-15"}).json()

        assert [c["id"] for c in body["scheduled"]] == ["c1"]
        assert [c["id"] for c in body["upcoming"]] == ["c1"]
        assert [c["id"] for c in body["day"]] == ["c1"]

    def test_consultant_directory(self, client):
        consultants = client.get("/api/consultants").json()

        assert [c["name"] for c in consultants] == ["Dr. Lina"]
        assert consultants[0]["hourly_rate"] == 200


class TestStoreRoutes:
    """Test suite for the store catalog, quote and checkout."""

    def test_items(self, client):
        items = client.get("/api/store/items").json()
        assert {item["id"] for item in items} == {"kit", "book"}

    def test_quote_with_coupon(self, client):
        body = client.post("/api/store/quote", json={
            "cart": {"kit": 1, "book": 2, "gone": 0},
            "coupon_code": "discount20",
        }).json()

        assert body["item_count"] == 3
        assert body["coupon_success"] == "Discount applied successfully!"
        assert body["totals"] == {
            "subtotal": 230.0,
            "shipping": 0.0,
            "tax": 34.5,
            "discount": 46.0,
            "total": 218.5,
        }

    def test_quote_invalid_coupon(self, client):
        body = client.post("/api/store/quote", json={"cart": {"book": 1}, "coupon_code": "FREE"}).json()

        assert body["coupon_error"] == "Invalid coupon code"
        assert body["totals"]["discount"] == 0.0
        assert body["totals"]["shipping"] == 30.0

    def test_checkout(self, client, checkout_form):
        response = client.post("/api/store/checkout", json={"cart": {"kit": 2}, "form": checkout_form})

        assert response.status_code == 200
        body = response.json()
        assert len(body["order_number"]) == 6
        assert body["payment_method"] == "mada"
        assert body["totals"]["total"] == 345.0

    def test_checkout_validation_error(self, client, checkout_form):
        checkout_form["agree_to_terms"] = False
        response = client.post("/api/store/checkout", json={"cart": {"kit": 1}, "form": checkout_form})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "You must agree to the terms and conditions to continue"

    def test_checkout_empty_cart(self, client, checkout_form):
        response = client.post("/api/store/checkout", json={"cart": {}, "form": checkout_form})

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "Your cart is empty"

    def test_checkout_unknown_payment_method(self, client, checkout_form):
        checkout_form["payment_method"] = "bitcoin"
        response = client.post("/api/store/checkout", json={"cart": {"kit": 1}, "form": checkout_form})

        assert response.status_code == 422


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
