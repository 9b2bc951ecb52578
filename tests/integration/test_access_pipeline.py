"""
Integration tests for the full access pipeline over HTTP.

Tests:
- Query submission records exactly one access request and ticket
- Administrator review through the API, including conflicting reviews
- Proceed token redemption rules
- Admin header enforcement

These tests run the real application against mongomock with a stub scorer.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import AsyncClient
from motor.motor_asyncio import AsyncIOMotorDatabase

from accessgate.api.dependencies import get_query_gate
from accessgate.api.main import app
from accessgate.api.routes.queries import get_answer_service
from accessgate.models.verdict import AnswerPayload
from tests.factories import create_admin, create_signals, create_user


@pytest_asyncio.fixture
async def client(
    api_client: AsyncClient,
    make_gate,
) -> AsyncGenerator[AsyncClient, None]:
    """API client whose query gate uses the stub scorer."""
    gate = make_gate()
    answers = AsyncMock()
    answers.answer.return_value = AnswerPayload(text_response="EMEA led Q3 revenue.")

    app.dependency_overrides[get_query_gate] = lambda: gate
    app.dependency_overrides[get_answer_service] = lambda: answers
    yield api_client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_headers(test_db: AsyncIOMotorDatabase) -> dict[str, str]:
    admin = create_admin()
    await test_db.users.insert_one(admin)
    return {"X-Admin-Id": str(admin["_id"])}


async def insert_requester(test_db: AsyncIOMotorDatabase, **kwargs) -> str:
    user = create_user(**kwargs)
    await test_db.users.insert_one(user)
    return str(user["_id"])


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_approved_query_then_answer(
    client: AsyncClient,
    test_db: AsyncIOMotorDatabase,
) -> None:
    """An approved query yields a token that can be redeemed for an answer."""
    requester_id = await insert_requester(test_db)

    response = await client.post(
        "/api/v1/queries",
        json={
            "requester_id": requester_id,
            "query": "What was Q3 revenue by region?",
            "resource_context": {"resource_sensitivity": "low"},
        },
    )

    assert response.status_code == 200
    verdict = response.json()
    assert verdict["outcome"] == "approved"
    assert "anomaly_score" not in response.text

    answer = await client.post(
        "/api/v1/queries/answer",
        json={"proceed_token": verdict["proceed_token"]},
    )
    assert answer.status_code == 200
    assert answer.json()["text_response"] == "EMEA led Q3 revenue."

    again = await client.post(
        "/api/v1/queries/answer",
        json={"proceed_token": verdict["proceed_token"]},
    )
    assert again.status_code == 200

    assert await test_db.access_requests.count_documents({}) == 1
    assert await test_db.review_tickets.count_documents({}) == 1


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_denied_query_is_200_with_reason(
    client: AsyncClient,
    test_db: AsyncIOMotorDatabase,
) -> None:
    requester_id = await insert_requester(test_db, employee_status="Terminated")

    response = await client.post(
        "/api/v1/queries",
        json={"requester_id": requester_id, "query": "Payroll export"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body == {
        "outcome": "denied",
        "reason": "inactive employment status",
        "access_request_id": body["access_request_id"],
        "ticket_id": body["ticket_id"],
    }


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_forged_token_is_forbidden(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/queries/answer",
        json={"proceed_token": "forged-token"},
    )
    assert response.status_code == 403


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_rag_denial(client: AsyncClient, test_db: AsyncIOMotorDatabase) -> None:
    requester_id = await insert_requester(test_db, past_violations=5)

    response = await client.post(
        "/api/v1/rag",
        json={
            "requester_id": requester_id,
            "query": "Q3 revenue",
            "resource_context": {"resource_sensitivity": "low"},
        },
    )

    assert response.status_code == 403
    assert response.json()["error"] == "Access denied"
    assert response.json()["details"] == "policy violation history exceeds limit"


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_admin_review_flow(
    client: AsyncClient,
    test_db: AsyncIOMotorDatabase,
    admin_headers: dict[str, str],
) -> None:
    """Pending ticket is reviewed once; a second review is a conflict."""
    requester_id = await insert_requester(test_db, last_security_training="Never")
    verdict = (
        await client.post(
            "/api/v1/queries",
            json={"requester_id": requester_id, "query": "Board minutes"},
        )
    ).json()
    ticket_id = verdict["ticket_id"]

    pending = await client.get(
        "/api/v1/tickets", params={"status": "pending"}, headers=admin_headers
    )
    assert pending.status_code == 200
    assert [t["id"] for t in pending.json()["data"]] == [ticket_id]

    reviewed = await client.post(
        f"/api/v1/tickets/{ticket_id}/review",
        json={"outcome": "approved", "notes": "verified manually"},
        headers=admin_headers,
    )
    assert reviewed.status_code == 200
    data = reviewed.json()["data"]
    assert data["status"] == "approved"
    assert data["reviewed_at"] is not None
    assert data["reviewed_by"] == admin_headers["X-Admin-Id"]

    again = await client.post(
        f"/api/v1/tickets/{ticket_id}/review",
        json={"outcome": "denied"},
        headers=admin_headers,
    )
    assert again.status_code == 409

    trail = await client.get(
        "/api/v1/audit", params={"target_id": ticket_id}, headers=admin_headers
    )
    actions = [e["action_type"] for e in trail.json()["data"]]
    assert sorted(actions) == ["ticket.review", "ticket.review_rejected"]

    detail = await client.get(
        f"/api/v1/access-requests/{verdict['access_request_id']}",
        headers=admin_headers,
    )
    assert detail.status_code == 200
    assert detail.json()["data"]["risk_signals"]["anomaly_score"] == pytest.approx(
        create_signals().anomaly_score
    )


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_admin_routes_require_admin(
    client: AsyncClient,
    test_db: AsyncIOMotorDatabase,
) -> None:
    requester_id = await insert_requester(test_db)

    missing = await client.get("/api/v1/tickets")
    assert missing.status_code == 401

    not_admin = await client.get("/api/v1/tickets", headers={"X-Admin-Id": requester_id})
    assert not_admin.status_code == 403

    unknown = await client.get(
        "/api/v1/tickets", headers={"X-Admin-Id": str(ObjectId())}
    )
    assert unknown.status_code == 401


@pytest.mark.integration
@pytest.mark.requires_mongodb
@pytest.mark.asyncio
async def test_user_lookup(
    client: AsyncClient,
    test_db: AsyncIOMotorDatabase,
    admin_headers: dict[str, str],
) -> None:
    requester_id = await insert_requester(test_db, email="dana.whitfield@example.com")

    by_id = await client.get(f"/api/v1/users/{requester_id}", headers=admin_headers)
    by_email = await client.get(
        "/api/v1/users/by-email/dana.whitfield@example.com", headers=admin_headers
    )

    assert by_id.json()["data"]["id"] == requester_id
    assert by_email.json()["data"]["id"] == requester_id
