"""
E2E tests for calling personas against the mock telephony provider.

These tests require the mock provider to be running:
    uvicorn mock.telephony_server.main:app --port 8001

User personas:
- premium couple: matched, both on a plan, full call lifecycle
- unreachable receiver: provider rejects the destination
- free member: no call plan, refused before dialing
- stranger: has credits but calls someone they are not matched with
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.database.models import CallSessionRecord

pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def require_mock_provider():
    try:
        httpx.get(f"{settings.telephony_api_base}/health", timeout=1.0).raise_for_status()
    except httpx.HTTPError:
        pytest.skip("mock telephony provider is not running")


def _initiate(client: TestClient, headers: dict, target_id: int):
    return client.post("/v1/calls/initiate", json={"target_user_id": target_id}, headers=headers)


def test_premium_couple_full_call(client: TestClient, db: Session, make_user, match_users, give_credits, auth_headers):
    """
    Premium couple: connect, ring, talk for 2m05s, hang up
    Expected: both charged 2 credits, one log each, numbers stay masked
    """
    caller = make_user(name="Ravi", gender="male", phone="+919811111111")
    receiver = make_user(name="Asha", gender="female", phone="+919822222222")
    match_users(caller.id, receiver.id)
    give_credits(caller.id, 10)
    give_credits(receiver.id, 10)

    response = _initiate(client, auth_headers(caller.id), receiver.id)
    assert response.status_code == 200
    session_id = response.json()["session_id"]

    view = client.get(f"/v1/calls/session/{session_id}", headers=auth_headers(caller.id)).json()
    assert view["status"] == "initiated"

    # Provider callbacks reference the call id the provider assigned at initiation
    provider_call_id = db.get(CallSessionRecord, session_id).provider_call_id

    for event in (
        {"CallSid": provider_call_id, "CallStatus": "ringing"},
        {"CallSid": provider_call_id, "CallStatus": "in-progress"},
        {"CallSid": provider_call_id, "CallStatus": "completed", "CallDuration": "125"},
    ):
        assert client.post("/v1/calls/webhook", json=event).status_code == 200

    view = client.get(f"/v1/calls/session/{session_id}", headers=auth_headers(receiver.id))
    assert view.json()["status"] == "completed"
    assert view.json()["cost"] == 3
    assert "+9198" not in view.text

    for user in (caller, receiver):
        credits = client.get("/v1/calls/credits", headers=auth_headers(user.id)).json()
        assert credits["total_remaining"] == 8
        logs = client.get("/v1/calls/logs", headers=auth_headers(user.id)).json()["logs"]
        assert len(logs) == 1


def test_unreachable_receiver(client: TestClient, make_user, match_users, give_credits, auth_headers):
    """
    Unreachable receiver: provider answers 400
    Expected: 502, credits untouched
    """
    caller = make_user(gender="male", phone="+919811111111")
    receiver = make_user(gender="female", phone="+919800000000")
    match_users(caller.id, receiver.id)
    give_credits(caller.id, 10)

    response = _initiate(client, auth_headers(caller.id), receiver.id)

    assert response.status_code == 502
    credits = client.get("/v1/calls/credits", headers=auth_headers(caller.id)).json()
    assert credits["total_remaining"] == 10


def test_free_member_cannot_call(client: TestClient, make_user, match_users, auth_headers):
    """
    Free member: no call plan
    Expected: 402 before the provider is contacted
    """
    caller = make_user(gender="male", phone="+919811111111")
    receiver = make_user(gender="female", phone="+919822222222")
    match_users(caller.id, receiver.id)

    response = _initiate(client, auth_headers(caller.id), receiver.id)

    assert response.status_code == 402


def test_stranger_cannot_call(client: TestClient, make_user, give_credits, auth_headers):
    """
    Stranger: credits but no match
    Expected: 403
    """
    caller = make_user(gender="male", phone="+919811111111")
    receiver = make_user(gender="female", phone="+919822222222")
    give_credits(caller.id, 10)

    response = _initiate(client, auth_headers(caller.id), receiver.id)

    assert response.status_code == 403
