from datetime import timedelta

import pytest

from giftsplit.models import InvitationLink
from giftsplit.services import invitations as invitation_service
from giftsplit.utils.time import utcnow


@pytest.mark.anyio
async def test_create_gift_issues_first_link(client, organizer_headers, make_gift):
    created = await make_gift(total=5000)

    link = created["invitation_link"]
    assert created["gift"]["split_locked_at"] is None
    assert link["url"] == f"http://testserver.local/join/{link['token']}"
    assert link["expires_at"] is not None

    latest = await client.get(
        f"/gifts/{created['gift']['id']}/invitation-links/latest", headers=organizer_headers
    )
    assert latest.status_code == 200
    assert latest.json()["id"] == link["id"]


@pytest.mark.anyio
async def test_organizer_routes_require_api_key(client):
    response = await client.post("/gifts", json={"name": "x", "total_amount_cents": 100})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "NO_API_KEY"

    response = await client.get("/gifts", headers={"X-API-Key": "wrong"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_expiry_policy_conflict(client, organizer_headers, make_gift):
    created = await make_gift()
    gift_id = created["gift"]["id"]

    response = await client.post(
        f"/gifts/{gift_id}/invitation-links",
        json={"expires_at": "2030-01-01T00:00:00Z", "expires_in_days": 3},
        headers=organizer_headers,
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "EXPIRY_POLICY_CONFLICT"


@pytest.mark.anyio
async def test_link_for_unknown_gift(client, organizer_headers):
    response = await client.post(
        "/gifts/999999/invitation-links", json={}, headers=organizer_headers
    )
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "GIFT_NOT_FOUND"

    latest = await client.get("/gifts/999999/invitation-links/latest", headers=organizer_headers)
    assert latest.status_code == 404
    assert latest.json()["error"]["code"] == "GIFT_NOT_FOUND"


@pytest.mark.anyio
async def test_latest_skips_revoked_and_expired(client, organizer_headers, make_gift):
    created = await make_gift()
    gift_id = created["gift"]["id"]
    first_id = created["invitation_link"]["id"]

    expired = await client.post(
        f"/gifts/{gift_id}/invitation-links",
        json={"expires_at": (utcnow() - timedelta(hours=1)).isoformat()},
        headers=organizer_headers,
    )
    assert expired.status_code == 201

    latest = await client.get(f"/gifts/{gift_id}/invitation-links/latest", headers=organizer_headers)
    assert latest.json()["id"] == first_id

    revoked = await client.post(
        f"/gifts/{gift_id}/invitation-links/{first_id}/revoke", headers=organizer_headers
    )
    assert revoked.status_code == 200
    assert revoked.json()["revoked_at"] is not None

    latest = await client.get(f"/gifts/{gift_id}/invitation-links/latest", headers=organizer_headers)
    assert latest.status_code == 404
    assert latest.json()["error"]["code"] == "INVITATION_LINK_NOT_ACTIVE"


@pytest.mark.anyio
async def test_relative_expiry(client, organizer_headers, make_gift):
    created = await make_gift()
    response = await client.post(
        f"/gifts/{created['gift']['id']}/invitation-links",
        json={"expires_in_days": 2},
        headers=organizer_headers,
    )
    assert response.status_code == 201
    assert response.json()["token"] != created["invitation_link"]["token"]


def test_token_collision_is_retried(db_session, monkeypatch):
    from giftsplit.models import Gift

    gift = Gift(name="Collision", currency="usd", total_amount_cents=100)
    db_session.add(gift)
    db_session.flush()
    taken = invitation_service.insert_link(db_session, gift.id, expires_at=None)
    db_session.commit()

    tokens = iter([taken.token, "fresh-token-value"])
    monkeypatch.setattr(invitation_service, "generate_invitation_token", lambda: next(tokens))

    link = invitation_service.create_invitation_link(db_session, gift.id, expires_in_days=1)
    assert link.token == "fresh-token-value"
    assert db_session.query(InvitationLink).filter_by(gift_id=gift.id).count() == 2


def test_token_retries_are_bounded(db_session, monkeypatch):
    from fastapi import HTTPException

    from giftsplit.models import Gift

    gift = Gift(name="Exhausted", currency="usd", total_amount_cents=100)
    db_session.add(gift)
    db_session.flush()
    taken = invitation_service.insert_link(db_session, gift.id, expires_at=None)
    db_session.commit()

    calls = []

    def _same_token() -> str:
        calls.append(1)
        return taken.token

    monkeypatch.setattr(invitation_service, "generate_invitation_token", _same_token)

    with pytest.raises(HTTPException) as exc_info:
        invitation_service.create_invitation_link(db_session, gift.id)
    assert exc_info.value.status_code == 500
    assert exc_info.value.detail["error"]["code"] == "INVITATION_TOKEN_EXHAUSTED"
    assert len(calls) == invitation_service.MAX_TOKEN_ATTEMPTS
