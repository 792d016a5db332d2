import pytest

from giftsplit.models import AuditLog, Invitee, InviteeStatus


def _answer(name: str, email: str, decision: str, phone: str = "+1 555 0100") -> dict[str, str]:
    return {"name": name, "email": email, "phone": phone, "decision": decision}


@pytest.mark.anyio
async def test_preview_and_status_lookup(client, make_gift):
    created = await make_gift(total=2500, emails=["known@example.com"])
    token = created["invitation_link"]["token"]

    preview = await client.get(f"/join/{token}")
    assert preview.status_code == 200
    gift = preview.json()["gift"]
    assert gift["name"] == "Farewell gift"
    assert gift["total_amount_cents"] == 2500
    assert gift["invitee_count"] == 1
    assert gift["split_locked_at"] is None

    known = await client.get(f"/join/{token}/invitee", params={"email": "KNOWN@example.com"})
    assert known.status_code == 200
    assert known.json()["exists"] is True
    assert known.json()["invitee"]["status"] == "invited"

    unknown = await client.get(f"/join/{token}/invitee", params={"email": "nobody@example.com"})
    assert unknown.json() == {"exists": False, "invitee": None}


@pytest.mark.anyio
async def test_unknown_revoked_and_expired_tokens(client, organizer_headers, make_gift):
    created = await make_gift()
    gift_id = created["gift"]["id"]
    link = created["invitation_link"]

    unknown = await client.get("/join/not-a-real-token")
    assert unknown.status_code == 404
    assert unknown.json()["error"]["code"] == "INVITATION_LINK_NOT_FOUND"

    await client.post(
        f"/gifts/{gift_id}/invitation-links/{link['id']}/revoke", headers=organizer_headers
    )
    revoked = await client.get(f"/join/{link['token']}")
    assert revoked.status_code == 410
    assert revoked.json()["error"]["code"] == "INVITATION_LINK_REVOKED"

    expired_link = await client.post(
        f"/gifts/{gift_id}/invitation-links",
        json={"expires_at": "2000-01-01T00:00:00Z"},
        headers=organizer_headers,
    )
    expired = await client.post(
        f"/join/{expired_link.json()['token']}/respond",
        json=_answer("Eve", "eve@example.com", "yes"),
    )
    assert expired.status_code == 410
    assert expired.json()["error"]["code"] == "INVITATION_LINK_EXPIRED"

    expired_token = expired_link.json()["token"]
    expired_preview = await client.get(f"/join/{expired_token}")
    assert expired_preview.status_code == 410
    assert expired_preview.json()["error"]["code"] == "INVITATION_LINK_EXPIRED"

    expired_status = await client.get(
        f"/join/{expired_token}/invitee", params={"email": "eve@example.com"}
    )
    assert expired_status.status_code == 410
    assert expired_status.json()["error"]["code"] == "INVITATION_LINK_EXPIRED"


@pytest.mark.anyio
async def test_respond_creates_then_updates_same_decision(client, db_session, make_gift):
    created = await make_gift()
    token = created["invitation_link"]["token"]

    first = await client.post(f"/join/{token}/respond", json=_answer("Ann", "Ann@Example.com", "yes"))
    assert first.status_code == 201, first.text
    assert first.json()["email"] == "ann@example.com"
    assert first.json()["status"] == "accepted"

    repeat = await client.post(
        f"/join/{token}/respond", json=_answer("Ann Smith", "ann@example.com", "yes", phone="+1 555 0199")
    )
    assert repeat.status_code == 200
    assert repeat.json()["id"] == first.json()["id"]
    assert repeat.json()["name"] == "Ann Smith"
    assert repeat.json()["phone"] == "+1 555 0199"

    entry = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "INVITEE_RESPONDED")
        .order_by(AuditLog.id.desc())
        .first()
    )
    assert entry is not None
    assert entry.data_json["email"] == "***@example.com"


@pytest.mark.anyio
async def test_first_response_is_final(client, make_gift):
    created = await make_gift()
    token = created["invitation_link"]["token"]

    declined = await client.post(f"/join/{token}/respond", json=_answer("Bo", "bo@example.com", "no"))
    assert declined.status_code == 201
    assert declined.json()["status"] == "declined"

    change = await client.post(f"/join/{token}/respond", json=_answer("Bo", "bo@example.com", "yes"))
    assert change.status_code == 409
    assert change.json()["error"]["code"] == "ALREADY_RESPONDED"


@pytest.mark.anyio
async def test_invited_record_can_decline(client, make_gift):
    created = await make_gift(emails=["cy@example.com"])
    token = created["invitation_link"]["token"]

    response = await client.post(f"/join/{token}/respond", json=_answer("Cy", "cy@example.com", "no"))
    assert response.status_code == 200
    assert response.json()["status"] == "declined"
    assert response.json()["name"] == "Cy"


@pytest.mark.anyio
async def test_respond_after_lock_is_rejected(client, make_gift, fake_stripe, outbox, organizer_headers):
    created = await make_gift(emails=["dee@example.com"])
    gift_id = created["gift"]["id"]
    token = created["invitation_link"]["token"]

    locked = await client.post(f"/gifts/{gift_id}/lock-and-send", headers=organizer_headers)
    assert locked.status_code == 200, locked.text

    response = await client.post(f"/join/{token}/respond", json=_answer("Ed", "ed@example.com", "yes"))
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "GIFT_LOCKED"


@pytest.mark.anyio
async def test_respond_validates_payload(client, make_gift):
    created = await make_gift()
    token = created["invitation_link"]["token"]

    response = await client.post(
        f"/join/{token}/respond",
        json={"name": "  ", "email": "not-an-email", "phone": "1", "decision": "maybe"},
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_canceled_invitee_cannot_respond(client, db_session, make_gift):
    created = await make_gift()
    token = created["invitation_link"]["token"]
    db_session.add(
        Invitee(gift_id=created["gift"]["id"], email="gone@example.com", status=InviteeStatus.CANCELED)
    )
    db_session.commit()

    response = await client.post(f"/join/{token}/respond", json=_answer("Gus", "gone@example.com", "yes"))
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INVITEE_NOT_RESPONDABLE"
    assert response.json()["error"]["details"] == {"status": "canceled"}
