from giftsplit.models.audit import AuditLog
from giftsplit.utils.audit import log_audit, sanitize_payload_for_audit


def test_audit_log_masks_sensitive_fields(db_session):
    payload = {
        "email": "sensitive@example.com",
        "phone": "+1 555 010 0199",
        "stripe_payment_intent_id": "pi_3Nabcdefghijkl",
        "nested": [{"token": "AbCdEfGhIjKlMnOp"}],
        "amount_cents": 1200,
    }

    log_audit(
        db_session,
        actor="test",
        action="MASK_TEST",
        entity="Invitee",
        entity_id=1,
        data=payload,
    )
    db_session.commit()

    entry = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "MASK_TEST")
        .order_by(AuditLog.id.desc())
        .first()
    )
    assert entry is not None
    assert entry.data_json["email"] == "***@example.com"
    assert entry.data_json["phone"] == "***99"
    assert entry.data_json["stripe_payment_intent_id"] == "***ijkl"
    assert entry.data_json["nested"][0]["token"] == "***MnOp"
    assert entry.data_json["amount_cents"] == 1200


def test_sanitize_keeps_short_values_opaque():
    assert sanitize_payload_for_audit({"token": "abc", "email": "nomail"}) == {
        "token": "***",
        "email": "***",
    }
