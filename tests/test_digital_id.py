"""Digital ID issuance and immutability tests."""

import json
import re
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from safetrail.core.clock import utcnow
from safetrail.core.errors import CardImmutableError
from safetrail.models.digital_id import DigitalIdCard
from safetrail.services.digital_id_service import payload_hash, verify_digital_id

ISSUE_BODY = {"document_type": "passport", "document_number": "Z1234567"}


def _issue(client, headers, **overrides):
    r = client.post("/tourists/me/digital-id", headers=headers, json={**ISSUE_BODY, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def test_issue_card(client, make_tourist, published):
    t_headers, profile = make_tourist("did")
    card = _issue(client, t_headers)

    assert re.fullmatch(rf"DID-\d{{4}}-{profile['tourist_code'][-4:]}-\d{{6}}", card["serial"])
    assert card["version"] == 1
    assert card["tourist_id"] == profile["id"]
    assert card["status"] == "active"
    assert card["qr_payload_hash"] == payload_hash(card["serial"], card["qr_payload"])

    payload = json.loads(card["qr_payload"])
    assert payload["serial"] == card["serial"]
    assert payload["touristId"] == profile["tourist_code"]
    assert payload["name"] == "Asha Rao"
    # canonical form: sorted keys, no whitespace
    assert card["qr_payload"] == json.dumps(payload, sort_keys=True, separators=(",", ":"))

    rooms = {room for room, event, _ in published if event == "digital_id.issued"}
    assert rooms == {f"tourist_{profile['id']}", "staff_room"}


def test_reissue_appends_new_card(client, make_tourist):
    """A second issuance is a new card; the first one is left exactly as it was."""
    t_headers, _ = make_tourist("reissue")
    first = _issue(client, t_headers)
    second = _issue(client, t_headers, document_number="Z7654321")

    assert second["serial"] != first["serial"]
    assert second["version"] == 2

    history = client.get("/tourists/me/digital-id/history", headers=t_headers).json()
    assert [c["serial"] for c in history] == [second["serial"], first["serial"]]
    assert history[1] == first

    current = client.get("/tourists/me/digital-id", headers=t_headers).json()
    assert current["serial"] == second["serial"]


def test_patch_is_always_rejected(client, make_tourist, staff):
    t_headers, _ = make_tourist("patch")
    s_headers, _ = staff
    card = _issue(client, t_headers)

    for headers in (t_headers, s_headers):
        r = client.patch(f"/digital-id/{card['serial']}", headers=headers, json={"document_number": "HACKED"})
        assert r.status_code == 403
        assert r.json()["error"]["code"] == "IMMUTABLE"

    stored = client.get(f"/digital-id/{card['serial']}", headers=s_headers).json()
    assert stored["document_number"] == ISSUE_BODY["document_number"]


def test_patch_unknown_serial_is_404(client, staff):
    s_headers, _ = staff
    r = client.patch("/digital-id/DID-1999-0000-000000", headers=s_headers, json={})
    assert r.status_code == 404


def test_patch_hides_other_tourists_cards(client, make_tourist):
    owner_headers, _ = make_tourist("patch_owner")
    other_headers, _ = make_tourist("patch_other")
    card = _issue(client, owner_headers)

    theirs = client.patch(f"/digital-id/{card['serial']}", headers=other_headers, json={"document_number": "X"})
    unknown = client.patch("/digital-id/DID-1999-0000-000000", headers=other_headers, json={"document_number": "X"})
    assert theirs.status_code == unknown.status_code == 404
    assert theirs.json()["detail"] == unknown.json()["detail"]


def test_staff_cannot_issue_cards(client, staff):
    s_headers, _ = staff
    r = client.post("/tourists/me/digital-id", headers=s_headers, json=ISSUE_BODY)
    assert r.status_code == 403
    assert client.get("/tourists/me", headers=s_headers).status_code == 404


def test_orm_write_to_card_rejected(client, make_tourist, db_session):
    t_headers, _ = make_tourist("ormwrite")
    card = _issue(client, t_headers)

    row = db_session.execute(select(DigitalIdCard).where(DigitalIdCard.serial == card["serial"])).scalar_one()
    row.document_number = "CHANGED"
    with pytest.raises(CardImmutableError):
        db_session.commit()
    db_session.rollback()

    row = db_session.execute(select(DigitalIdCard).where(DigitalIdCard.serial == card["serial"])).scalar_one()
    db_session.delete(row)
    with pytest.raises(CardImmutableError):
        db_session.commit()
    db_session.rollback()


def test_issue_without_profile_creates_placeholder(client, make_user):
    """Issuance synthesizes a placeholder profile; setting up the profile later keeps its code."""
    headers, user = make_user("placeholder", full_name="Mei Lin Chen")
    card = _issue(client, headers)

    me = client.get("/tourists/me", headers=headers).json()
    assert me["is_placeholder"] is True
    assert me["first_name"] == "Mei"
    assert me["last_name"] == "Lin Chen"
    assert me["nationality"] == "Unknown"
    assert me["passport_number"].startswith(f"TEMP-{user['id']}-")
    assert card["tourist_id"] == me["id"]
    assert json.loads(card["qr_payload"])["touristId"] == me["tourist_code"]

    r = client.post(
        "/tourists/me",
        headers=headers,
        json={
            "first_name": "Mei",
            "last_name": "Chen",
            "nationality": "Singapore",
            "passport_number": f"P{uuid.uuid4().hex[:10].upper()}",
        },
    )
    assert r.status_code == 201
    assert r.json()["id"] == me["id"]
    assert r.json()["tourist_code"] == me["tourist_code"]
    assert r.json()["is_placeholder"] is False

    history = client.get("/tourists/me/digital-id/history", headers=headers).json()
    assert history == [card]


def test_no_card_is_404(client, make_tourist):
    t_headers, _ = make_tourist("nocard")
    r = client.get("/tourists/me/digital-id", headers=t_headers)
    assert r.status_code == 404
    assert client.get("/tourists/me/digital-id/history", headers=t_headers).json() == []


def test_invalid_issue_request(client, make_tourist):
    t_headers, _ = make_tourist("badissue")
    r = client.post("/tourists/me/digital-id", headers=t_headers, json={**ISSUE_BODY, "document_type": "library_card"})
    assert r.status_code == 422
    r = client.post("/tourists/me/digital-id", headers=t_headers, json={**ISSUE_BODY, "valid_days": 0})
    assert r.status_code == 422


def test_verify_endpoint(client, make_tourist, staff):
    t_headers, profile = make_tourist("verify")
    s_headers, _ = staff
    card = _issue(client, t_headers)

    assert client.get(f"/digital-id/{card['serial']}/verify", headers=t_headers).status_code == 403

    r = client.get(f"/digital-id/{card['serial']}/verify", headers=s_headers)
    body = r.json()
    assert body["valid"] is True
    assert body["status"] == "active"
    assert body["tourist_code"] == profile["tourist_code"]
    assert body["name"] == "Asha Rao"

    r = client.get("/digital-id/DID-1999-0000-000000/verify", headers=s_headers)
    assert r.json()["valid"] is False
    assert r.json()["status"] == "unknown"


def test_verify_expired_card(client, make_tourist, db_session):
    t_headers, _ = make_tourist("expired")
    card = _issue(client, t_headers, valid_days=1)

    result = verify_digital_id(db_session, card["serial"], now=utcnow() + timedelta(days=2))
    assert result.valid is False
    assert result.status == "expired"
    assert result.reason.startswith("Expired at ")

    assert verify_digital_id(db_session, card["serial"]).valid is True
