"""Tourist profile API tests."""

import re
import uuid


def _profile_body(passport=None, nationality="India"):
    return {
        "first_name": "Lena",
        "last_name": "Fischer",
        "nationality": nationality,
        "passport_number": passport or f"P{uuid.uuid4().hex[:10].upper()}",
    }


def test_setup_profile(client, make_tourist):
    _, profile = make_tourist("setup")
    assert re.fullmatch(r"TST-\d{4}-IND-\d{4}", profile["tourist_code"])
    assert profile["status"] == "active"
    assert profile["risk_level"] == "low"
    assert profile["safety_score"] == 100
    assert profile["alerts_triggered"] == 0
    assert profile["is_placeholder"] is False


def test_nationality_prefix(client, make_tourist):
    _, profile = make_tourist("germany", nationality="Germany")
    assert profile["tourist_code"].split("-")[2] == "GER"


def test_duplicate_profile_rejected(client, make_tourist):
    t_headers, _ = make_tourist("twice")
    r = client.post("/tourists/me", headers=t_headers, json=_profile_body())
    assert r.status_code == 400
    assert r.json()["detail"] == "Tourist profile already exists"


def test_duplicate_passport_rejected(client, make_user):
    passport = f"P{uuid.uuid4().hex[:10].upper()}"
    first, _ = make_user("pass_a")
    second, _ = make_user("pass_b")
    assert client.post("/tourists/me", headers=first, json=_profile_body(passport)).status_code == 201
    r = client.post("/tourists/me", headers=second, json=_profile_body(passport))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_staff_cannot_set_up_profile(client, staff):
    s_headers, _ = staff
    r = client.post("/tourists/me", headers=s_headers, json=_profile_body())
    assert r.status_code == 403


def test_profile_requires_auth(client):
    assert client.get("/tourists/me").status_code == 401


def test_update_profile(client, make_tourist):
    t_headers, _ = make_tourist("upd")
    r = client.put("/tourists/me", headers=t_headers, json={"phone_number": "+441234567890"})
    assert r.status_code == 200
    assert r.json()["phone_number"] == "+441234567890"
    assert r.json()["first_name"] == "Asha"


def test_location_moves_previous_into_history(client, make_tourist, published):
    t_headers, profile = make_tourist("loc")
    client.post("/tourists/me/location", headers=t_headers, json={"longitude": 73.8567, "latitude": 18.5204, "address": "Pune"})
    r = client.post(
        "/tourists/me/location",
        headers=t_headers,
        json={"longitude": 72.8777, "latitude": 19.0760, "address": "Mumbai", "accuracy": 12.5},
    )
    assert r.status_code == 200
    assert r.json()["address"] == "Mumbai"
    assert r.json()["location_updated_at"] is not None

    history = client.get("/tourists/me/location/history", headers=t_headers).json()
    assert len(history) == 1
    assert history[0]["address"] == "Pune"
    assert history[0]["latitude"] == 18.5204

    moves = [data for room, event, data in published if event == "tourist.location"]
    assert [m["address"] for m in moves] == ["Pune", "Mumbai"]
    assert all(m["tourist_id"] == profile["id"] for m in moves)


def test_nearby_is_staff_only_and_sorted(client, make_tourist, staff):
    s_headers, _ = staff
    near_headers, near = make_tourist("near")
    far_headers, far = make_tourist("far")
    # open ocean, away from every other test's coordinates
    client.post("/tourists/me/location", headers=near_headers, json={"longitude": -140.0005, "latitude": -45.0, "address": "Buoy A"})
    client.post("/tourists/me/location", headers=far_headers, json={"longitude": -140.01, "latitude": -45.0, "address": "Buoy B"})

    assert client.get("/tourists/nearby?latitude=-45&longitude=-140", headers=near_headers).status_code == 403

    r = client.get("/tourists/nearby?latitude=-45&longitude=-140&max_distance=500", headers=s_headers)
    assert r.status_code == 200
    assert [n["tourist"]["id"] for n in r.json()] == [near["id"]]
    assert 30 < r.json()[0]["distance_m"] < 50

    r = client.get("/tourists/nearby?latitude=-45&longitude=-140&max_distance=5000", headers=s_headers)
    assert [n["tourist"]["id"] for n in r.json()] == [near["id"], far["id"]]


def test_get_by_id_owner_or_staff(client, make_tourist, staff):
    a_headers, a_profile = make_tourist("geta")
    b_headers, _ = make_tourist("getb")
    s_headers, _ = staff
    assert client.get(f"/tourists/{a_profile['id']}", headers=a_headers).status_code == 200
    assert client.get(f"/tourists/{a_profile['id']}", headers=s_headers).status_code == 200
    r = client.get(f"/tourists/{a_profile['id']}", headers=b_headers)
    assert r.status_code == 403
    assert client.get("/tourists", headers=b_headers).status_code == 403


def test_list_search(client, make_tourist, staff):
    s_headers, _ = staff
    _, profile = make_tourist("search")
    r = client.get(f"/tourists?search={profile['tourist_code'].lower()}", headers=s_headers)
    assert [t["id"] for t in r.json()] == [profile["id"]]


def test_status_change_recomputes_score(client, make_tourist, staff):
    _, profile = make_tourist("status")
    s_headers, _ = staff
    r = client.put(f"/tourists/{profile['id']}/status", headers=s_headers, json={"risk_level": "medium"})
    assert r.json()["safety_score"] == 85
    r = client.put(f"/tourists/{profile['id']}/status", headers=s_headers, json={"status": "missing"})
    assert r.json()["safety_score"] == 35
    r = client.put(f"/tourists/{profile['id']}/status", headers=s_headers, json={"status": "flying"})
    assert r.status_code == 422


def test_deactivate_hides_tourist(client, make_tourist, staff):
    t_headers, profile = make_tourist("deact")
    s_headers, _ = staff
    assert client.delete(f"/tourists/{profile['id']}", headers=t_headers).status_code == 403
    assert client.delete(f"/tourists/{profile['id']}", headers=s_headers).status_code == 204
    assert client.get(f"/tourists/{profile['id']}", headers=s_headers).status_code == 404
    assert client.get("/tourists/me", headers=t_headers).status_code == 404
