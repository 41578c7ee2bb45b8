import pytest

from conftest import ADMIN_ID, DONOR_ID, OUTSIDER_ID, RECEIVER_A, RECEIVER_B


POST_PAYLOAD = {
    "title": "Leftover sandwiches",
    "food_categories": ["bakery", "Prepared", "BAKERY"],
    "quantity_value": "30",
    "quantity_unit": "portions",
    "pickup_location": "Community hall, 9 Elm Road",
    "expiry_date": "2026-10-19",
    "pickup_slots": [{"pickup_date": "2026-10-18", "start_time": "14:00", "end_time": "15:00"}],
}


@pytest.fixture
def client(app, workflow, overrides):
    app.extensions["claim_workflow"] = workflow
    app.extensions["admin_override"] = overrides
    return app.test_client()


def login(client, user_id, role):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["role"] = role


def create_post(client):
    login(client, DONOR_ID, "donor")
    response = client.post("/api/posts", json=POST_PAYLOAD)
    assert response.status_code == 201
    return response.get_json()["post"]


def claim(client, post_id, receiver_id=RECEIVER_A):
    login(client, receiver_id, "receiver")
    return client.post(f"/api/posts/{post_id}/claim", json={})


def test_anonymous_requests_are_rejected(client):
    response = client.post("/api/posts/1/claim", json={})
    assert response.status_code == 401
    assert response.get_json()["error"] == "UNAUTHENTICATED"


def test_roles_are_enforced(client):
    login(client, RECEIVER_A, "receiver")
    response = client.post("/api/posts", json=POST_PAYLOAD)
    assert response.status_code == 403
    assert response.get_json()["error"] == "FORBIDDEN"


def test_donor_creates_post(client):
    post = create_post(client)

    assert post["status"] == "AVAILABLE"
    assert post["food_categories"] == ["BAKERY", "PREPARED"]
    assert post["quantity"] == {"value": 30.0, "unit": "portions"}
    assert len(post["pickup_slots"]) == 1


def test_invalid_post_payload_is_a_400(client):
    login(client, DONOR_ID, "donor")
    response = client.post("/api/posts", json={**POST_PAYLOAD, "quantity_value": "-2"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_INPUT"


def test_claim_conflict_and_not_found_are_distinguishable(client):
    post = create_post(client)

    first = claim(client, post["id"])
    assert first.status_code == 201
    assert first.get_json()["claim"]["confirmed_pickup_start"] == "14:00"

    second = claim(client, post["id"], RECEIVER_B)
    assert second.status_code == 409
    assert second.get_json()["error"] == "POST_NOT_AVAILABLE"

    missing = claim(client, 9999)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "POST_NOT_FOUND"


def test_malformed_slot_selection_is_a_400(client):
    post = create_post(client)
    login(client, RECEIVER_A, "receiver")
    response = client.post(f"/api/posts/{post['id']}/claim", json={"pickup_slot_id": "soon"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_PICKUP_SLOT"


def test_non_object_bodies_are_a_400(client):
    post = create_post(client)

    response = client.post("/api/posts", json=[POST_PAYLOAD])
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_INPUT"

    login(client, RECEIVER_A, "receiver")
    response = client.post(f"/api/posts/{post['id']}/claim", json=["pickup_slot_id", 1])
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_INPUT"

    response = client.post(f"/api/posts/{post['id']}/claim", json={"pickup_slot": "tomorrow 14:00"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_PICKUP_SLOT"

    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]
    response = client.post(f"/api/claims/{claim_id}/confirm-pickup", json="482913")
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_INPUT"

    login(client, ADMIN_ID, "admin")
    response = client.post(f"/api/admin/posts/{post['id']}/status", json=["COMPLETED"])
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_INPUT"


def test_inline_slot_with_utc_offset_is_a_400(client):
    post = create_post(client)
    login(client, RECEIVER_A, "receiver")
    response = client.post(
        f"/api/posts/{post['id']}/claim",
        json={"pickup_slot": {"pickup_date": "2026-10-18", "start_time": "14:00+01:00", "end_time": "15:00"}},
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_PICKUP_SLOT"


def test_code_is_checked_before_pickup_evidence(client):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]
    login(client, DONOR_ID, "donor")
    code = client.post(f"/api/claims/{claim_id}/pickup-code").get_json()["pickup_code"]["code"]

    login(client, RECEIVER_A, "receiver")
    wrong = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": "000000", "temperature": "cold"})
    assert wrong.status_code == 422
    assert wrong.get_json()["error"] == "INVALID_CODE"

    bad_evidence = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": code, "temperature": "cold"})
    assert bad_evidence.status_code == 400
    assert bad_evidence.get_json()["error"] == "INVALID_INPUT"
    assert client.get(f"/api/claims/{claim_id}").get_json()["claim"]["status"] == "ACTIVE"


def test_pickup_flow_over_http(client):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]

    login(client, DONOR_ID, "donor")
    issued = client.post(f"/api/claims/{claim_id}/pickup-code")
    assert issued.status_code == 201
    code = issued.get_json()["pickup_code"]["code"]
    assert code == "482913"

    login(client, RECEIVER_A, "receiver")
    malformed = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": "12-34"})
    assert malformed.status_code == 400
    assert malformed.get_json()["error"] == "INVALID_CODE_FORMAT"

    wrong = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": "000000"})
    assert wrong.status_code == 422
    assert wrong.get_json()["error"] == "INVALID_CODE"

    confirmed = client.post(
        f"/api/claims/{claim_id}/confirm-pickup",
        json={"code": code, "temperature": "5", "packaging_condition": "sealed"},
    )
    assert confirmed.status_code == 200
    assert confirmed.get_json()["pickup"]["window_reason"] == "EARLY_TOLERANCE"

    reused = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": code})
    assert reused.status_code == 409
    assert reused.get_json()["error"] == "CODE_ALREADY_USED"

    fetched = client.get(f"/api/claims/{claim_id}")
    assert fetched.get_json()["claim"]["status"] == "COMPLETED"


def test_outside_window_reports_reason(client, clock):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]
    clock.advance(minutes=-20)

    login(client, DONOR_ID, "donor")
    code = client.post(f"/api/claims/{claim_id}/pickup-code").get_json()["pickup_code"]["code"]

    login(client, RECEIVER_A, "receiver")
    response = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": code})
    body = response.get_json()
    assert response.status_code == 422
    assert body["error"] == "OUTSIDE_PICKUP_WINDOW"
    assert body["details"]["reason"] == "TOO_EARLY"


def test_expired_code_is_a_410(client, clock):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]

    login(client, DONOR_ID, "donor")
    code = client.post(f"/api/claims/{claim_id}/pickup-code").get_json()["pickup_code"]["code"]
    clock.advance(minutes=11)

    login(client, RECEIVER_A, "receiver")
    response = client.post(f"/api/claims/{claim_id}/confirm-pickup", json={"code": code})
    assert response.status_code == 410
    assert response.get_json()["error"] == "CODE_EXPIRED"


def test_strangers_cannot_see_or_touch_a_claim(client):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]

    login(client, OUTSIDER_ID, "receiver")
    assert client.get(f"/api/claims/{claim_id}").status_code == 403
    assert client.post(f"/api/claims/{claim_id}/cancel", json={}).status_code == 403

    login(client, ADMIN_ID, "admin")
    assert client.get(f"/api/claims/{claim_id}").status_code == 200


def test_cancel_returns_post_to_available(client):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]

    response = client.post(f"/api/claims/{claim_id}/cancel", json={"reason": "Cannot make it"})
    body = response.get_json()
    assert response.status_code == 200
    assert body["claim"]["status"] == "CANCELLED"
    assert body["post_status"] == "AVAILABLE"


def test_admin_override_and_timelines(client):
    post = create_post(client)
    claim(client, post["id"])

    login(client, ADMIN_ID, "admin")
    bad = client.post(f"/api/admin/posts/{post['id']}/status", json={"status": "GONE"})
    assert bad.status_code == 400
    assert bad.get_json()["error"] == "INVALID_STATUS"

    response = client.post(
        f"/api/admin/posts/{post['id']}/status", json={"status": "cancelled", "reason": "Donor withdrew"}
    )
    assert response.status_code == 200
    assert response.get_json()["post"]["status"] == "CANCELLED"

    admin_view = client.get(f"/api/admin/posts/{post['id']}/timeline").get_json()["timeline"]
    assert [entry["event_type"] for entry in admin_view] == ["POST_CREATED", "CLAIMED", "ADMIN_OVERRIDE"]

    login(client, DONOR_ID, "donor")
    donor_view = client.get(f"/api/posts/{post['id']}/timeline").get_json()["timeline"]
    assert [entry["event_type"] for entry in donor_view] == ["POST_CREATED", "CLAIMED"]


def test_admin_routes_need_admin_role(client):
    post = create_post(client)
    response = client.post(f"/api/admin/posts/{post['id']}/flag", json={"reason": "spam"})
    assert response.status_code == 403


def test_admin_cancel_claim_route(client):
    post = create_post(client)
    claim_id = claim(client, post["id"]).get_json()["claim"]["claim_id"]

    login(client, ADMIN_ID, "admin")
    response = client.post(f"/api/admin/claims/{claim_id}/cancel", json={"reason": "Fraud check"})
    assert response.status_code == 200
    assert response.get_json()["post_status"] == "AVAILABLE"
