def test_state_requires_login(client):
    response = client.get("/consent/state")

    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated"}


def test_update_requires_login(client):
    response = client.post(
        "/consent/update",
        json={"purposeId": "ITR_FILING", "attributeId": "pan_id", "state": True},
    )

    assert response.status_code == 401


def test_state_reflects_privacy_api(logged_in_client, privacy_client):
    privacy_client.consents = [
        {"purposeId": "ITR_FILING", "attributeId": "31", "attributeName": "PAN Number", "state": 1},
    ]

    body = logged_in_client.get("/consent/state").json()

    assert body["success"] is True
    assert body["consentState"]["ITR_FILING"]["pan_id"] is True
    assert body["consentState"]["ITR_FILING"]["aadhar_id"] is False
    assert body["consentState"]["MARKETING_COMMUNICATIONS"] == {
        "name": False,
        "email": False,
        "mobile_number": False,
    }


def test_state_warns_when_privacy_api_is_down(logged_in_client, privacy_client):
    privacy_client.fail = True

    body = logged_in_client.get("/consent/state").json()

    assert body["success"] is True
    assert body["consentState"] == {}
    assert body["warning"] == "Could not fetch latest consent state"


def test_update_then_read_back(logged_in_client):
    response = logged_in_client.post(
        "/consent/update",
        json={"purposeId": "ITR_FILING", "attributeId": "aadhar_id", "state": True},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["state"] == 1
    assert body["message"] == "Consent updated for aadhar_id"

    state = logged_in_client.get("/consent/state").json()["consentState"]
    assert state["ITR_FILING"]["aadhar_id"] is True


def test_update_with_false_denies(logged_in_client, privacy_client):
    response = logged_in_client.post(
        "/consent/update",
        json={"purposeId": "MARKETING_COMMUNICATIONS", "attributeId": "email", "state": False},
    )

    assert response.json()["state"] == 2
    assert privacy_client.stored[-1]["state"] == 2


def test_update_missing_fields(logged_in_client):
    response = logged_in_client.post("/consent/update", json={"purposeId": "ITR_FILING"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields: purposeId, attributeId"}


def test_update_attribute_not_in_purpose(logged_in_client, privacy_client):
    privacy_client.metadata = {"purposes": {"ITR_FILING": {"attributes": [{"id": "name"}]}}}

    response = logged_in_client.post(
        "/consent/update",
        json={"purposeId": "ITR_FILING", "attributeId": "pan_id", "state": True},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "not defined for purpose" in response.json()["error"]


def test_update_privacy_api_down(logged_in_client, privacy_client):
    privacy_client.fail = True

    response = logged_in_client.post(
        "/consent/update",
        json={"purposeId": "ITR_FILING", "attributeId": "pan_id", "state": True},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to update consent. Please try again."


def test_update_partial_failure(logged_in_client, privacy_client):
    privacy_client.store_status = "fail"

    response = logged_in_client.post(
        "/consent/update",
        json={"purposeId": "ITR_FILING", "attributeId": "pan_id", "state": True},
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Privacy API failed to update consent"


def test_management_page_renders_toggles(logged_in_client, privacy_client):
    privacy_client.consents = [{"purposeId": "ITR_FILING", "attributeId": "name", "state": 1}]

    response = logged_in_client.get("/consent/management")

    assert response.status_code == 200
    assert 'data-attribute="aadhar_id"' in response.text
    assert "ITR Filing Services" in response.text


def test_management_page_when_privacy_api_is_down(logged_in_client, privacy_client):
    privacy_client.fail = True

    response = logged_in_client.get("/consent/management")

    assert response.status_code == 200
    assert "Unable to load current consent state" in response.text


def test_management_page_requires_login(client):
    response = client.get("/consent/management", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"
