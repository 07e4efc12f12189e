ITR_ATTRIBUTES = ["name", "email", "mobile_number", "aadhar_id", "pan_id"]


def _grant(privacy_client, *attribute_ids):
    privacy_client.consents = [
        {"purposeId": "ITR_FILING", "attributeId": attribute_id, "state": 1}
        for attribute_id in attribute_ids
    ]


def test_filing_requires_login(client):
    response = client.post("/itr/assess", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_filing_with_all_consents(logged_in_client, privacy_client):
    _grant(privacy_client, *ITR_ATTRIBUTES)

    response = logged_in_client.post("/itr/assess", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/itr/success"

    page = logged_in_client.get("/itr/success")
    assert page.status_code == 200
    assert "ITR-" in page.text


def test_filing_blocked_lists_missing_consents(logged_in_client, privacy_client):
    _grant(privacy_client, "name", "email", "mobile_number")

    response = logged_in_client.post("/itr/assess", follow_redirects=False)

    assert response.status_code == 403
    assert "Aadhaar Number" in response.text
    assert "PAN Number" in response.text
    assert "Full Name" not in response.text


def test_filing_blocked_when_consents_unverifiable(logged_in_client, privacy_client):
    privacy_client.fail = True

    response = logged_in_client.post("/itr/assess", follow_redirects=False)

    assert response.status_code == 503
    assert "could not verify your consent status" in response.text


def test_dashboard_page(logged_in_client):
    response = logged_in_client.get("/users")

    assert response.status_code == 200
    assert "/itr/assess" in response.text


def test_raw_consents_page(logged_in_client, privacy_client):
    _grant(privacy_client, "pan_id")

    response = logged_in_client.get("/users/consents")

    assert response.status_code == 200
    assert "My Consents" in response.text


def test_profile_page(logged_in_client):
    response = logged_in_client.get("/users/profile")

    assert response.status_code == 200
    assert "user-123" in response.text
