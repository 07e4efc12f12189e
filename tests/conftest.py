"""
Pytest configuration and fixtures.
"""

import os
from urllib.parse import parse_qs, urlparse

import pytest

# Settings are read at import time, so these must be set before the app loads
TEST_ENV = {
    "MYITR_ENV": "test",
    "MYITR_VERIFY_TENANT_URL": "https://tenant.verify.test",
    "MYITR_VERIFY_DISCOVERY_URL": "https://tenant.verify.test/oidc/endpoint/default/.well-known/openid-configuration",
    "MYITR_VERIFY_OIDC_CLIENT_ID": "test-client",
    "MYITR_VERIFY_OIDC_CLIENT_SECRET": "test-secret",
    "MYITR_VERIFY_OIDC_REDIRECT_URI": "http://testserver/auth/callback",
    "MYITR_VERIFY_PRIVACY_BASE_URL": "https://tenant.verify.test",
    "MYITR_SESSION_SECRET": "test-session-secret",
    "MYITR_RATE_LIMIT_ENABLED": "false",
    "MYITR_SENTRY_DSN": "",
}

for _key, _value in TEST_ENV.items():
    os.environ.setdefault(_key, _value)

from jose import jwt  # noqa: E402

from myitreturn.auth_service.oidc import OIDCError, TokenSet  # noqa: E402
from myitreturn.consent_service.privacy_client import PrivacyApiError  # noqa: E402
from myitreturn.consent_service.service import PrivacyService  # noqa: E402

TEST_SUBJECT = "user-123"


def make_id_token(**claims) -> str:
    payload = {
        "sub": TEST_SUBJECT,
        "name": "Test User",
        "email": "test.user@example.com",
    }
    payload.update(claims)
    return jwt.encode(payload, "test-signing-key", algorithm="HS256")


class FakePrivacyClient:
    """
    In-memory stand-in for PrivacyApiClient.

    Stored values are returned by later reads, like the real API.
    """

    def __init__(self, consents=None, metadata=None, fail=False, store_status="success"):
        self.consents = list(consents or [])
        self.metadata = metadata
        self.fail = fail
        self.store_status = store_status
        self.stored = []
        self.calls = []

    def get_user_consents(self, access_token, subject_id=None):
        self.calls.append(("get_user_consents", access_token, subject_id))
        if self.fail:
            raise PrivacyApiError("Privacy API request failed: GET /v1.0/privacy/consents")
        return list(self.consents)

    def store_consents(self, access_token, values, subject_id=None):
        self.calls.append(("store_consents", access_token, subject_id))
        if self.fail:
            raise PrivacyApiError("Privacy API request failed: PATCH /v1.0/privacy/consents")
        self.stored.extend(values)
        if self.store_status == "success":
            self.consents.extend(values)
        return {"status": self.store_status, "results": []}

    def get_consent_metadata(self, access_token, purpose_ids):
        self.calls.append(("get_consent_metadata", access_token, tuple(purpose_ids)))
        if self.fail or self.metadata is None:
            raise PrivacyApiError("Privacy API request failed: POST /v1.0/privacy/metadata")
        return self.metadata


class FakeOIDCClient:
    authorization_endpoint = "https://tenant.verify.test/oidc/endpoint/default/authorize"

    def __init__(self, id_token=None):
        self.id_token = id_token or make_id_token()
        self.exchanged = []

    def authorization_url(self, state):
        return f"{self.authorization_endpoint}?client_id=test-client&state={state}"

    def exchange_code(self, code):
        self.exchanged.append(code)
        if code == "bad-code":
            raise OIDCError("Authentication failed: invalid_grant")
        return TokenSet(access_token="test-access-token", id_token=self.id_token)

    def logout_url(self, return_to):
        return f"https://tenant.verify.test/idaas/mtfim/sps/idaas/logout?redirectUrl={return_to}"


def login(client):
    """Run the login redirect and callback; returns the callback response."""
    response = client.get("/login", follow_redirects=False)
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]
    return client.get(
        "/auth/callback",
        params={"code": "good-code", "state": state},
        follow_redirects=False,
    )


@pytest.fixture
def privacy_client():
    return FakePrivacyClient()


@pytest.fixture
def privacy_service(privacy_client):
    return PrivacyService(privacy_client)


@pytest.fixture
def oidc_client():
    return FakeOIDCClient()


@pytest.fixture
def client(privacy_service, oidc_client):
    """TestClient with the identity provider and privacy API faked out."""
    from fastapi.testclient import TestClient

    from myitreturn.auth_service.oidc import get_oidc_client
    from myitreturn.consent_service.service import get_privacy_service
    from myitreturn.main import app

    app.dependency_overrides[get_oidc_client] = lambda: oidc_client
    app.dependency_overrides[get_privacy_service] = lambda: privacy_service

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def logged_in_client(client):
    response = login(client)
    assert response.status_code == 303
    return client
