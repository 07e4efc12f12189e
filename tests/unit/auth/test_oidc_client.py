from urllib.parse import parse_qs, urlparse

import pytest
import requests

from myitreturn.auth_service.oidc import OIDCClient, OIDCDiscoveryError, OIDCError
from myitreturn.core.config import Settings

DISCOVERY = {
    "issuer": "https://tenant.verify.test/oidc/endpoint/default",
    "authorization_endpoint": "https://tenant.verify.test/oidc/endpoint/default/authorize",
    "token_endpoint": "https://tenant.verify.test/oidc/endpoint/default/token",
}


class FakeResponse:
    def __init__(self, payload=None, status_code=200, text=None):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.text is not None:
            raise ValueError("not json")
        return self.payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeHttp:
    def __init__(self, discovery=None, token=None):
        self.discovery = discovery or FakeResponse(DISCOVERY)
        self.token = token or FakeResponse({"access_token": "at", "id_token": "it"})
        self.gets = 0
        self.posted = []

    def get(self, url, **kwargs):
        self.gets += 1
        return self.discovery

    def post(self, url, data=None, **kwargs):
        self.posted.append((url, data))
        return self.token


def _settings(**overrides):
    values = {
        "VERIFY_TENANT_URL": "https://tenant.verify.test/",
        "VERIFY_DISCOVERY_URL": "https://tenant.verify.test/.well-known/openid-configuration",
        "VERIFY_OIDC_CLIENT_ID": "client",
        "VERIFY_OIDC_CLIENT_SECRET": "secret",
        "VERIFY_OIDC_REDIRECT_URI": "http://localhost:3000/auth/callback",
    }
    values.update(overrides)
    return Settings(**values)


def test_missing_settings_are_reported():
    with pytest.raises(OIDCError) as exc_info:
        OIDCClient(_settings(VERIFY_OIDC_CLIENT_SECRET=""), http=FakeHttp())

    assert "MYITR_VERIFY_OIDC_CLIENT_SECRET" in str(exc_info.value)


def test_discovery_is_cached():
    http = FakeHttp()
    client = OIDCClient(_settings(), http=http)

    client.discover()
    client.discover()

    assert http.gets == 1


def test_html_discovery_response_raises():
    http = FakeHttp(discovery=FakeResponse(text="<html>Sign in</html>"))
    client = OIDCClient(_settings(), http=http)

    with pytest.raises(OIDCDiscoveryError):
        client.discover()


def test_unreachable_discovery_raises():
    http = FakeHttp(discovery=FakeResponse({}, status_code=404))
    client = OIDCClient(_settings(), http=http)

    with pytest.raises(OIDCDiscoveryError):
        client.authorization_url("state")


def test_authorization_url():
    client = OIDCClient(_settings(), http=FakeHttp())

    url = client.authorization_url("xyz")
    query = parse_qs(urlparse(url).query)

    assert url.startswith(DISCOVERY["authorization_endpoint"] + "?")
    assert query["client_id"] == ["client"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["openid profile email"]
    assert query["state"] == ["xyz"]
    assert query["redirect_uri"] == ["http://localhost:3000/auth/callback"]


def test_exchange_code_posts_client_credentials():
    http = FakeHttp()
    client = OIDCClient(_settings(), http=http)

    token_set = client.exchange_code("the-code")

    url, form = http.posted[0]
    assert url == DISCOVERY["token_endpoint"]
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "the-code"
    assert form["client_secret"] == "secret"
    assert token_set.access_token == "at"
    assert token_set.id_token == "it"


def test_rejected_code_raises():
    http = FakeHttp(
        token=FakeResponse(
            {"error": "invalid_grant", "error_description": "expired"},
            status_code=400,
        )
    )
    client = OIDCClient(_settings(), http=http)

    with pytest.raises(OIDCError) as exc_info:
        client.exchange_code("old")

    assert "invalid_grant" in str(exc_info.value)


def test_logout_url():
    client = OIDCClient(_settings(), http=FakeHttp())

    url = client.logout_url("http://localhost:3000")

    assert url == (
        "https://tenant.verify.test/idaas/mtfim/sps/idaas/logout"
        "?redirectUrl=http%3A%2F%2Flocalhost%3A3000"
    )


def test_shared_client_is_built_once(monkeypatch):
    from myitreturn.auth_service import oidc

    monkeypatch.setattr(oidc, "_client", None)

    assert oidc.get_oidc_client() is oidc.get_oidc_client()
