"""
OpenID Connect client.

Authorization code flow against the tenant's discovered provider.
Token validation is left to the provider; the app only keeps the
returned token set.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ConfigDict
from requests import RequestException

from myitreturn.common.logger import get_logger
from myitreturn.core.config import Settings, settings

logger = get_logger(__name__)


class OIDCError(RuntimeError):
    """Raised when an OIDC operation fails."""


class OIDCDiscoveryError(OIDCError):
    """Raised when provider metadata cannot be discovered."""


class ProviderMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    end_session_endpoint: Optional[str] = None


class TokenSet(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str
    token_type: str = "Bearer"
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None


class OIDCClient:
    """
    Confidential OIDC client (``client_secret_post``).
    """

    def __init__(
        self,
        config: Settings,
        *,
        http: Optional[requests.Session] = None,
    ):
        missing = [
            key
            for key in (
                "VERIFY_DISCOVERY_URL",
                "VERIFY_OIDC_CLIENT_ID",
                "VERIFY_OIDC_CLIENT_SECRET",
                "VERIFY_OIDC_REDIRECT_URI",
            )
            if not getattr(config, key)
        ]
        if missing:
            raise OIDCError(
                "Missing required OIDC settings: "
                + ", ".join(f"MYITR_{key}" for key in missing)
            )

        self.config = config
        self.http = http or requests.Session()
        self._metadata: Optional[ProviderMetadata] = None

    def discover(self) -> ProviderMetadata:
        """
        Fetch provider metadata from the discovery URL (cached).

        Raises:
            OIDCDiscoveryError: If the document cannot be fetched or is
                not JSON provider metadata.
        """
        if self._metadata is not None:
            return self._metadata

        url = self.config.VERIFY_DISCOVERY_URL

        try:
            response = self.http.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.config.HTTP_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            payload = response.json()
            self._metadata = ProviderMetadata.model_validate(payload)

        except RequestException as exc:
            logger.exception("OIDC discovery request failed", extra={"url": url})
            raise OIDCDiscoveryError(f"OIDC discovery failed for {url}") from exc

        except ValueError as exc:
            # A wrong tenant URL or path usually serves an HTML login page
            logger.exception("OIDC discovery returned invalid metadata", extra={"url": url})
            raise OIDCDiscoveryError(
                f"OIDC discovery at {url} did not return openid-configuration JSON"
            ) from exc

        logger.info(
            "Discovered OIDC issuer",
            extra={"issuer": self._metadata.issuer},
        )
        return self._metadata

    def authorization_url(self, state: str) -> str:
        metadata = self.discover()
        query = urlencode(
            {
                "client_id": self.config.VERIFY_OIDC_CLIENT_ID,
                "redirect_uri": self.config.VERIFY_OIDC_REDIRECT_URI,
                "response_type": "code",
                "scope": self.config.VERIFY_OIDC_SCOPE,
                "state": state,
            }
        )
        separator = "&" if "?" in metadata.authorization_endpoint else "?"
        return f"{metadata.authorization_endpoint}{separator}{query}"

    def exchange_code(self, code: str) -> TokenSet:
        """
        Exchange an authorization code for tokens.

        Raises:
            OIDCError: If the token endpoint rejects the code or fails.
        """
        metadata = self.discover()
        form: Dict[str, Any] = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.VERIFY_OIDC_REDIRECT_URI,
            "client_id": self.config.VERIFY_OIDC_CLIENT_ID,
            "client_secret": self.config.VERIFY_OIDC_CLIENT_SECRET,
        }

        try:
            response = self.http.post(
                metadata.token_endpoint,
                data=form,
                headers={"Accept": "application/json"},
                timeout=self.config.HTTP_TIMEOUT_SECONDS,
            )
            payload = response.json()

        except RequestException as exc:
            logger.exception("Token request failed")
            raise OIDCError("Token request failed") from exc

        except ValueError as exc:
            logger.exception("Invalid JSON from token endpoint")
            raise OIDCError("Invalid response from token endpoint") from exc

        if not isinstance(payload, dict):
            raise OIDCError("Invalid response from token endpoint")

        if not response.ok or "error" in payload:
            logger.warning(
                "Token endpoint rejected authorization code",
                extra={
                    "status_code": response.status_code,
                    "error": payload.get("error"),
                },
            )
            raise OIDCError(
                f"Authentication failed: {payload.get('error', 'unknown_error')}"
                f" {payload.get('error_description', '')}".rstrip()
            )

        try:
            return TokenSet.model_validate(payload)
        except ValueError as exc:
            raise OIDCError("Token response missing access_token") from exc

    def logout_url(self, return_to: str) -> str:
        tenant_url = self.config.VERIFY_TENANT_URL.rstrip("/")
        query = urlencode({"redirectUrl": return_to})
        return f"{tenant_url}/idaas/mtfim/sps/idaas/logout?{query}"


_client: Optional[OIDCClient] = None


def get_oidc_client() -> OIDCClient:
    """
    FastAPI dependency.

    The client is shared so discovery runs once per process.
    """
    global _client
    if _client is None:
        _client = OIDCClient(settings)
    return _client
