"""
Privacy API client.

Talks to the tenant's data privacy and consent management endpoints on
behalf of the signed-in user.
"""

from typing import Any, Dict, List, Optional

import requests
from requests import RequestException

from myitreturn.common.logger import get_logger
from myitreturn.core.config import settings

logger = get_logger(__name__)

CONSENTS_PATH = "/v1.0/privacy/consents"
METADATA_PATH = "/v1.0/privacy/metadata"


class PrivacyApiError(RuntimeError):
    """Raised when privacy API operations fail."""


class PrivacyApiClient:
    """
    Thin REST wrapper around the privacy API.

    Args:
        base_url: Tenant privacy API root.
        timeout: Per-request timeout in seconds.
        http: Optional ``requests.Session`` (shared connection pool).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Any = None,
    ) -> requests.Response:
        if not self.base_url:
            raise PrivacyApiError("Privacy API base URL is not configured")

        url = f"{self.base_url}{path}"

        try:
            response = self.http.request(
                method,
                url,
                headers=self._headers(access_token),
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response

        except RequestException as exc:
            logger.exception(
                "Privacy API request failed",
                extra={"method": method, "url": url},
            )
            raise PrivacyApiError(f"Privacy API request failed: {method} {path}") from exc

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            logger.exception(
                "Invalid JSON from privacy API",
                extra={"url": response.url},
            )
            raise PrivacyApiError("Invalid response from privacy API") from exc

    def get_user_consents(
        self,
        access_token: str,
        subject_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch the user's consent entries.

        Returns:
            The ``consents`` list from the response (empty if absent).

        Raises:
            PrivacyApiError: On request or response failure.
        """
        params = {"subjectId": subject_id} if subject_id else None
        payload = self._json(
            self._request("GET", CONSENTS_PATH, access_token=access_token, params=params)
        )

        consents = payload.get("consents") if isinstance(payload, dict) else payload
        if consents is None:
            return []
        if not isinstance(consents, list):
            raise PrivacyApiError("Unexpected consents payload from privacy API")
        return consents

    def store_consents(
        self,
        access_token: str,
        values: List[Dict[str, Any]],
        subject_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Add consent values.

        Returns:
            ``{"status": "success" | "fail", "results": [...]}``. A partial
            failure reported by the API (HTTP 207) comes back as ``fail``.

        Raises:
            PrivacyApiError: On request or response failure.
        """
        operations = [{"op": "add", "value": value} for value in values]
        params = {"subjectId": subject_id} if subject_id else None

        response = self._request(
            "PATCH",
            CONSENTS_PATH,
            access_token=access_token,
            params=params,
            json_data=operations,
        )
        payload = self._json(response)
        results = payload.get("results", []) if isinstance(payload, dict) else payload

        failed = response.status_code == 207 or any(
            isinstance(item, dict) and item.get("result") == "failure"
            for item in results or []
        )
        return {"status": "fail" if failed else "success", "results": results or []}

    def get_consent_metadata(
        self,
        access_token: str,
        purpose_ids: List[str],
    ) -> Dict[str, Any]:
        """
        Fetch purpose definitions (attributes, access types).

        Raises:
            PrivacyApiError: On request or response failure.
        """
        payload = self._json(
            self._request(
                "POST",
                METADATA_PATH,
                access_token=access_token,
                json_data={"purposeId": purpose_ids},
            )
        )
        return payload if isinstance(payload, dict) else {}


def build_privacy_client() -> PrivacyApiClient:
    return PrivacyApiClient(
        settings.privacy_base_url,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
