"""
Shared REST gateway: Bearer token auth, requests library, error translation.
Attio and Airtable clients subclass RemoteGateway.
"""

import logging
import time
from typing import Any

import requests

from syncbridge.core.config import get_settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised when a remote API call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class RemoteGateway:
    """
    Thin JSON-over-HTTP client. Retries only on transport failures; HTTP error
    statuses (including 429) are translated to GatewayError without retrying.
    """

    service_name = "remote"
    error_class: type[GatewayError] = GatewayError

    def __init__(
        self,
        access_token: str | None,
        base_url: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
    ) -> None:
        settings = get_settings()
        self._token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = settings.http_timeout_seconds if timeout is None else timeout
        self._max_retries = settings.http_max_retries if max_retries is None else max_retries

    def _get_headers(self) -> dict[str, str]:
        """Build request headers with Bearer token."""
        if not self._token:
            raise self.error_class(f"{self.service_name} access token not configured")
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    def _error_message(self, body: Any) -> str | None:
        """Pull a human-readable message out of an error body."""
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error")
            if isinstance(detail, dict):
                detail = detail.get("message") or detail.get("type")
            if isinstance(detail, str):
                return detail
        return None

    def _handle_error(self, response: requests.Response) -> None:
        """Interpret error response and raise with detail."""
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        msg = f"{self.service_name} API error: {response.status_code}"
        detail = self._error_message(body)
        if detail:
            msg += f" — {detail}"
        elif isinstance(body, str) and body:
            msg += f" — {body[:500]}"
        raise self.error_class(msg, status_code=response.status_code, detail=body)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | list[Any] | None = None,
        retries: int | None = None,
    ) -> dict[str, Any]:
        """
        Execute HTTP request. path is relative to the base URL (leading slash optional).
        """
        retries = self._max_retries if retries is None else retries
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = self._get_headers()
        last_exc: Exception | None = None

        for attempt in range(retries + 1):
            try:
                resp = requests.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                last_exc = e
                logger.warning("%s request failed (attempt %d): %s", self.service_name, attempt + 1, e)
                if attempt < retries:
                    time.sleep(2 ** attempt)
                continue

            if resp.ok:
                if resp.status_code == 204 or not resp.content:
                    return {}
                try:
                    data = resp.json()
                except ValueError:
                    raise self.error_class(
                        f"{self.service_name} returned invalid JSON",
                        status_code=resp.status_code,
                        detail=resp.text[:500],
                    )
                return data if isinstance(data, dict) else {"data": data}

            self._handle_error(resp)

        raise self.error_class(
            f"{self.service_name} request failed after {retries + 1} attempts: {last_exc!s}"
        ) from last_exc
