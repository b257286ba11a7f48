from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from ..core.constants import DEFAULT_API_TIMEOUT_SECONDS, SESSION_CHECK_PATH
from ..core.exceptions import ApiError, ServerRejectedError, SessionExpiredError, TransportError
from ..session.service import SessionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiConfig:
    base_url: str
    timeout: float = DEFAULT_API_TIMEOUT_SECONDS


def error_message(response: requests.Response) -> str:
    """Human readable message of an error response (``error`` or ``message`` field)."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping):
        for key in ("error", "message"):
            value = body.get(key)
            if value:
                return str(value)
    text = (response.text or "").strip()
    return text[:200] if text else f"Request failed with status {response.status_code}"


class ApiClient:
    """Thin JSON client for the school platform backend.

    Every request carries the bearer token from the session store. A 401, or a
    404 reporting that the user no longer exists, signs the user out.
    """

    def __init__(
        self,
        config: ApiConfig,
        session: SessionService,
        *,
        http: Optional[requests.Session] = None,
    ):
        self._config = config
        self._session = session
        self._http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def get(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, *, json: Any = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, *, json: Any = None) -> Any:
        return self._request("PUT", path, json=json)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        try:
            response = self._http.request(
                method,
                self._url(path),
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self._config.timeout,
            )
        except requests.RequestException as e:
            logger.warning("request failed", extra={"method": method, "path": path, "error": str(e)})
            raise TransportError("Unable to reach the server. Check your connection.") from e

        if response.status_code >= 400:
            self._raise_for_status(response, path)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Unexpected response from the server") from e

    def _raise_for_status(self, response: requests.Response, path: str) -> None:
        message = error_message(response)
        status = response.status_code

        user_gone = status == 404 and "user not found" in message.lower()
        if status == 401 or (user_gone and not path.rstrip("/").endswith(SESSION_CHECK_PATH)):
            logger.warning("session rejected by server", extra={"status": status, "path": path})
            self._session.sign_out()
            raise SessionExpiredError("Your session has expired. Please sign in again.")

        if status < 500:
            raise ServerRejectedError(message, status_code=status)
        raise ApiError(message, status_code=status)
