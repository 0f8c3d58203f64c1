from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..core.constants import DEFAULT_API_TIMEOUT, ERROR_BODY_LOG_LIMIT
from ..core.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    base_url: str
    timeout: float = DEFAULT_API_TIMEOUT


class ApiConnection:
    """HTTP access to the remote attendance and roster services.

    One connection per operator credential; the bearer token is sent on every
    request and never logged.
    """

    def __init__(self, config: ApiConfig, access_token: str, *, session: Optional[requests.Session] = None):
        self._config = config
        self._access_token = access_token
        self._session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self._config.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def get(self, path: str, *, params: Optional[dict] = None, failure: str = "Request failed") -> Any:
        return self._request("GET", path, params=params, failure=failure)

    def post(self, path: str, payload: Any, *, failure: str = "Request failed") -> Any:
        return self._request("POST", path, json=payload, failure=failure)

    def _request(self, method: str, path: str, *, failure: str, **kwargs) -> Any:
        url = self._url(path)
        try:
            r = self._session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self._config.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise TransportError(f"{failure}: {e}") from e

        if not r.ok:
            logger.error("%s %s failed: %s %s", method, url, r.status_code, r.text[:ERROR_BODY_LOG_LIMIT])
            raise TransportError(_error_message(r, failure), status_code=r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as e:
            logger.error("%s %s returned a non-JSON body", method, url)
            raise TransportError(f"{failure}: invalid response body") from e


def _error_message(response: requests.Response, default: str) -> str:
    """Prefer the service's ``{"error": "..."}`` message over a generic one."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return default
