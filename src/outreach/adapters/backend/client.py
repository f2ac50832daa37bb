from __future__ import annotations

import logging
from typing import Any

import requests

DEFAULT_TIMEOUT = 30
DEFAULT_ACTIVITY_LIMIT = 10000

LOGGER = logging.getLogger(__name__)


class BackendError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def api_base_url(base_url: str) -> str:
    """Strip any trailing slash and make sure the URL ends in ``/api``."""
    cleaned = base_url.rstrip("/")
    return cleaned if cleaned.endswith("/api") else f"{cleaned}/api"


def unwrap(payload: Any) -> Any | None:
    """Return ``data`` from a ``{success, data}`` envelope, or None when absent."""
    if not isinstance(payload, dict) or payload.get("success") is not True:
        return None
    return payload.get("data")


class BackendClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = api_base_url(base_url)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def get_project(self, project_id: str) -> dict[str, Any] | None:
        return unwrap(self._request("GET", f"/projects/{project_id}"))

    def list_projects(self) -> list[dict[str, Any]] | None:
        return unwrap(self._request("GET", "/projects"))

    def list_project_contacts(self, project_id: str) -> list[dict[str, Any]] | None:
        return unwrap(self._request("GET", f"/projects/{project_id}/project-contacts"))

    def list_project_activities(
        self, project_id: str, limit: int | None = DEFAULT_ACTIVITY_LIMIT
    ) -> list[dict[str, Any]] | None:
        params = {"limit": limit} if limit else None
        return unwrap(self._request("GET", f"/activities/project/{project_id}", params=params))

    def prospect_analytics(self, project_id: str | None = None) -> dict[str, Any] | None:
        params = {"projectId": project_id} if project_id else None
        return unwrap(self._request("GET", "/projects/prospect-analytics", params=params))

    def master_dashboard(self) -> dict[str, Any] | None:
        return unwrap(self._request("GET", "/master-dashboard"))

    def employee_performance(self, time_filter: str) -> dict[str, Any] | None:
        return unwrap(
            self._request(
                "GET", "/projects/employee-performance", params={"timeFilter": time_filter}
            )
        )

    def _request(self, method: str, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        LOGGER.debug("API request: %s %s params=%s", method, url, params)
        try:
            response = self.session.request(method, url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise BackendError(f"Backend unreachable for {method} {url}: {exc}") from exc
        if response.status_code >= 400:
            raise BackendError(
                f"Backend error {response.status_code} for {method} {url}: {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError(
                f"Backend returned a non-JSON body for {method} {url}",
                status_code=response.status_code,
            ) from exc
