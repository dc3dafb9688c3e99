"""Async HTTP client for the Portfolio Dashboard API.

No method raises: transport failures, timeouts and API errors all come back
as ``ServiceResult.error`` so the presentation layer only renders messages.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlparse

import httpx

from portfolio_client.results import ServiceResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
UNEXPECTED_MESSAGE = "An unexpected error occurred"
INVALID_LINK_MESSAGE = "This link is invalid or expired."


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def check_project_fields(name: str, client: str, project_url: str, github_url: str) -> Optional[str]:
    """Return a user-facing message when the project form is invalid."""
    fields = {"name": name, "client": client, "project_url": project_url, "github_url": github_url}
    if any(not str(value or "").strip() for value in fields.values()):
        return "All fields are required to add a project"
    if not _is_absolute_url(project_url.strip()) or not _is_absolute_url(github_url.strip()):
        return "Please enter valid URLs for both project and GitHub links"
    return None


class PortfolioClient:
    """Thin wrapper over the REST surface with a bounded per-request timeout."""

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_token = session_token
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "PortfolioClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        authenticated: bool = True,
    ) -> ServiceResult[Any]:
        headers: Dict[str, str] = {}
        if authenticated:
            if not self.session_token:
                return ServiceResult.failure("User not authenticated", "not_authenticated", status_code=401)
            headers["Authorization"] = f"Bearer {self.session_token}"

        try:
            response = await self._http.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException:
            logger.warning("%s %s timed out", method, path)
            return ServiceResult.failure("The request timed out. Please try again.", "timeout", retryable=True)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return ServiceResult.failure("Could not reach the server. Please try again.", "network", retryable=True)

        if response.status_code == 204:
            return ServiceResult(result=None)

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            body = body if isinstance(body, dict) else {}
            detail = body.get("detail")
            return ServiceResult.failure(
                detail if isinstance(detail, str) else UNEXPECTED_MESSAGE,
                str(body.get("error") or f"http_{response.status_code}"),
                retryable=bool(body.get("retryable", response.status_code >= 500)),
                status_code=response.status_code,
            )
        return ServiceResult(result=body)

    # Accounts

    async def sign_up(self, email: str, password: str, name: str) -> ServiceResult[Dict[str, Any]]:
        outcome = await self._request(
            "POST", "/auth/signup", json={"email": email, "password": password, "name": name}, authenticated=False
        )
        if outcome.ok and outcome.result.get("session_token"):
            self.session_token = outcome.result["session_token"]
        return outcome

    async def sign_in(self, email: str, password: str) -> ServiceResult[Dict[str, Any]]:
        outcome = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}, authenticated=False
        )
        if outcome.ok:
            self.session_token = outcome.result["session_token"]
        return outcome

    async def sign_out(self) -> ServiceResult[None]:
        outcome = await self._request("POST", "/auth/logout")
        self.session_token = None
        return outcome

    async def current_user(self) -> ServiceResult[Dict[str, Any]]:
        return await self._request("GET", "/auth/me")

    # Projects

    async def list_projects(self) -> ServiceResult[List[Dict[str, Any]]]:
        return await self._request("GET", "/projects")

    async def create_project(
        self, name: str, client: str, project_url: str, github_url: str
    ) -> ServiceResult[Dict[str, Any]]:
        problem = check_project_fields(name, client, project_url, github_url)
        if problem:
            return ServiceResult.failure(problem, "validation_failed")
        return await self._request(
            "POST",
            "/projects",
            json={"name": name, "client": client, "project_url": project_url, "github_url": github_url},
        )

    async def update_project(
        self, project_id: str, name: str, client: str, project_url: str, github_url: str
    ) -> ServiceResult[Dict[str, Any]]:
        problem = check_project_fields(name, client, project_url, github_url)
        if problem:
            return ServiceResult.failure(problem, "validation_failed")
        return await self._request(
            "PUT",
            f"/projects/{quote(project_id, safe='')}",
            json={"name": name, "client": client, "project_url": project_url, "github_url": github_url},
        )

    async def delete_project(self, project_id: str) -> ServiceResult[None]:
        return await self._request("DELETE", f"/projects/{quote(project_id, safe='')}")

    # Sharing (owner)

    async def create_share_link(self, expires_at: Optional[datetime] = None) -> ServiceResult[Dict[str, Any]]:
        payload = {"expires_at": expires_at.isoformat()} if expires_at else {}
        return await self._request("POST", "/share", json=payload)

    async def deactivate_share_link(self) -> ServiceResult[None]:
        return await self._request("DELETE", "/share")

    async def current_share_link(self) -> ServiceResult[Dict[str, Any]]:
        return await self._request("GET", "/share/current")

    async def view_stats(self, share_token: str) -> ServiceResult[Dict[str, Any]]:
        return await self._request("GET", f"/share/stats/{quote(share_token, safe='')}")

    # Public

    async def shared_portfolio(self, share_token: str) -> ServiceResult[Dict[str, Any]]:
        outcome = await self._request("GET", f"/shared/{quote(share_token, safe='')}", authenticated=False)
        if outcome.error and outcome.error.status_code == 404:
            outcome.error.message = INVALID_LINK_MESSAGE
        return outcome

    async def track_view(
        self,
        share_token: str,
        viewer_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referrer: Optional[str] = None,
    ) -> ServiceResult[bool]:
        outcome = await self._request(
            "POST",
            f"/shared/{quote(share_token, safe='')}/views",
            json={"viewer_ip": viewer_ip, "user_agent": user_agent, "referrer": referrer},
            authenticated=False,
        )
        if not outcome.ok:
            return outcome
        return ServiceResult(result=bool(outcome.result.get("tracked")))
