"""
GitHub OAuth and REST API utilities.

``GitHubOAuthClient`` handles the authorization-code + PKCE exchange;
``GitHubAPIClient`` wraps the account-scoped listing and search endpoints used
to build dashboards.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from app.core.config import GitHubSettings
from app.utils.http import RetryConfig, request_with_retry


API_BASE_URL = "https://api.github.com"


class GitHubOAuthError(Exception):
    """Raised when the token endpoint does not return an access token."""


class GitHubAPIError(Exception):
    """Raised when a GitHub REST call fails or returns an unexpected payload."""


def _api_headers(access_token: str, user_agent: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": user_agent,
    }


class GitHubOAuthClient:
    """Build GitHub authorization URLs and exchange authorization codes."""

    AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
    TOKEN_URL = "https://github.com/login/oauth/access_token"

    def __init__(
        self,
        settings: GitHubSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    def build_authorization_url(
        self, *, redirect_uri: str, state: str, code_challenge: str
    ) -> str:
        """Construct the GitHub consent URL for a PKCE login."""
        params = {
            "client_id": self._settings.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(self._settings.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(
        self, code: str, *, redirect_uri: str, code_verifier: str
    ) -> str:
        """Exchange an authorization code and PKCE verifier for an access token."""
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }
        try:
            async with self._client() as client:
                response = await client.post(
                    self.TOKEN_URL,
                    json=payload,
                    headers={"Accept": "application/json"},
                )
            token_payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GitHubOAuthError(f"Token exchange failed: {exc}") from exc

        access_token = token_payload.get("access_token") if isinstance(token_payload, dict) else None
        if not access_token:
            error = token_payload.get("error") if isinstance(token_payload, dict) else None
            raise GitHubOAuthError(error or "No access token returned from GitHub.")
        return access_token

    async def fetch_user(self, access_token: str) -> Dict[str, Any]:
        """Return the authenticated user's profile."""
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{API_BASE_URL}/user",
                    headers=_api_headers(access_token, self._settings.user_agent),
                )
        except httpx.HTTPError as exc:
            raise GitHubAPIError(f"User lookup failed: {exc}") from exc
        if not response.is_success:
            raise GitHubAPIError(f"User lookup returned {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise GitHubAPIError(f"User lookup returned invalid JSON: {exc}") from exc


class GitHubAPIClient:
    """Account-scoped REST client; use as an async context manager."""

    def __init__(
        self,
        access_token: str,
        settings: GitHubSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._access_token = access_token
        self._settings = settings
        self._transport = transport
        self._retry = retry_config or RetryConfig(attempts=2, backoff_seconds=0.5)
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GitHubAPIClient":
        self._http = httpx.AsyncClient(
            base_url=API_BASE_URL,
            headers=_api_headers(self._access_token, self._settings.user_agent),
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        if self._http is None:
            raise RuntimeError("GitHubAPIClient must be used inside 'async with'.")
        try:
            response = await request_with_retry(
                self._http.get, path, params=params, retry_config=self._retry
            )
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GitHubAPIError(f"GET {path} failed: {exc}") from exc

    async def list_page(
        self,
        path: str,
        *,
        page: int,
        per_page: int,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch one page of a listing endpoint such as ``/user/repos``."""
        params: Dict[str, Any] = {"per_page": per_page, "page": page}
        if extra_params:
            params.update(extra_params)
        payload = await self._get_json(path, params)
        if not isinstance(payload, list):
            raise GitHubAPIError(f"GET {path} returned a non-list payload")
        return payload

    async def search_issues(self, query: str, *, per_page: int = 100) -> List[Dict[str, Any]]:
        """Run an issue search and return its ``items``."""
        payload = await self._get_json(
            "/search/issues", {"q": query, "per_page": per_page}
        )
        if not isinstance(payload, dict):
            raise GitHubAPIError("Search returned a non-object payload")
        return list(payload.get("items") or [])

    async def get_user(self) -> Dict[str, Any]:
        payload = await self._get_json("/user", {})
        if not isinstance(payload, dict):
            raise GitHubAPIError("User lookup returned a non-object payload")
        return payload


__all__ = [
    "API_BASE_URL",
    "GitHubAPIClient",
    "GitHubAPIError",
    "GitHubOAuthClient",
    "GitHubOAuthError",
]
