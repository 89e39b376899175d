"""
GitHub login, callback, and logout handling with PKCE and cookie sessions.

The flow:

1. ``login`` seals the PKCE verifier and the post-login target into an opaque
   transit value, stores it in a short-lived ``oauth_state`` cookie, and sends
   the same value to GitHub as ``state``.
2. ``callback`` requires the returned ``state`` to equal the cookie exactly,
   exchanges the code plus verifier for a token, loads the profile, runs the
   ``on_session_created`` hook, and only then issues the ``session`` cookie.
3. ``logout`` clears the session cookie.

Session lookups never raise: anything absent, tampered, or expired is an
anonymous visitor.
"""

from __future__ import annotations

import hmac
import logging
from http import HTTPStatus
from typing import Awaitable, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from app.clients.github import GitHubAPIError, GitHubOAuthClient, GitHubOAuthError
from app.core.config import SessionSettings
from app.schemas import GitHubUser, OAuthTransitState, SessionData
from app.services.session_codec import SessionCodec
from app.utils.pkce import generate_code_challenge, generate_code_verifier

logger = logging.getLogger(__name__)

SessionCreatedHook = Callable[[GitHubUser, str], Awaitable[None]]


def safe_redirect_target(target: Optional[str]) -> str:
    """Only allow same-site absolute paths; everything else goes home."""
    if not target or not target.startswith("/") or target.startswith(("//", "/\\")):
        return "/"
    return target


def _bad_request(message: str) -> Response:
    return PlainTextResponse(message, status_code=HTTPStatus.BAD_REQUEST)


class AuthSessionManager:
    """Runs the OAuth2 PKCE protocol against GitHub and manages session cookies."""

    def __init__(
        self,
        oauth_client: GitHubOAuthClient,
        codec: SessionCodec,
        settings: SessionSettings,
        *,
        on_session_created: Optional[SessionCreatedHook] = None,
    ) -> None:
        self._oauth = oauth_client
        self._codec = codec
        self._settings = settings
        self._on_session_created = on_session_created

    def _cookie_kwargs(self) -> dict:
        return {
            "httponly": True,
            "secure": self._settings.secure_cookies,
            "samesite": "lax",
            "path": "/",
        }

    @staticmethod
    def _callback_uri(request: Request) -> str:
        return f"{request.url.scheme}://{request.url.netloc}/callback"

    async def login(self, request: Request) -> Response:
        redirect_to = safe_redirect_target(request.query_params.get("redirect_to"))
        code_verifier = generate_code_verifier()
        state = self._codec.encode_state(
            OAuthTransitState(redirect_to=redirect_to, code_verifier=code_verifier)
        )
        authorization_url = self._oauth.build_authorization_url(
            redirect_uri=self._callback_uri(request),
            state=state,
            code_challenge=generate_code_challenge(code_verifier),
        )

        response = RedirectResponse(authorization_url, status_code=HTTPStatus.FOUND)
        response.set_cookie(
            self._settings.state_cookie_name,
            state,
            max_age=self._settings.state_ttl_seconds,
            **self._cookie_kwargs(),
        )
        return response

    async def callback(self, request: Request) -> Response:
        code = request.query_params.get("code")
        state_param = request.query_params.get("state")
        if not code or not state_param:
            return _bad_request("Missing code or state parameter")

        state_cookie = request.cookies.get(self._settings.state_cookie_name)
        if not state_cookie or not hmac.compare_digest(
            state_cookie.encode("utf-8"), state_param.encode("utf-8")
        ):
            logger.warning("OAuth callback rejected: state mismatch")
            return _bad_request("Invalid state parameter")

        try:
            state = self._codec.decode_state(state_param)
        except ValueError:
            return _bad_request("Invalid state format")

        try:
            access_token = await self._oauth.exchange_authorization_code(
                code,
                redirect_uri=self._callback_uri(request),
                code_verifier=state.code_verifier,
            )
        except GitHubOAuthError as exc:
            logger.warning("GitHub token exchange failed: %s", exc)
            return _bad_request("Failed to get access token")

        try:
            profile = await self._oauth.fetch_user(access_token)
            user = GitHubUser.model_validate(profile)
        except (GitHubAPIError, ValidationError) as exc:
            logger.warning("GitHub user lookup failed: %s", exc)
            return _bad_request("Failed to get user info")

        if self._on_session_created is not None:
            await self._on_session_created(user, access_token)

        session_token = self._codec.encode_session(
            user, access_token, ttl_seconds=self._settings.session_ttl_seconds
        )
        response = RedirectResponse(
            safe_redirect_target(state.redirect_to), status_code=HTTPStatus.FOUND
        )
        response.delete_cookie(self._settings.state_cookie_name, **self._cookie_kwargs())
        response.set_cookie(
            self._settings.session_cookie_name,
            session_token,
            max_age=self._settings.session_ttl_seconds,
            **self._cookie_kwargs(),
        )
        logger.info("Session issued", extra={"login": user.login})
        return response

    async def logout(self, request: Request) -> Response:
        redirect_to = safe_redirect_target(request.query_params.get("redirect_to"))
        response = RedirectResponse(redirect_to, status_code=HTTPStatus.FOUND)
        response.delete_cookie(self._settings.session_cookie_name, **self._cookie_kwargs())
        return response

    def get_session(self, request: Request) -> Optional[SessionData]:
        return self._codec.decode_session(
            request.cookies.get(self._settings.session_cookie_name)
        )

    def get_current_user(self, request: Request) -> Optional[GitHubUser]:
        session = self.get_session(request)
        return session.user if session else None

    def get_access_token(self, request: Request) -> Optional[str]:
        session = self.get_session(request)
        return session.access_token if session else None


__all__ = ["AuthSessionManager", "SessionCreatedHook", "safe_redirect_target"]
