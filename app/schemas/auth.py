"""Schemas related to the GitHub OAuth flow and browser sessions."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class GitHubUser(BaseModel):
    """Identity snapshot taken from ``GET /user`` at login time."""

    login: str
    id: int
    avatar_url: str = ""
    email: Optional[str] = None


class SessionData(BaseModel):
    """Payload sealed into the ``session`` cookie."""

    user: GitHubUser
    access_token: str = Field(..., description="GitHub OAuth access token.")
    exp: int = Field(..., description="Absolute expiry in epoch milliseconds.")


class OAuthTransitState(BaseModel):
    """Payload round-tripped through GitHub as the ``state`` parameter."""

    redirect_to: Optional[str] = Field(
        None, description="Where to send the browser once the session is issued."
    )
    code_verifier: str = Field(..., description="PKCE verifier paired with the challenge.")


__all__ = ["GitHubUser", "OAuthTransitState", "SessionData"]
