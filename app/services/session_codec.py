"""
Encode and decode the opaque values carried in the ``session`` and
``oauth_state`` cookies.

Both payloads are serialized as compact JSON and sealed with Fernet, so a
client can neither read the access token nor forge a session for another
account. Any decoding problem surfaces as ``None`` (sessions) or
``ValueError`` (transit state) and never as a crash.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional

from pydantic import ValidationError

from app.schemas import GitHubUser, OAuthTransitState, SessionData
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class SessionCodec:
    """Seal session and OAuth transit payloads into cookie-safe strings."""

    def __init__(self, cipher: TokenCipherService, *, state_ttl_seconds: int = 600) -> None:
        self._cipher = cipher
        self._state_ttl = state_ttl_seconds

    def _seal(self, payload: dict) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        return self._cipher.encrypt(serialized)

    def encode_session(self, user: GitHubUser, access_token: str, *, ttl_seconds: int) -> str:
        session = SessionData(
            user=user,
            access_token=access_token,
            exp=now_ms() + ttl_seconds * 1000,
        )
        return self._seal(session.model_dump())

    def decode_session(self, token: Optional[str]) -> Optional[SessionData]:
        """Return the live session sealed in ``token``, or ``None``."""
        if not token:
            return None
        try:
            session = SessionData.model_validate_json(self._cipher.decrypt(token))
        except (ValueError, ValidationError):
            logger.debug("Discarding undecodable session cookie")
            return None
        if now_ms() > session.exp:
            return None
        return session

    def encode_state(self, state: OAuthTransitState) -> str:
        return self._seal(state.model_dump())

    def decode_state(self, token: str) -> OAuthTransitState:
        """Open a transit-state value; raises ``ValueError`` when invalid or stale."""
        try:
            return OAuthTransitState.model_validate_json(
                self._cipher.decrypt(token, ttl=self._state_ttl)
            )
        except ValidationError as exc:
            raise ValueError("Malformed OAuth state payload.") from exc


__all__ = ["SessionCodec", "now_ms"]
