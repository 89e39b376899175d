"""
Subscription state per GitHub account.

Single source of truth for whether an account is paid up, which Stripe
customer it maps to, and the GitHub credential used by scheduled refreshes.
Every write is an upsert keyed by login, so replaying a webhook or a login
converges on the same row instead of accumulating changes.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.clients.sqlite_store import SQLiteSubscriptionTable
from app.models.subscription import SubscriptionRecord
from app.services.session_codec import now_ms
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class SubscriptionStore:
    """Service wrapper over the structured tier; credentials are encrypted at rest."""

    def __init__(self, table: SQLiteSubscriptionTable, token_cipher: TokenCipherService) -> None:
        self._table = table
        self._cipher = token_cipher

    def upsert_credential(self, login: str, access_token: str) -> None:
        """Create the row or refresh its credential; subscription fields are untouched."""
        self._table.upsert_access_token(login, self._cipher.encrypt(access_token))

    def activate_subscription(
        self,
        login: str,
        email: str,
        customer_id: Optional[str],
        *,
        subscribed_at: Optional[int] = None,
    ) -> None:
        """Mark ``login`` as subscribed; the stored credential is untouched.

        ``subscribed_at`` (epoch ms) defaults to now. Callers replaying a
        provider event pass the event time so redelivery writes identical values.
        """
        self._table.upsert_subscription(
            login,
            email=email,
            subscribed_at=subscribed_at or now_ms(),
            stripe_customer_id=customer_id or None,
        )
        logger.info("Subscription activated", extra={"login": login})

    def deactivate_by_email(self, email: str) -> int:
        """Clear the subscription of every row billed to ``email``."""
        if not email:
            return 0
        changed = self._table.clear_subscription_by_email(email)
        logger.info("Subscription deactivated", extra={"rows": changed})
        return changed

    def is_active(self, login: str) -> bool:
        record = self.get_record(login)
        return record is not None and record.is_active

    def get_customer_id(self, login: str) -> Optional[str]:
        row = self._table.get_row(login)
        if not row:
            return None
        return row.get("stripe_customer_id")

    def get_record(self, login: str) -> Optional[SubscriptionRecord]:
        row = self._table.get_row(login)
        if not row:
            return None
        return SubscriptionRecord(
            login=row["username"],
            email=row.get("email"),
            subscribed_at=row.get("subscribed_at"),
            stripe_customer_id=row.get("stripe_customer_id"),
            access_token=self._decrypt(row.get("access_token"), login),
            last_updated=row.get("last_updated"),
        )

    def get_access_token(self, login: str) -> Optional[str]:
        record = self.get_record(login)
        return record.access_token if record else None

    def list_refreshable(self) -> list[tuple[str, str]]:
        """Return ``(login, access_token)`` for every active row with a credential."""
        accounts: list[tuple[str, str]] = []
        for row in self._table.list_active_with_token():
            token = self._decrypt(row["access_token"], row["username"])
            if token:
                accounts.append((row["username"], token))
        return accounts

    def mark_refreshed(self, login: str, last_updated: str) -> None:
        self._table.set_last_updated(login, last_updated)

    def get_last_updated(self, login: str) -> Optional[str]:
        """Return the refresh timestamp, ``""`` if never refreshed, ``None`` if no row."""
        row = self._table.get_row(login)
        if not row:
            return None
        return row.get("last_updated") or ""

    def _decrypt(self, ciphertext: Optional[str], login: str) -> Optional[str]:
        if not ciphertext:
            return None
        try:
            return self._cipher.decrypt(ciphertext)
        except ValueError:
            logger.warning("Stored credential could not be decrypted", extra={"login": login})
            return None


__all__ = ["SubscriptionStore"]
