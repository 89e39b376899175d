"""
Hooks connecting login and billing events to subscription state.

``AuthSessionManager`` and ``PaymentEventProcessor`` know nothing about
storage; they call these coroutines instead.
"""

from __future__ import annotations

import logging
from typing import Optional

from app.schemas import GitHubUser
from app.services.dashboard_sync import DashboardSyncEngine
from app.services.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)


class AccountLifecycle:
    def __init__(self, subscriptions: SubscriptionStore, sync_engine: DashboardSyncEngine) -> None:
        self._subscriptions = subscriptions
        self._sync = sync_engine

    async def on_session_created(self, user: GitHubUser, access_token: str) -> None:
        """Persist the fresh credential before the session cookie is issued."""
        self._subscriptions.upsert_credential(user.login, access_token)

    async def on_subscribe(
        self,
        login: str,
        email: str,
        customer_id: Optional[str],
        *,
        subscribed_at: Optional[int] = None,
    ) -> None:
        """Activate the account, then build its first dashboard right away."""
        self._subscriptions.activate_subscription(
            login, email, customer_id, subscribed_at=subscribed_at
        )
        access_token = self._subscriptions.get_access_token(login)
        if not access_token:
            logger.info("No credential on file yet; first refresh deferred", extra={"login": login})
            return
        try:
            await self._sync.refresh_account(login, access_token)
        except Exception:
            logger.exception("Initial dashboard refresh failed", extra={"login": login})

    async def on_cancel(self, email: str) -> None:
        self._subscriptions.deactivate_by_email(email)


__all__ = ["AccountLifecycle"]
