"""
Scheduled, paginated synchronization of per-account dashboard data.

For each subscribed account the engine pulls four listings from GitHub, writes
them to the blob tier, stamps the structured-tier row with the refresh time,
and pre-renders the dashboard page so the request path only ever reads a
cached artifact.

Upstream failures degrade rather than abort: a listing that fails mid-way
keeps the pages already fetched, and a failed search yields an empty list.
The five blob writes are independent; a reader may briefly see fresh listings
next to the previous rendered page.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.clients.blob_store import BlobStore, get_json, put_json
from app.clients.github import GitHubAPIClient, GitHubAPIError
from app.core.config import SyncSettings
from app.schemas import DashboardSnapshot, GitHubUser, RefreshSummary
from app.services.dashboard_render import DashboardRenderer
from app.services.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)

APIClientFactory = Callable[[str], GitHubAPIClient]


def repos_key(login: str) -> str:
    return f"repos:{login}"


def starred_key(login: str) -> str:
    return f"starred:{login}"


def prs_key(login: str) -> str:
    return f"prs:{login}"


def reviews_key(login: str) -> str:
    return f"reviews:{login}"


def dashboard_key(login: str) -> str:
    return f"dashboard:{login}"


class DashboardSyncEngine:
    """Refreshes cached dashboard data for one account or every subscriber."""

    def __init__(
        self,
        *,
        subscriptions: SubscriptionStore,
        blob_store: BlobStore,
        renderer: DashboardRenderer,
        client_factory: APIClientFactory,
        settings: SyncSettings,
    ) -> None:
        self._subscriptions = subscriptions
        self._blobs = blob_store
        self._renderer = renderer
        self._client_factory = client_factory
        self._settings = settings

    async def _collect_pages(
        self,
        api: GitHubAPIClient,
        path: str,
        *,
        login: str,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        page_size = self._settings.page_size
        items: List[Dict[str, Any]] = []
        for page in range(1, self._settings.max_pages + 1):
            try:
                batch = await api.list_page(
                    path, page=page, per_page=page_size, extra_params=extra_params
                )
            except GitHubAPIError as exc:
                logger.warning(
                    "Stopping pagination after fetch failure: %s",
                    exc,
                    extra={"login": login, "path": path, "page": page},
                )
                break
            if not batch:
                break
            items.extend(batch)
            if len(batch) < page_size:
                break
        else:
            logger.warning(
                "Page ceiling reached; listing truncated",
                extra={"login": login, "path": path, "items": len(items)},
            )
        return items

    async def _search(self, api: GitHubAPIClient, query: str, *, login: str) -> List[Dict[str, Any]]:
        try:
            return await api.search_issues(query, per_page=self._settings.page_size)
        except GitHubAPIError as exc:
            logger.warning("Search failed: %s", exc, extra={"login": login})
            return []

    async def refresh_account(self, login: str, access_token: str) -> DashboardSnapshot:
        """Fetch, persist, and pre-render the dashboard for ``login``."""
        async with self._client_factory(access_token) as api:
            repos, starred, my_prs, review_requests = await asyncio.gather(
                self._collect_pages(api, "/user/repos", login=login, extra_params={"sort": "pushed"}),
                self._collect_pages(api, "/user/starred", login=login),
                self._search(api, f"is:pr is:open author:{login}", login=login),
                self._search(api, f"is:pr is:open review-requested:{login}", login=login),
            )
            snapshot = DashboardSnapshot(
                repos=repos,
                starred_repos=starred,
                my_prs=my_prs,
                review_requests=review_requests,
                last_updated=datetime.now(timezone.utc).isoformat(),
            )

            await asyncio.gather(
                asyncio.to_thread(put_json, self._blobs, repos_key(login), repos),
                asyncio.to_thread(put_json, self._blobs, starred_key(login), starred),
                asyncio.to_thread(put_json, self._blobs, prs_key(login), my_prs),
                asyncio.to_thread(put_json, self._blobs, reviews_key(login), review_requests),
            )
            self._subscriptions.mark_refreshed(login, snapshot.last_updated)

            try:
                user = GitHubUser.model_validate(await api.get_user())
            except (GitHubAPIError, ValidationError) as exc:
                logger.warning(
                    "Profile fetch failed; keeping previous rendered dashboard: %s",
                    exc,
                    extra={"login": login},
                )
                return snapshot

        html = self._renderer.render_dashboard(user, snapshot)
        await asyncio.to_thread(self._blobs.put, dashboard_key(login), html)
        logger.info(
            "Dashboard refreshed",
            extra={"login": login, "repos": len(repos), "starred": len(starred)},
        )
        return snapshot

    async def refresh_all(self) -> RefreshSummary:
        """Refresh every active subscriber; one account failing never stops the rest."""
        summary = RefreshSummary()
        for login, access_token in self._subscriptions.list_refreshable():
            try:
                await self.refresh_account(login, access_token)
            except Exception:
                logger.exception("Error updating dashboard", extra={"login": login})
                summary.failed.append(login)
            else:
                summary.refreshed.append(login)
        logger.info(
            "Bulk refresh finished",
            extra={"refreshed": len(summary.refreshed), "failed": len(summary.failed)},
        )
        return summary

    async def get_snapshot(self, login: str) -> DashboardSnapshot:
        """Read cached listings; an account without a row yields an empty snapshot."""
        last_updated = await asyncio.to_thread(self._subscriptions.get_last_updated, login)
        if last_updated is None:
            return DashboardSnapshot()
        repos, starred, my_prs, review_requests = await asyncio.gather(
            asyncio.to_thread(get_json, self._blobs, repos_key(login)),
            asyncio.to_thread(get_json, self._blobs, starred_key(login)),
            asyncio.to_thread(get_json, self._blobs, prs_key(login)),
            asyncio.to_thread(get_json, self._blobs, reviews_key(login)),
        )
        return DashboardSnapshot(
            repos=repos or [],
            starred_repos=starred or [],
            my_prs=my_prs or [],
            review_requests=review_requests or [],
            last_updated=last_updated,
        )

    async def get_rendered(self, login: str) -> Optional[str]:
        return await asyncio.to_thread(self._blobs.get, dashboard_key(login))

    async def render_on_the_fly(self, user: GitHubUser) -> str:
        """Fallback for accounts whose first refresh has not produced a page yet."""
        return self._renderer.render_dashboard(user, await self.get_snapshot(user.login))


__all__ = [
    "APIClientFactory",
    "DashboardSyncEngine",
    "dashboard_key",
    "prs_key",
    "repos_key",
    "reviews_key",
    "starred_key",
]
