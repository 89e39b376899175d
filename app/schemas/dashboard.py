"""Schemas describing cached dashboard data."""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field


class DashboardSnapshot(BaseModel):
    """The four cached listings for an account plus their refresh time."""

    repos: List[Dict[str, Any]] = Field(default_factory=list)
    starred_repos: List[Dict[str, Any]] = Field(default_factory=list)
    my_prs: List[Dict[str, Any]] = Field(default_factory=list)
    review_requests: List[Dict[str, Any]] = Field(default_factory=list)
    last_updated: str = Field(
        "", description="ISO-8601 refresh timestamp, empty before the first refresh."
    )


class RefreshSummary(BaseModel):
    """Outcome of one scheduled bulk refresh."""

    refreshed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


__all__ = ["DashboardSnapshot", "RefreshSummary"]
