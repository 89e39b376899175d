"""Public schema exports."""

from .auth import GitHubUser, OAuthTransitState, SessionData
from .dashboard import DashboardSnapshot, RefreshSummary

__all__ = [
    "DashboardSnapshot",
    "GitHubUser",
    "OAuthTransitState",
    "RefreshSummary",
    "SessionData",
]
