"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_account_lifecycle,
    get_auth_session_manager,
    get_blob_store,
    get_dashboard_renderer,
    get_dashboard_sync_engine,
    get_github_api_client_factory,
    get_github_oauth_client,
    get_payment_event_processor,
    get_session_codec,
    get_subscription_store,
    get_subscription_table,
    get_token_cipher_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_account_lifecycle",
    "get_app_settings",
    "get_auth_session_manager",
    "get_blob_store",
    "get_dashboard_renderer",
    "get_dashboard_sync_engine",
    "get_github_api_client_factory",
    "get_github_oauth_client",
    "get_payment_event_processor",
    "get_session_codec",
    "get_subscription_store",
    "get_subscription_table",
    "get_token_cipher_service",
]
