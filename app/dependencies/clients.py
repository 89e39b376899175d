"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    BlobStore,
    GitHubAPIClient,
    GitHubOAuthClient,
    SQLiteSubscriptionTable,
    build_blob_store,
)
from app.core.config import get_settings
from app.services import (
    AccountLifecycle,
    APIClientFactory,
    AuthSessionManager,
    DashboardRenderer,
    DashboardSyncEngine,
    PaymentEventProcessor,
    SessionCodec,
    SubscriptionStore,
    TokenCipherService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption for cookies and stored credentials."""
    settings = _settings()
    secret = settings.session.secret or settings.github.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_session_codec() -> SessionCodec:
    settings = _settings()
    return SessionCodec(
        get_token_cipher_service(),
        state_ttl_seconds=settings.session.state_ttl_seconds,
    )


@lru_cache()
def get_github_oauth_client() -> GitHubOAuthClient:
    """Create a singleton GitHub OAuth client."""
    return GitHubOAuthClient(_settings().github)


def get_github_api_client_factory() -> APIClientFactory:
    """Build per-credential GitHub API clients."""
    github_settings = _settings().github

    def factory(access_token: str) -> GitHubAPIClient:
        return GitHubAPIClient(access_token, github_settings)

    return factory


@lru_cache()
def get_subscription_table() -> SQLiteSubscriptionTable:
    """Provide the process-wide owner of all subscription rows."""
    return SQLiteSubscriptionTable(_settings().storage.db_path)


@lru_cache()
def get_blob_store() -> BlobStore:
    return build_blob_store(_settings().storage)


@lru_cache()
def get_subscription_store() -> SubscriptionStore:
    return SubscriptionStore(get_subscription_table(), get_token_cipher_service())


@lru_cache()
def get_dashboard_renderer() -> DashboardRenderer:
    return DashboardRenderer()


@lru_cache()
def get_dashboard_sync_engine() -> DashboardSyncEngine:
    return DashboardSyncEngine(
        subscriptions=get_subscription_store(),
        blob_store=get_blob_store(),
        renderer=get_dashboard_renderer(),
        client_factory=get_github_api_client_factory(),
        settings=_settings().sync,
    )


@lru_cache()
def get_account_lifecycle() -> AccountLifecycle:
    return AccountLifecycle(get_subscription_store(), get_dashboard_sync_engine())


@lru_cache()
def get_auth_session_manager() -> AuthSessionManager:
    """Provide the GitHub login flow wired to credential persistence."""
    settings = _settings()
    return AuthSessionManager(
        get_github_oauth_client(),
        get_session_codec(),
        settings.session,
        on_session_created=get_account_lifecycle().on_session_created,
    )


@lru_cache()
def get_payment_event_processor() -> PaymentEventProcessor:
    """Provide the Stripe webhook processor wired to subscription state."""
    lifecycle = get_account_lifecycle()
    return PaymentEventProcessor(
        _settings().stripe,
        on_subscribe=lifecycle.on_subscribe,
        on_cancel=lifecycle.on_cancel,
    )


__all__ = [
    "get_account_lifecycle",
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
