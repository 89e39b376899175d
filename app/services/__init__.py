"""Service layer exports."""

from .account_lifecycle import AccountLifecycle
from .auth_session import AuthSessionManager
from .dashboard_render import DashboardRenderer
from .dashboard_sync import APIClientFactory, DashboardSyncEngine
from .payments import PaymentEventProcessor, StripeGateway
from .session_codec import SessionCodec
from .subscriptions import SubscriptionStore
from .token_cipher import TokenCipherService

__all__ = [
    "APIClientFactory",
    "AccountLifecycle",
    "AuthSessionManager",
    "DashboardRenderer",
    "DashboardSyncEngine",
    "PaymentEventProcessor",
    "SessionCodec",
    "StripeGateway",
    "SubscriptionStore",
    "TokenCipherService",
]
