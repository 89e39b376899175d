"""
Domain model for the per-account subscription row.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SubscriptionRecord(BaseModel):
    """Represents a row of the structured tier, with the credential decrypted."""

    login: str = Field(..., description="GitHub login; the row's unique key.")
    email: Optional[str] = Field(None, description="Billing email from Stripe checkout.")
    subscribed_at: Optional[int] = Field(
        None, description="Activation time in epoch milliseconds; None when inactive."
    )
    stripe_customer_id: Optional[str] = None
    access_token: Optional[str] = None
    last_updated: Optional[str] = Field(
        None, description="ISO-8601 time of the last dashboard refresh."
    )

    @property
    def is_active(self) -> bool:
        return self.subscribed_at is not None and self.subscribed_at > 0


__all__ = ["SubscriptionRecord"]
