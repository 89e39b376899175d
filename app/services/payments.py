"""
Stripe webhook handling and billing-portal helpers.

Only two event types change state:

* ``checkout.session.completed`` for the configured payment link activates the
  account named by ``client_reference_id``.
* ``customer.subscription.deleted`` deactivates every account billed to the
  customer's email.

Everything else is acknowledged so Stripe stops retrying. The signature is
checked against the raw body before any business field is read.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import quote

import stripe
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import StripeSettings

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

SubscribeHook = Callable[..., Awaitable[None]]
CancelHook = Callable[[str], Awaitable[None]]


@dataclass(slots=True)
class StripeCustomerInfo:
    deleted: bool
    email: Optional[str] = None


class StripeGateway:
    """Thin blocking wrapper over the Stripe SDK calls this service needs."""

    def __init__(self, settings: StripeSettings) -> None:
        self._settings = settings

    def _request_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"api_key": self._settings.secret_key}
        if self._settings.api_version:
            options["stripe_version"] = self._settings.api_version
        return options

    def verify_signature(self, payload: str, signature: str) -> None:
        """Raise ``stripe.SignatureVerificationError`` unless the header signs ``payload``."""
        stripe.WebhookSignature.verify_header(
            payload,
            signature,
            self._settings.webhook_signing_secret,
            stripe.Webhook.DEFAULT_TOLERANCE,
        )

    def retrieve_customer(self, customer_id: str) -> StripeCustomerInfo:
        customer = stripe.Customer.retrieve(customer_id, **self._request_options())
        return StripeCustomerInfo(
            deleted=bool(getattr(customer, "deleted", False)),
            email=getattr(customer, "email", None),
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
            **self._request_options(),
        )
        return session.url


def _reply(status: HTTPStatus, **content: Any) -> JSONResponse:
    return JSONResponse(content=content, status_code=status)


def _acknowledge(message: str) -> JSONResponse:
    return _reply(HTTPStatus.OK, received=True, message=message)


def _as_id(value: Any) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


class PaymentEventProcessor:
    """Verify Stripe webhooks and drive subscription state through hooks."""

    def __init__(
        self,
        settings: StripeSettings,
        *,
        on_subscribe: SubscribeHook,
        on_cancel: CancelHook,
        gateway: Optional[StripeGateway] = None,
    ) -> None:
        self._settings = settings
        self._on_subscribe = on_subscribe
        self._on_cancel = on_cancel
        self._gateway = gateway or StripeGateway(settings)

    def payment_link_for(self, login: str) -> str:
        """Checkout URL that carries ``login`` through to the completed session."""
        return f"{self._settings.payment_link_url}?client_reference_id={quote(login, safe='')}"

    async def webhook(self, request: Request) -> JSONResponse:
        raw_body = await request.body()
        if not raw_body:
            return _reply(HTTPStatus.BAD_REQUEST, error="No body")

        signature = request.headers.get("stripe-signature")
        if not signature:
            return _reply(HTTPStatus.BAD_REQUEST, error="No signature")

        try:
            payload = raw_body.decode("utf-8")
            self._gateway.verify_signature(payload, signature)
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            return _reply(HTTPStatus.BAD_REQUEST, error=str(exc) or "Invalid signature")

        try:
            event = json.loads(payload)
        except ValueError:
            return _reply(HTTPStatus.BAD_REQUEST, error="Invalid payload")
        if not isinstance(event, dict):
            return _reply(HTTPStatus.BAD_REQUEST, error="Invalid payload")

        return await self.handle_event(event)

    async def handle_event(self, event: Dict[str, Any]) -> JSONResponse:
        """Apply a verified event."""
        event_type = event.get("type")
        data_object = (event.get("data") or {}).get("object") or {}
        logger.info("Stripe event received", extra={"event_type": event_type, "event_id": event.get("id")})

        if event_type == CHECKOUT_COMPLETED:
            return await self._handle_checkout_completed(event, data_object)
        if event_type == SUBSCRIPTION_DELETED:
            return await self._handle_subscription_deleted(data_object)
        return _acknowledge("Event not handled")

    async def _handle_checkout_completed(
        self, event: Dict[str, Any], session: Dict[str, Any]
    ) -> JSONResponse:
        if _as_id(session.get("payment_link")) != self._settings.payment_link_id:
            return _acknowledge("Incorrect payment link")

        if session.get("payment_status") != "paid" or not session.get("amount_total"):
            return _reply(HTTPStatus.BAD_REQUEST, error="Payment not completed")

        login = session.get("client_reference_id")
        email = (session.get("customer_details") or {}).get("email")
        if not login or not email:
            return _reply(HTTPStatus.BAD_REQUEST, error="Missing required fields")

        created = event.get("created")
        subscribed_at = int(created) * 1000 if isinstance(created, (int, float)) and created > 0 else None
        await self._on_subscribe(
            login,
            email,
            _as_id(session.get("customer")),
            subscribed_at=subscribed_at,
        )
        return _acknowledge("Payment processed")

    async def _handle_subscription_deleted(self, subscription: Dict[str, Any]) -> JSONResponse:
        customer_id = _as_id(subscription.get("customer"))
        if not customer_id:
            return _reply(HTTPStatus.BAD_REQUEST, error="Missing customer")

        try:
            customer = await asyncio.to_thread(self._gateway.retrieve_customer, customer_id)
        except stripe.StripeError as exc:
            logger.error(
                "Stripe customer lookup failed: %s", exc, extra={"customer_id": customer_id}
            )
            return _reply(HTTPStatus.BAD_GATEWAY, error="Customer lookup failed")
        if customer.deleted:
            return _acknowledge("Customer already deleted")

        await self._on_cancel(customer.email or "")
        return _acknowledge("Subscription removed")

    async def create_portal_session(
        self, customer_id: Optional[str], *, return_url: str
    ) -> JSONResponse:
        """Open a Stripe billing-portal session for an existing customer."""
        if not customer_id:
            return _reply(HTTPStatus.NOT_FOUND, error="No subscription found")
        try:
            url = await asyncio.to_thread(
                self._gateway.create_portal_session, customer_id, return_url
            )
        except stripe.StripeError as exc:
            logger.error(
                "Stripe portal session failed: %s", exc, extra={"customer_id": customer_id}
            )
            return _reply(HTTPStatus.BAD_GATEWAY, error="Failed to create portal session")
        return JSONResponse(content={"url": url})


__all__ = [
    "CHECKOUT_COMPLETED",
    "PaymentEventProcessor",
    "SUBSCRIPTION_DELETED",
    "StripeCustomerInfo",
    "StripeGateway",
]
