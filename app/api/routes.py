"""
FastAPI routes for the GitHub dashboard service.

Thin glue: each handler resolves its collaborators through dependencies and
delegates to the auth, payment, subscription, and sync services.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import HTMLResponse, JSONResponse

from app.dependencies import (
    get_app_settings,
    get_auth_session_manager,
    get_dashboard_renderer,
    get_dashboard_sync_engine,
    get_payment_event_processor,
    get_subscription_store,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _not_authenticated() -> JSONResponse:
    return JSONResponse(
        content={"error": "Not authenticated"},
        status_code=HTTPStatus.UNAUTHORIZED,
    )


@router.get("/api/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: Annotated[Any, Depends(get_app_settings)]) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/login")
async def login(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
) -> Response:
    """Start the GitHub OAuth flow."""
    return await auth.login(request)


@router.get("/callback")
async def callback(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
) -> Response:
    """Complete the GitHub OAuth flow and issue a session."""
    return await auth.callback(request)


@router.get("/logout")
async def logout(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
) -> Response:
    return await auth.logout(request)


@router.post("/webhook")
@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    payments: Annotated[Any, Depends(get_payment_event_processor)],
) -> Response:
    """Receive Stripe events; the raw body is needed for signature checks."""
    return await payments.webhook(request)


@router.get("/api/user")
async def current_user(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
) -> Response:
    user = auth.get_current_user(request)
    if user is None:
        return _not_authenticated()
    return JSONResponse(content=user.model_dump())


@router.get("/api/create-portal-session")
async def create_portal_session(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
    payments: Annotated[Any, Depends(get_payment_event_processor)],
    subscriptions: Annotated[Any, Depends(get_subscription_store)],
) -> Response:
    """Hand the browser a Stripe billing-portal URL for the signed-in account."""
    user = auth.get_current_user(request)
    if user is None:
        return _not_authenticated()
    return_url = f"{request.url.scheme}://{request.url.netloc}/"
    return await payments.create_portal_session(
        subscriptions.get_customer_id(user.login), return_url=return_url
    )


@router.get("/", response_class=HTMLResponse)
async def home(
    request: Request,
    auth: Annotated[Any, Depends(get_auth_session_manager)],
    payments: Annotated[Any, Depends(get_payment_event_processor)],
    subscriptions: Annotated[Any, Depends(get_subscription_store)],
    sync_engine: Annotated[Any, Depends(get_dashboard_sync_engine)],
    renderer: Annotated[Any, Depends(get_dashboard_renderer)],
) -> HTMLResponse:
    """Landing page, pricing page, or the account's dashboard."""
    user = auth.get_current_user(request)
    if user is None or not auth.get_access_token(request):
        return HTMLResponse(renderer.render_landing())

    if not await asyncio.to_thread(subscriptions.is_active, user.login):
        return HTMLResponse(
            renderer.render_pricing(user, payments.payment_link_for(user.login))
        )

    cached = await sync_engine.get_rendered(user.login)
    if cached:
        return HTMLResponse(cached)

    logger.info("No rendered dashboard yet; rendering from cache", extra={"login": user.login})
    return HTMLResponse(await sync_engine.render_on_the_fly(user))


__all__ = ["router"]
