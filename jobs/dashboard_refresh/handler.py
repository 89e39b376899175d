"""
Entrypoint for the scheduled bulk refresh.

Invoked with no meaningful input (a cron tick or an EventBridge schedule); the
caller consumes no result beyond the returned summary for logs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_dashboard_sync_engine
from app.services import DashboardSyncEngine

logger = logging.getLogger(__name__)


async def run_refresh(engine: Optional[DashboardSyncEngine] = None) -> Dict[str, Any]:
    """Refresh every active subscriber and return a loggable summary."""
    sync_engine = engine or get_dashboard_sync_engine()
    summary = await sync_engine.refresh_all()
    return summary.model_dump()


def scheduled_handler(event: Any = None, context: Any = None) -> Dict[str, Any]:
    """Synchronous wrapper for schedulers that call a plain function."""
    configure_logging(get_settings().log_level)
    logger.info("Scheduled dashboard refresh triggered")
    return asyncio.run(run_refresh())


__all__ = ["run_refresh", "scheduled_handler"]
