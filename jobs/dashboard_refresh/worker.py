"""Local worker that refreshes every subscriber's dashboard on an interval."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_dashboard_sync_engine
from app.services import DashboardSyncEngine

logger = logging.getLogger(__name__)


class DashboardRefreshWorker:
    """Run ``refresh_all`` now and then every ``interval_seconds``."""

    def __init__(self, sync_engine: DashboardSyncEngine, interval_seconds: float) -> None:
        self._sync = sync_engine
        self._interval = interval_seconds

    async def run_once(self) -> None:
        try:
            summary = await self._sync.refresh_all()
        except Exception:  # pragma: no cover - refresh_all isolates per-account errors
            logger.exception("Bulk dashboard refresh failed")
            return
        logger.info(
            "Refresh cycle complete",
            extra={"refreshed": len(summary.refreshed), "failed": len(summary.failed)},
        )

    async def run_forever(self, *, max_cycles: Optional[int] = None) -> None:
        cycles = 0
        while True:
            await self.run_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            await asyncio.sleep(self._interval)


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    worker = DashboardRefreshWorker(
        get_dashboard_sync_engine(),
        interval_seconds=settings.sync.refresh_interval_seconds,
    )
    await worker.run_forever()


if __name__ == "__main__":  # pragma: no cover - manual execution path
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Dashboard refresh worker stopped")
