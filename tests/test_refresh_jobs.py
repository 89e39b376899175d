try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from app.schemas import RefreshSummary
from jobs.dashboard_refresh import handler
from jobs.dashboard_refresh.worker import DashboardRefreshWorker


class StubSyncEngine:
    def __init__(self) -> None:
        self.calls = 0

    async def refresh_all(self) -> RefreshSummary:
        self.calls += 1
        return RefreshSummary(refreshed=["alice"], failed=["bob"])


@pytest.mark.anyio
async def test_run_refresh_returns_summary() -> None:
    engine = StubSyncEngine()

    result = await handler.run_refresh(engine)

    assert result == {"refreshed": ["alice"], "failed": ["bob"]}
    assert engine.calls == 1


def test_scheduled_handler_runs_bulk_refresh(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = StubSyncEngine()
    monkeypatch.setattr(handler, "get_dashboard_sync_engine", lambda: engine)

    result = handler.scheduled_handler({"source": "aws.events"}, None)

    assert result == {"refreshed": ["alice"], "failed": ["bob"]}
    assert engine.calls == 1


def test_package_exposes_scheduled_handler() -> None:
    import jobs.dashboard_refresh as package

    assert package.scheduled_handler is handler.scheduled_handler


@pytest.mark.anyio
async def test_worker_stops_after_max_cycles() -> None:
    engine = StubSyncEngine()
    worker = DashboardRefreshWorker(engine, interval_seconds=0)

    await worker.run_forever(max_cycles=3)

    assert engine.calls == 3
