"""Scheduled dashboard refresh.

``scheduled_handler`` is the cron/Lambda entrypoint; ``worker`` runs the same
refresh on an interval for deployments without an external scheduler.
"""

from __future__ import annotations

from typing import Any


def __getattr__(name: str) -> Any:
    if name == "scheduled_handler":
        from .handler import scheduled_handler as loaded_scheduled_handler

        return loaded_scheduled_handler
    raise AttributeError(name)


__all__ = ["scheduled_handler"]
