"""Jinja2 rendering for the landing, pricing, and dashboard pages."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.schemas import DashboardSnapshot, GitHubUser

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

PENDING_LABEL = "Generating..."


def format_updated_label(last_updated: str) -> str:
    """Human-readable refresh time; a pending label before the first refresh."""
    if not last_updated:
        return PENDING_LABEL
    try:
        parsed = datetime.fromisoformat(last_updated)
    except ValueError:
        return last_updated
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _repo_name(repository_url: Optional[str]) -> str:
    # https://api.github.com/repos/<owner>/<name>
    if not repository_url:
        return ""
    return "/".join(repository_url.rstrip("/").split("/")[-2:])


class DashboardRenderer:
    """Render pages from the bundled templates."""

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        self._env = Environment(
            loader=FileSystemLoader(str(templates_dir or _TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )
        self._env.filters["repo_name"] = _repo_name

    def render_landing(self) -> str:
        return self._env.get_template("landing.html").render()

    def render_pricing(self, user: GitHubUser, payment_link: str) -> str:
        return self._env.get_template("pricing.html").render(
            user=user, payment_link=payment_link
        )

    def render_dashboard(self, user: GitHubUser, snapshot: DashboardSnapshot) -> str:
        return self._env.get_template("dashboard.html").render(
            user=user,
            snapshot=snapshot,
            updated_label=format_updated_label(snapshot.last_updated),
        )


__all__ = ["DashboardRenderer", "PENDING_LABEL", "format_updated_label"]
