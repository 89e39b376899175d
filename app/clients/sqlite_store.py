"""SQLite-backed structured tier holding one subscription row per account."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Optional


class SQLiteSubscriptionTable:
    """Row store keyed by GitHub login with atomic per-key upserts.

    A single instance owns every row for the process. Each mutation is one SQL
    statement executed under ``_lock`` so concurrent writers (login, webhook,
    scheduled refresh) are totally ordered per row.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS subscriptions (
                    username TEXT PRIMARY KEY,
                    email TEXT,
                    subscribed_at INTEGER,
                    access_token TEXT,
                    stripe_customer_id TEXT,
                    last_updated TEXT
                )
                """
            )

    def _execute(self, sql: str, params: tuple[Any, ...]) -> int:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(sql, params)
            return cursor.rowcount

    def upsert_access_token(self, username: str, access_token: str) -> None:
        self._execute(
            """
            INSERT INTO subscriptions (username, access_token)
            VALUES (?, ?)
            ON CONFLICT(username) DO UPDATE SET access_token = excluded.access_token
            """,
            (username, access_token),
        )

    def upsert_subscription(
        self,
        username: str,
        *,
        email: str,
        subscribed_at: int,
        stripe_customer_id: Optional[str],
    ) -> None:
        self._execute(
            """
            INSERT INTO subscriptions (username, email, subscribed_at, stripe_customer_id)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(username) DO UPDATE SET
                email = excluded.email,
                subscribed_at = excluded.subscribed_at,
                stripe_customer_id = excluded.stripe_customer_id
            """,
            (username, email, subscribed_at, stripe_customer_id),
        )

    def clear_subscription_by_email(self, email: str) -> int:
        return self._execute(
            "UPDATE subscriptions SET subscribed_at = NULL WHERE email = ?",
            (email,),
        )

    def set_last_updated(self, username: str, last_updated: str) -> int:
        return self._execute(
            "UPDATE subscriptions SET last_updated = ? WHERE username = ?",
            (last_updated, username),
        )

    def get_row(self, username: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE username = ?",
                (username,),
            ).fetchone()
        if not row:
            return None
        return dict(row)

    def list_active_with_token(self) -> list[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT username, access_token FROM subscriptions
                WHERE subscribed_at IS NOT NULL
                  AND subscribed_at > 0
                  AND access_token IS NOT NULL
                ORDER BY username
                """
            ).fetchall()
        return [dict(row) for row in rows]


__all__ = ["SQLiteSubscriptionTable"]
