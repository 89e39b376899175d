"""
Blob tier for large per-account values (cached listings and rendered dashboards).

Values are whole-value replacements keyed by string; there is no partial update
and no multi-key transaction.
"""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

import boto3
from botocore.exceptions import ClientError

from app.core.config import StorageSettings


class BlobStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str) -> None: ...


def get_json(store: BlobStore, key: str) -> Any:
    """Load a JSON blob, returning ``None`` when the key is absent."""
    raw = store.get(key)
    if raw is None:
        return None
    return json.loads(raw)


def put_json(store: BlobStore, key: str, value: Any) -> None:
    store.put(key, json.dumps(value, separators=(",", ":")))


class SQLiteBlobStore:
    """Local blob tier sharing the SQLite file with the structured tier."""

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
                CREATE TABLE IF NOT EXISTS blob_records (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM blob_records WHERE key = ?",
                (key,),
            ).fetchone()
        if not row:
            return None
        return row["value"]

    def put(self, key: str, value: str) -> None:
        updated_at = datetime.now(timezone.utc).isoformat()
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO blob_records (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, updated_at),
            )


class S3BlobStore:
    """Blob tier backed by an S3 bucket, one object per key."""

    def __init__(self, bucket: str, *, prefix: str = "", client: Any = None, region_name: str | None = None) -> None:
        self._bucket = bucket
        self._prefix = prefix
        self._client = client or boto3.client("s3", region_name=region_name)

    def _object_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=self._object_key(key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise
        return response["Body"].read().decode("utf-8")

    def put(self, key: str, value: str) -> None:
        content_type = "text/html; charset=utf-8" if key.startswith("dashboard:") else "application/json"
        self._client.put_object(
            Bucket=self._bucket,
            Key=self._object_key(key),
            Body=value.encode("utf-8"),
            ContentType=content_type,
        )


def build_blob_store(settings: StorageSettings) -> BlobStore:
    """Select the configured blob backend."""
    if settings.blob_backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("BLOB_S3_BUCKET must be set when BLOB_BACKEND=s3.")
        return S3BlobStore(
            settings.s3_bucket,
            prefix=settings.s3_prefix,
            region_name=settings.region_name,
        )
    return SQLiteBlobStore(settings.db_path)


__all__ = [
    "BlobStore",
    "S3BlobStore",
    "SQLiteBlobStore",
    "build_blob_store",
    "get_json",
    "put_json",
]
