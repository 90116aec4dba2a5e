"""SQLite-backed substitute for a managed, versioned secret store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from broker.core.errors import SecretNotFoundError, TransportError


class SQLiteSecretStore:
    """Secrets with append-only integer versions kept in two tables."""

    def __init__(self, db_path: str, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._db_path, timeout=self._timeout, check_same_thread=False
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS secrets (
                    name TEXT PRIMARY KEY,
                    labels TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS secret_versions (
                    name TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    PRIMARY KEY (name, version),
                    FOREIGN KEY (name) REFERENCES secrets(name)
                )
                """
            )

    @staticmethod
    def version_id(name: str, version: int) -> str:
        return f"{name}/versions/{version}"

    def _get_latest(self, name: str) -> str:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT payload FROM secret_versions
                WHERE name = ? ORDER BY version DESC LIMIT 1
                """,
                (name,),
            ).fetchone()
        if not row:
            raise SecretNotFoundError(name)
        return row["payload"]

    def _create_if_absent(self, name: str, labels: Mapping[str, str]) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO secrets (name, labels, created_at)
                VALUES (?, ?, ?)
                ON CONFLICT(name) DO NOTHING
                """,
                (name, json.dumps(dict(labels)), _utcnow()),
            )

    def _add_version(self, name: str, payload: str) -> str:
        with self._connect() as conn:
            exists = conn.execute(
                "SELECT 1 FROM secrets WHERE name = ?", (name,)
            ).fetchone()
            if not exists:
                raise SecretNotFoundError(name)
            # BEGIN IMMEDIATE takes the write lock before reading MAX(version).
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT COALESCE(MAX(version), 0) AS latest FROM secret_versions WHERE name = ?",
                (name,),
            ).fetchone()
            version = int(row["latest"]) + 1
            conn.execute(
                """
                INSERT INTO secret_versions (name, version, payload, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (name, version, payload, _utcnow()),
            )
        return self.version_id(name, version)

    def list_versions(self, name: str) -> list[int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT version FROM secret_versions WHERE name = ? ORDER BY version",
                (name,),
            ).fetchall()
        return [row["version"] for row in rows]

    async def get_latest(self, name: str) -> str:
        return await self._run(self._get_latest, name)

    async def create_if_absent(
        self, name: str, labels: Mapping[str, str] | None = None
    ) -> None:
        await self._run(self._create_if_absent, name, labels or {})

    async def add_version(self, name: str, payload: str) -> str:
        return await self._run(self._add_version, name, payload)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.OperationalError as exc:
            raise TransportError(f"Secret store unavailable: {exc}") from exc


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = ["SQLiteSecretStore"]
