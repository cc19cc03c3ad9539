"""
PostgresStorage adapter for the Arbor assembly layer.

Implements the TreeStorage protocol using Postgres as the backend.
Each tree is one row; the whole document lives in a JSONB column.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any
from uuid import uuid4

import asyncpg

from arbor.config import settings
from arbor.kernel.assembly import StorageError, TreeRecord, TreeStorage
from arbor.kernel.exchange import TreeDocument

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS arbor_trees (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    description TEXT,
    document    JSONB NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS arbor_trees_updated_at_idx ON arbor_trees (updated_at DESC);
"""


def _iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def _row_to_record(row: asyncpg.Record) -> TreeRecord:
    """Convert a database row to a TreeRecord."""
    document: Any = row["document"]
    if isinstance(document, str):
        document = json.loads(document)
    return TreeRecord(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        document=TreeDocument.from_dict(document),
        created_at=_iso(row["created_at"]),
        updated_at=_iso(row["updated_at"]),
    )


class PostgresStorage(TreeStorage):
    """
    Postgres-based storage for tree documents.

    Uses one table:
    - arbor_trees: metadata columns plus the serialized document
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @classmethod
    async def connect(cls, dsn: str | None = None) -> PostgresStorage:
        """Create a pool from settings (or an explicit DSN) and ensure the table exists."""
        dsn = dsn or settings.DATABASE_URL
        if not dsn:
            raise StorageError("ARBOR_DATABASE_URL is not set")
        pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=settings.DB_POOL_MIN_SIZE,
            max_size=settings.DB_POOL_MAX_SIZE,
        )
        storage = cls(pool)
        await storage.ensure_schema()
        return storage

    @asynccontextmanager
    async def _conn(self) -> AsyncIterator[asyncpg.Connection]:
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, OSError) as e:
            raise StorageError(str(e)) from e

    async def ensure_schema(self) -> None:
        async with self._conn() as conn:
            await conn.execute(SCHEMA_SQL)

    async def get_trees(self) -> list[TreeRecord]:
        async with self._conn() as conn:
            rows = await conn.fetch("SELECT * FROM arbor_trees ORDER BY updated_at DESC")
            return [_row_to_record(row) for row in rows]

    async def get_tree(self, tree_id: str) -> TreeRecord | None:
        async with self._conn() as conn:
            row = await conn.fetchrow("SELECT * FROM arbor_trees WHERE id = $1", tree_id)
            return _row_to_record(row) if row else None

    async def create_tree(
        self,
        name: str,
        document: TreeDocument,
        description: str | None = None,
    ) -> TreeRecord:
        async with self._conn() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO arbor_trees (id, name, description, document)
                VALUES ($1, $2, $3, $4::jsonb)
                RETURNING *
                """,
                str(uuid4()),
                name,
                description,
                json.dumps(document.to_dict(), ensure_ascii=False),
            )
            return _row_to_record(row)

    async def update_tree(
        self,
        tree_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        document: TreeDocument | None = None,
    ) -> TreeRecord | None:
        async with self._conn() as conn:
            row = await conn.fetchrow(
                """
                UPDATE arbor_trees
                SET name = COALESCE($2, name),
                    description = COALESCE($3, description),
                    document = COALESCE($4::jsonb, document),
                    updated_at = now()
                WHERE id = $1
                RETURNING *
                """,
                tree_id,
                name,
                description,
                json.dumps(document.to_dict(), ensure_ascii=False) if document is not None else None,
            )
            return _row_to_record(row) if row else None

    async def delete_tree(self, tree_id: str) -> bool:
        async with self._conn() as conn:
            result = await conn.execute("DELETE FROM arbor_trees WHERE id = $1", tree_id)
            return result != "DELETE 0"

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()
