"""
Postgres object store for synchronized publications.

Objects live in target_objects and are only reachable through their row
in sync_links; the unique (source, schema, source_id) constraint is what
guarantees at most one object per source record. Deleting an object
cascades to its link.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from notubiz_sync.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one
from notubiz_sync.db.pool import db_pool
from notubiz_sync.features.event_sync.domain.models import SyncLink, TargetObject
from notubiz_sync.features.event_sync.repository.object_cache import ObjectCache
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def _link_from_row(row: dict[str, Any]) -> SyncLink:
    return SyncLink(
        id=str(row["id"]),
        source=row["source"],
        schema=row["schema"],
        source_id=row["source_id"],
        object_id=str(row["object_id"]),
    )


def _object_from_row(row: dict[str, Any], source_id: str | None = None) -> TargetObject:
    return TargetObject(
        id=str(row["id"]),
        schema=row["schema"],
        category=row.get("category"),
        data=row["data"] or {},
        source_id=source_id if source_id is not None else row.get("source_id"),
    )


class PostgresObjectStore:
    """Persistence for sync links and their target objects."""

    def __init__(self, cache: ObjectCache | None = None):
        self._cache = cache or ObjectCache()

    @asynccontextmanager
    async def transaction(
        self, connection: psycopg.AsyncConnection | None = None
    ) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Commit point. With a connection this opens a savepoint inside the
        caller's transaction, otherwise a new top-level transaction.
        """
        if connection is not None:
            async with connection.transaction():
                yield connection
        else:
            async with db_pool.transaction() as conn:
                yield conn

    async def find_link_by_source(
        self,
        source: str,
        schema: str,
        source_id: str,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> SyncLink | None:
        query = """
            SELECT id, source, schema, source_id, object_id
            FROM sync_links
            WHERE source = %s
              AND schema = %s
              AND source_id = %s
        """
        row = await fetch_one(query, (source, schema, source_id), connection=connection)
        return _link_from_row(row) if row else None

    async def get_object(
        self, link: SyncLink, *, connection: psycopg.AsyncConnection | None = None
    ) -> TargetObject | None:
        query = """
            SELECT id, schema, category, data
            FROM target_objects
            WHERE id = %s
        """
        row = await fetch_one(query, (link.object_id,), connection=connection)
        return _object_from_row(row, source_id=link.source_id) if row else None

    async def upsert_by_source_link(
        self,
        source: str,
        schema: str,
        source_id: str,
        data: dict[str, Any],
        category: str | None,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> TargetObject:
        """Update the linked object in place, or create object and link."""
        link = await self.find_link_by_source(source, schema, source_id, connection=connection)
        if link is not None:
            return await self._update_linked(link, data, category, connection=connection)

        row = await fetch_one(
            """
            INSERT INTO target_objects (schema, category, data)
            VALUES (%s, %s, %s)
            RETURNING id, schema, category, data
            """,
            (schema, category, Jsonb(data)),
            connection=connection,
        )
        created = await fetch_one(
            """
            INSERT INTO sync_links (source, schema, source_id, object_id)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (source, schema, source_id) DO NOTHING
            RETURNING id
            """,
            (source, schema, source_id, row["id"]),
            connection=connection,
        )
        if created is not None:
            logger.debug(
                "Created synchronized object", source_id=source_id, object_id=str(row["id"])
            )
            return _object_from_row(row, source_id=source_id)

        # Another writer linked this source id first; drop ours and update theirs
        await execute_query(
            "DELETE FROM target_objects WHERE id = %s", (row["id"],), connection=connection
        )
        link = await self.find_link_by_source(source, schema, source_id, connection=connection)
        if link is None:
            raise DatabaseError(
                f"Sync link for source id {source_id} vanished after a conflicting insert",
                operation="upsert_by_source_link",
            )
        logger.info(
            "Concurrent sync link insert, updating existing object",
            source_id=source_id,
            object_id=link.object_id,
        )
        return await self._update_linked(link, data, category, connection=connection)

    async def _update_linked(
        self,
        link: SyncLink,
        data: dict[str, Any],
        category: str | None,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> TargetObject:
        row = await fetch_one(
            """
            UPDATE target_objects
            SET data = %s, category = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING id, schema, category, data
            """,
            (Jsonb(data), category, link.object_id),
            connection=connection,
        )
        await execute_query(
            "UPDATE sync_links SET last_synced_at = NOW() WHERE id = %s",
            (link.id,),
            connection=connection,
        )
        logger.debug(
            "Updated synchronized object", source_id=link.source_id, object_id=link.object_id
        )
        return _object_from_row(row, source_id=link.source_id)

    async def find_links_for_category(
        self,
        source: str,
        schema: str,
        category: str,
        *,
        connection: psycopg.AsyncConnection | None = None,
    ) -> list[SyncLink]:
        query = """
            SELECT l.id, l.source, l.schema, l.source_id, l.object_id
            FROM sync_links l
            JOIN target_objects o ON o.id = l.object_id
            WHERE l.source = %s
              AND l.schema = %s
              AND o.category = %s
        """
        rows = await fetch_all(query, (source, schema, category), connection=connection)
        return [_link_from_row(row) for row in rows]

    async def delete(
        self, link: SyncLink, *, connection: psycopg.AsyncConnection | None = None
    ) -> bool:
        """Delete the object behind a link; the link goes with it."""
        deleted = await execute_query(
            "DELETE FROM target_objects WHERE id = %s",
            (link.object_id,),
            connection=connection,
        )
        await self._cache.evict(link.object_id)
        return deleted > 0

    async def cache(self, target: TargetObject) -> bool:
        return await self._cache.cache_object(target)
