"""
Reconciler: keeps the object store converged on the source.

upsert() is keyed by source id through the sync link, so re-syncing a
record updates its object in place. reconcile_stale() removes objects
whose source id was not seen in a complete run. delete_one() serves
delete notifications and only acts once the source confirms the record
is gone.
"""

from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from notubiz_sync.features.event_sync.domain.errors import (
    NotFoundUpstream,
    NotSyncedLocally,
    ScopeMismatch,
    StillExistsUpstream,
    TransportFailure,
)
from notubiz_sync.features.event_sync.domain.models import (
    Mapped,
    SyncBatch,
    SyncLink,
    TargetObject,
)
from notubiz_sync.features.event_sync.pipeline.fetcher import EventFetcher
from notubiz_sync.features.event_sync.repository.object_store import PostgresObjectStore
from notubiz_sync.features.event_sync.resources import SyncContext
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ObjectStore(Protocol):
    def transaction(self, connection: Any = None) -> AbstractAsyncContextManager[Any]: ...

    async def find_link_by_source(
        self, source: str, schema: str, source_id: str, *, connection: Any = None
    ) -> SyncLink | None: ...

    async def get_object(self, link: SyncLink, *, connection: Any = None) -> TargetObject | None: ...

    async def upsert_by_source_link(
        self,
        source: str,
        schema: str,
        source_id: str,
        data: dict[str, Any],
        category: str | None,
        *,
        connection: Any = None,
    ) -> TargetObject: ...

    async def find_links_for_category(
        self, source: str, schema: str, category: str, *, connection: Any = None
    ) -> list[SyncLink]: ...

    async def delete(self, link: SyncLink, *, connection: Any = None) -> bool: ...

    async def cache(self, target: TargetObject) -> bool: ...


class Reconciler:
    def __init__(self, store: ObjectStore | None = None, fetcher: EventFetcher | None = None):
        self._store = store or PostgresObjectStore()
        self._fetcher = fetcher or EventFetcher()

    @property
    def store(self) -> ObjectStore:
        return self._store

    async def upsert(
        self,
        mapped: Mapped,
        context: SyncContext,
        source_id: str,
        *,
        connection: Any = None,
        batch: SyncBatch | None = None,
    ) -> TargetObject:
        target = await self._store.upsert_by_source_link(
            context.source.reference,
            context.schema_ref,
            source_id,
            mapped.data,
            context.scope.category,
            connection=connection,
        )
        await self._store.cache(target)

        if batch is not None:
            batch.record_synced(target, source_id)
        return target

    async def reconcile_stale(
        self, synced_ids: Iterable[str], context: SyncContext, category: str
    ) -> int:
        """
        Delete every object in this source/schema/category whose source id
        is not in synced_ids. Must only run after a complete fetch and
        after all upserts of the batch are committed.
        """
        keep = {str(source_id) for source_id in synced_ids}

        async with self._store.transaction() as conn:
            links = await self._store.find_links_for_category(
                context.source.reference, context.schema_ref, category, connection=conn
            )
            stale = [link for link in links if link.source_id not in keep]
            for link in stale:
                await self._store.delete(link, connection=conn)

        if stale:
            logger.info(
                "Deleted objects no longer present at source",
                deleted=len(stale),
                category=category,
                source=context.source.reference,
            )
        return len(stale)

    async def delete_one(
        self, context: SyncContext, source_id: str, category: str | None = None
    ) -> str:
        """
        Delete the object synchronized from source_id.

        Raises:
            StillExistsUpstream: the source still returns the record
            TransportFailure: absence at the source could not be verified
            NotSyncedLocally: there is nothing to delete
            ScopeMismatch: the object is in another category
        """
        await self._ensure_absent_upstream(context, source_id)

        async with self._store.transaction() as conn:
            link = await self._store.find_link_by_source(
                context.source.reference, context.schema_ref, source_id, connection=conn
            )
            if link is None:
                raise NotSyncedLocally(
                    f"No synchronized object found for NotuBiz Event {source_id}",
                    source_id=source_id,
                )

            if category is not None:
                target = await self._store.get_object(link, connection=conn)
                if target is None or target.category != category:
                    raise ScopeMismatch(
                        f"Object does not match the categorie: {category}", source_id=source_id
                    )

            await self._store.delete(link, connection=conn)

        logger.info("Deleted synchronized object", source_id=source_id, object_id=link.object_id)
        return "Object deleted successfully"

    async def _ensure_absent_upstream(self, context: SyncContext, source_id: str) -> None:
        try:
            await self._fetcher.fetch_one(context, source_id)
        except (NotFoundUpstream, ScopeMismatch):
            # Gone, or no longer ours: either way absent for this scope
            return
        except TransportFailure as exc:
            raise TransportFailure(
                "Could not verify that the object no longer exists upstream in the NotuBiz API, "
                "object did not get deleted locally",
                source_id=source_id,
            ) from exc

        raise StillExistsUpstream(
            "Object still exists upstream in the NotuBiz API, object did not get deleted locally",
            source_id=source_id,
        )
