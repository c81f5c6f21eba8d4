"""
Bulk synchronization of NotuBiz events into Woo publication objects.

One run: fetch every page of the window, fetch each record's meeting and
map it, then upsert the mapped records inside one batch transaction with
a savepoint per record. The transaction is only opened once all network
I/O for the batch is done. Collected attachments are dispatched after the
commit, then objects no longer present at the source are deleted. The
delete pass only happens when the fetch was complete.
"""

from notubiz_sync.features.event_sync.domain.models import (
    Mapped,
    Skipped,
    SourceRecord,
    SyncBatch,
    SyncRunResult,
    SyncScope,
)
from notubiz_sync.features.event_sync.pipeline.attachments import AttachmentDispatcher
from notubiz_sync.features.event_sync.pipeline.fetcher import EventFetcher
from notubiz_sync.features.event_sync.pipeline.reconciler import Reconciler
from notubiz_sync.features.event_sync.pipeline.record_sync import (
    GREMIUM_NOT_ALLOWED,
    RecordSynchronizer,
    gremium_allowed,
)
from notubiz_sync.features.event_sync.resources import (
    ResourceRegistry,
    SyncContext,
    resource_registry,
)
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

PARTIAL_FETCH_WARNING = (
    "Fetching NotuBiz events did not complete, "
    "objects no longer present at the source were not deleted"
)


class EventSyncService:
    """Orchestrates a full NotuBiz -> Woo synchronization run."""

    def __init__(
        self,
        fetcher: EventFetcher | None = None,
        reconciler: Reconciler | None = None,
        synchronizer: RecordSynchronizer | None = None,
        attachments: AttachmentDispatcher | None = None,
        registry: ResourceRegistry | None = None,
    ):
        self._fetcher = fetcher or EventFetcher()
        self._reconciler = reconciler or Reconciler(fetcher=self._fetcher)
        self._synchronizer = synchronizer or RecordSynchronizer(reconciler=self._reconciler)
        self._attachments = attachments or AttachmentDispatcher()
        self._registry = registry or resource_registry

    async def run(self, scope: SyncScope | None = None) -> SyncRunResult:
        """
        Run one bulk pass.

        Raises:
            ConfigurationError: the scope is incomplete or references an
                unknown source, schema or mapping
        """
        scope = scope or SyncScope.from_settings()
        context = self._registry.resolve(scope)
        source = context.source

        logger.info(
            f"Fetching objects from {source.location}",
            source=source.reference,
            organisation_id=scope.organisation_id,
        )

        fetched = await self._fetcher.fetch_batch(context)
        result = SyncRunResult(
            source_name=source.name,
            fetched=len(fetched.records),
            fetch_complete=fetched.complete,
        )
        if fetched.error:
            result.warnings.append(fetched.error)

        if not fetched.records:
            logger.info(
                "No results found, ending NotuBiz sync",
                source=source.reference,
                fetch_complete=fetched.complete,
            )
            return result

        batch = await self._sync_records(fetched.records, context)
        result.synced = batch.synced
        result.skipped = batch.skipped
        result.failed = len(batch.failed_ids)

        result.documents_dispatched = await self._attachments.dispatch_documents(
            batch.documents, source
        )

        if fetched.complete:
            result.deleted = await self._reconciler.reconcile_stale(
                batch.keep_ids, context, scope.category
            )
            result.reconciled = True
        else:
            logger.warning(
                PARTIAL_FETCH_WARNING,
                source=source.reference,
                pages_fetched=fetched.pages_fetched,
                records=len(fetched.records),
            )
            result.warnings.append(PARTIAL_FETCH_WARNING)

        logger.info(
            f"Synchronized {len(result.synced)} events to woo objects for {source.name} "
            f"and deleted {result.deleted} objects",
            skipped=result.skipped,
            failed=result.failed,
            documents_dispatched=result.documents_dispatched,
            reconciled=result.reconciled,
        )
        return result

    async def _sync_records(self, records: list[SourceRecord], context: SyncContext) -> SyncBatch:
        batch = SyncBatch()
        prepared = await self._prepare_records(records, context, batch)
        if not prepared:
            return batch

        store = self._reconciler.store
        async with store.transaction() as conn:
            for source_id, mapped in prepared:
                try:
                    async with store.transaction(conn) as savepoint:
                        await self._synchronizer.persist(
                            mapped, context, source_id, connection=savepoint, batch=batch
                        )
                except Exception as exc:
                    self._record_failure(batch, source_id, exc)

        return batch

    async def _prepare_records(
        self, records: list[SourceRecord], context: SyncContext, batch: SyncBatch
    ) -> list[tuple[str, Mapped]]:
        """Meeting fetch, gremium filter and mapping, before any transaction is opened."""
        prepared: list[tuple[str, Mapped]] = []

        for record in records:
            if record.get("id") in (None, ""):
                logger.warning("Skipping NotuBiz event without id")
                batch.record_skipped()
                continue

            source_id = str(record["id"])
            try:
                meeting = await self._fetcher.fetch_meeting_context(context, source_id)
                if not gremium_allowed(context.scope, meeting):
                    logger.info(GREMIUM_NOT_ALLOWED, source_id=source_id)
                    batch.record_skipped()
                    continue

                result = self._synchronizer.prepare(record, meeting, context)
            except Exception as exc:
                self._record_failure(batch, source_id, exc)
                continue

            if isinstance(result, Skipped):
                batch.record_skipped()
                continue
            prepared.append((source_id, result))

        return prepared

    @staticmethod
    def _record_failure(batch: SyncBatch, source_id: str, exc: Exception) -> None:
        logger.error(
            f"Something went wrong synchronizing sourceId: {source_id} with error: {exc}",
            source_id=source_id,
            error_type=type(exc).__name__,
        )
        batch.record_failed(source_id)


event_sync_service = EventSyncService()
