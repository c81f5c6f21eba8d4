"""
Per-record pipeline shared by the bulk run and the notification path:
enrich with custom fields and attachments, map, validate, upsert.
"""

from typing import Any

from notubiz_sync.features.event_sync.domain.models import (
    Mapped,
    MapResult,
    MeetingContext,
    Skipped,
    SourceRecord,
    SyncBatch,
    SyncScope,
    TargetObject,
)
from notubiz_sync.features.event_sync.pipeline.attachments import extract_documents
from notubiz_sync.features.event_sync.pipeline.mapping import MapperValidator
from notubiz_sync.features.event_sync.pipeline.reconciler import Reconciler
from notubiz_sync.features.event_sync.resources import SyncContext
from notubiz_sync.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GREMIUM_NOT_ALLOWED = (
    "Fetched Notubiz Event (Meeting) does not match one of the valid gremium id's "
    "configured in the Action"
)


def enrich(
    record: SourceRecord, meeting: MeetingContext | None, scope: SyncScope
) -> dict[str, Any]:
    """Copy of record with the scope's custom fields and the meeting's documents."""
    enriched = {**record, **scope.custom_fields()}
    enriched["bijlagen"] = extract_documents(meeting, record)
    return enriched


def gremium_allowed(scope: SyncScope, meeting: MeetingContext | None) -> bool:
    if not scope.gremia_ids or meeting is None:
        return True

    gremium = meeting.get("gremium") or {}
    return str(gremium.get("id")) in scope.gremia_ids


class RecordSynchronizer:
    def __init__(
        self,
        reconciler: Reconciler | None = None,
        mapper: MapperValidator | None = None,
    ):
        self._reconciler = reconciler or Reconciler()
        self._mapper = mapper or MapperValidator()

    def prepare(
        self, record: SourceRecord, meeting: MeetingContext | None, context: SyncContext
    ) -> MapResult:
        """Enrich, map and validate one record. No I/O."""
        return self._mapper.map_and_validate(enrich(record, meeting, context.scope), context)

    async def persist(
        self,
        mapped: Mapped,
        context: SyncContext,
        source_id: str,
        *,
        connection: Any = None,
        batch: SyncBatch | None = None,
    ) -> TargetObject:
        return await self._reconciler.upsert(
            mapped, context, source_id, connection=connection, batch=batch
        )

    async def sync(
        self,
        record: SourceRecord,
        meeting: MeetingContext | None,
        context: SyncContext,
        *,
        connection: Any = None,
        batch: SyncBatch | None = None,
    ) -> TargetObject | Skipped:
        result = self.prepare(record, meeting, context)
        if isinstance(result, Skipped):
            if batch is not None:
                batch.record_skipped()
            return result

        return await self.persist(
            result, context, str(record.get("id")), connection=connection, batch=batch
        )
