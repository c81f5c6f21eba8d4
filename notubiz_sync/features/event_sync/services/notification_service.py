"""
Handles single-event change notifications from NotuBiz.

A notification is routed on its "actie": delete goes through the
reconciler's guarded delete, anything else re-fetches the event and its
meeting and syncs that one record. Every failure comes back as a
rejected NotificationOutcome; nothing is raised to the caller.
"""

from typing import Any

from notubiz_sync.db.helpers import DatabaseError
from notubiz_sync.features.event_sync.domain.errors import (
    EventSyncError,
    MeetingContextUnavailable,
    ScopeMismatch,
    ValidationFailure,
)
from notubiz_sync.features.event_sync.domain.models import (
    NotificationOutcome,
    Skipped,
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

DELETE_ACTION = "delete"
VALIDATION_FAILED = "Validation errors, check warning logs for more info"
STORAGE_FAILED = "Failed storing the synchronized object, check error logs for more info"


class NotificationService:
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

    async def handle(
        self, payload: dict[str, Any], scope: SyncScope | None = None
    ) -> NotificationOutcome:
        action = payload.get("actie")
        resource_id = payload.get("resourceId")
        if resource_id in (None, ""):
            return NotificationOutcome.rejected("Notification is missing a resourceId")
        resource_id = str(resource_id)

        try:
            context = self._registry.resolve(scope or SyncScope.from_settings())

            if action == DELETE_ACTION:
                logger.info("Handling NotuBiz delete notification", source_id=resource_id)
                message = await self._reconciler.delete_one(context, resource_id)
                return NotificationOutcome.done(message)

            return await self._sync_one(context, resource_id, payload.get("resourceUrl"))
        except EventSyncError as exc:
            logger.info(
                "NotuBiz notification rejected",
                actie=action,
                source_id=resource_id,
                reason=exc.message,
                error_type=type(exc).__name__,
            )
            return NotificationOutcome.rejected(exc.message)
        except DatabaseError as exc:
            logger.error(
                "NotuBiz notification failed on the object store",
                actie=action,
                source_id=resource_id,
                operation=exc.operation,
                error=str(exc),
            )
            return NotificationOutcome.rejected(STORAGE_FAILED)

    async def _sync_one(
        self, context: SyncContext, resource_id: str, resource_url: str | None
    ) -> NotificationOutcome:
        logger.info(f"Fetching object {resource_url}", source_id=resource_id)

        record = await self._fetcher.fetch_one(context, resource_id)

        meeting = await self._fetcher.fetch_meeting_context(context, resource_id)
        if not meeting:
            raise MeetingContextUnavailable(
                f"Failed fetching meeting context for event {resource_id}, "
                "check error logs for more info",
                source_id=resource_id,
            )

        if not gremium_allowed(context.scope, meeting):
            raise ScopeMismatch(GREMIUM_NOT_ALLOWED, source_id=resource_id)

        # The single-event endpoint omits creation_date; the meeting carries it
        record = {**record, "id": resource_id, "creation_date": meeting.get("creation_date")}

        store = self._reconciler.store
        async with store.transaction() as conn:
            result = await self._synchronizer.sync(record, meeting, context, connection=conn)
            if isinstance(result, Skipped):
                raise ValidationFailure(
                    VALIDATION_FAILED, list(result.errors), source_id=resource_id
                )

        await self._attachments.dispatch_documents(result.attachments, context.source)

        logger.info(f"Synchronized Event {resource_url} to woo object", source_id=resource_id)
        return NotificationOutcome.done("Object synchronized", result.to_dict())


notification_service = NotificationService()
