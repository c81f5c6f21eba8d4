"""
Attachment (bijlagen) extraction and fan-out.

Documents are passed through as-is, duplicates included; each one becomes
its own document-created event.
"""

from typing import Any, Protocol

from notubiz_sync.features.event_sync.domain.models import MeetingContext
from notubiz_sync.infrastructure.events.dispatcher import event_dispatcher
from notubiz_sync.infrastructure.observability.logging import get_logger
from notubiz_sync.services.notubiz_client import Source

logger = get_logger(__name__)

DOCUMENT_CREATED_EVENT = "woo.openwoo.document.created"


class EventDispatcher(Protocol):
    async def dispatch(self, event_name: str, payload: dict[str, Any]) -> None: ...


def extract_documents(
    meeting: MeetingContext | None, result: dict[str, Any] | None = None
) -> list[dict[str, Any]]:
    """Meeting documents, then every agenda item's documents, then the result's own."""
    documents: list[dict[str, Any]] = []

    if meeting:
        documents.extend(meeting.get("documents") or [])
        for agenda_item in meeting.get("agenda_items") or []:
            documents.extend(agenda_item.get("documents") or [])

    if result:
        documents.extend(result.get("bijlagen") or [])

    return documents


class AttachmentDispatcher:
    """Forwards each document to the event bus, tagged with its source."""

    def __init__(self, dispatcher: EventDispatcher | None = None):
        self._dispatcher = dispatcher or event_dispatcher

    async def dispatch_documents(self, documents: list[dict[str, Any]], source: Source) -> int:
        for document in documents:
            await self._dispatcher.dispatch(
                DOCUMENT_CREATED_EVENT,
                {"document": document, "source": source.reference},
            )

        if documents:
            logger.info(
                "Dispatched document events",
                document_count=len(documents),
                source=source.reference,
            )
        return len(documents)
