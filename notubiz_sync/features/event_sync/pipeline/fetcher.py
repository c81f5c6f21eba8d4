"""
Fetches NotuBiz events and their parent meetings.

Pagination is a sequential chain: each page is requested only after the
previous one said has_more_pages. A failing page ends the chain and the
records gathered so far come back flagged incomplete.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from notubiz_sync.features.event_sync.domain.errors import (
    NotFoundUpstream,
    ScopeMismatch,
    TransportFailure,
)
from notubiz_sync.features.event_sync.domain.models import (
    FetchResult,
    MeetingContext,
    SourceRecord,
)
from notubiz_sync.features.event_sync.resources import SyncContext
from notubiz_sync.infrastructure.observability.logging import get_logger
from notubiz_sync.services.notubiz_client import (
    NotubizClient,
    NotubizTransportError,
    notubiz_client,
)

logger = get_logger(__name__)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
WINDOW_YEARS = 10
MAX_PAGES = 500
MEETING_ENDPOINT = "/events/meetings/{event_id}"


def _years_before(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


class EventFetcher:
    """Reads events from the NotuBiz API for one SyncContext."""

    def __init__(
        self,
        client: NotubizClient | None = None,
        clock: Callable[[], datetime] | None = None,
        max_pages: int = MAX_PAGES,
    ):
        self._client = client or notubiz_client
        self._clock = clock or (lambda: datetime.now(UTC))
        self._max_pages = max_pages

    def build_batch_query(self, context: SyncContext, page: int) -> dict:
        scope = context.scope
        date_to = self._clock()
        date_from = _years_before(date_to, WINDOW_YEARS)

        query = {
            "format": "json",
            "page": page,
            "organisation_id": scope.organisation_id,
            "version": scope.version,
            "date_to": date_to.strftime(DATE_FORMAT),
            "date_from": date_from.strftime(DATE_FORMAT),
        }
        # Indexed keys, the way PHP's http_build_query encodes an array
        for index, gremium_id in enumerate(scope.gremia_ids or ()):
            query[f"gremia_ids[{index}]"] = gremium_id

        return query

    async def fetch_batch(self, context: SyncContext) -> FetchResult:
        """Fetch every page of events in the window, in page order."""
        source = context.source
        endpoint = context.scope.source_endpoint
        result = FetchResult()
        page = 1

        while True:
            try:
                payload = await self._client.get_json(
                    source, endpoint, self.build_batch_query(context, page)
                )
                events = payload.get("events", [])
                if not isinstance(events, list):
                    raise NotubizTransportError("Response 'events' is not a list")
            except NotubizTransportError as exc:
                message = f"Something went wrong fetching {source.url_for(endpoint)}: {exc}"
                logger.error(message, page=page, records_so_far=len(result.records))
                result.complete = False
                result.error = message
                return result

            result.records.extend(events)
            result.pages_fetched = page
            logger.debug("Fetched NotuBiz page", page=page, page_records=len(events))

            pagination = payload.get("pagination") or {}
            if pagination.get("has_more_pages") is not True:
                return result

            if page >= self._max_pages:
                message = (
                    f"Stopped fetching {source.url_for(endpoint)} after {page} pages, "
                    "the source still reports more pages"
                )
                logger.error(message, records_so_far=len(result.records))
                result.complete = False
                result.error = message
                return result
            page += 1

    async def fetch_one(self, context: SyncContext, event_id: str) -> SourceRecord:
        """
        Fetch a single event.

        Raises:
            NotFoundUpstream: the source does not know the event
            ScopeMismatch: the event belongs to another organisation
            TransportFailure: the source could not be reached or decoded
        """
        source = context.source
        endpoint = f"{context.scope.source_endpoint.rstrip('/')}/{event_id}"

        try:
            payload = await self._client.get_json(source, endpoint, {"format": "json"})
        except NotubizTransportError as exc:
            message = f"Something went wrong fetching {source.url_for(endpoint)}: {exc}"
            logger.error(message, source_id=event_id)
            if exc.is_not_found:
                raise NotFoundUpstream(message, source_id=event_id) from exc
            raise TransportFailure(message, source_id=event_id) from exc

        events = payload.get("event") or []
        if not events:
            raise NotFoundUpstream(
                f"NotuBiz Event {event_id} not found at {source.url_for(endpoint)}",
                source_id=event_id,
            )

        record = events[0]
        if str(record.get("organisation")) != str(context.scope.organisation_id):
            message = "Fetched Notubiz Event does not match the organisationId of the Action"
            logger.info(message, source_id=event_id)
            raise ScopeMismatch(message, source_id=event_id)

        return record

    async def fetch_meeting_context(
        self, context: SyncContext, event_id: str
    ) -> MeetingContext | None:
        """Fetch the parent meeting of an event. None on any failure."""
        source = context.source
        endpoint = MEETING_ENDPOINT.format(event_id=event_id)

        try:
            payload = await self._client.get_json(source, endpoint, {"format": "json"})
        except NotubizTransportError as exc:
            logger.error(
                f"Something went wrong fetching {source.url_for(endpoint)}: {exc}",
                source_id=event_id,
            )
            return None

        meeting = payload.get("meeting")
        return meeting if isinstance(meeting, dict) and meeting else None
