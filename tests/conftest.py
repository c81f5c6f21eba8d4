import copy
import uuid
from contextlib import asynccontextmanager

import httpx
import pytest
import pytest_asyncio

from notubiz_sync.features.event_sync.domain.models import SyncLink, SyncScope, TargetObject
from notubiz_sync.features.event_sync.domain.publication import Publicatie
from notubiz_sync.features.event_sync.pipeline.attachments import AttachmentDispatcher
from notubiz_sync.features.event_sync.pipeline.fetcher import EventFetcher
from notubiz_sync.features.event_sync.pipeline.reconciler import Reconciler
from notubiz_sync.features.event_sync.resources import (
    NOTUBIZ_EVENT_TO_WOO,
    ResourceRegistry,
    SyncContext,
)
from notubiz_sync.services.notubiz_client import NotubizClient, Source
from tests.factories import API_LOCATION, FIXED_NOW, ORGANISATION_ID, SCHEMA_REF, SOURCE_REF


class FakeRedis:
    def __init__(self):
        self.store: dict[str, str] = {}
        self.published: list[tuple[str, str]] = []

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        self.store[key] = value
        return True

    async def delete(self, key: str) -> bool:
        return self.store.pop(key, None) is not None

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    async def ping(self) -> bool:
        return True


class FakeObjectStore:
    """In-memory object store; a failing transaction block restores the previous state."""

    def __init__(self):
        self.links: dict[tuple[str, str, str], SyncLink] = {}
        self.objects: dict[str, TargetObject] = {}
        self.cached: dict[str, dict] = {}
        self.failing_ids: set[str] = set()
        self.commits = 0
        self.depth = 0

    @asynccontextmanager
    async def transaction(self, connection=None):
        snapshot = (copy.deepcopy(self.links), copy.deepcopy(self.objects))
        self.depth += 1
        try:
            yield connection or "fake-connection"
        except BaseException:
            self.links, self.objects = snapshot
            raise
        finally:
            self.depth -= 1
        if connection is None:
            self.commits += 1

    async def find_link_by_source(self, source, schema, source_id, *, connection=None):
        return self.links.get((source, schema, source_id))

    async def get_object(self, link, *, connection=None):
        return self.objects.get(link.object_id)

    async def upsert_by_source_link(
        self, source, schema, source_id, data, category, *, connection=None
    ):
        if source_id in self.failing_ids:
            raise RuntimeError("disk full")

        link = self.links.get((source, schema, source_id))
        if link is None:
            link = SyncLink(
                id=str(uuid.uuid4()),
                source=source,
                schema=schema,
                source_id=source_id,
                object_id=str(uuid.uuid4()),
            )
            self.links[(source, schema, source_id)] = link

        target = TargetObject(
            id=link.object_id,
            schema=schema,
            category=category,
            data=copy.deepcopy(data),
            source_id=source_id,
        )
        self.objects[link.object_id] = target
        return target

    async def find_links_for_category(self, source, schema, category, *, connection=None):
        return [
            link
            for link in self.links.values()
            if link.source == source
            and link.schema == schema
            and self.objects[link.object_id].category == category
        ]

    async def delete(self, link, *, connection=None):
        self.links.pop((link.source, link.schema, link.source_id), None)
        self.cached.pop(link.object_id, None)
        return self.objects.pop(link.object_id, None) is not None

    async def cache(self, target):
        self.cached[target.id] = target.to_dict()
        return True

    def source_ids(self) -> set[str]:
        return {link.source_id for link in self.links.values()}


class FakeDispatcher:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    async def dispatch(self, event_name: str, payload: dict) -> None:
        self.events.append((event_name, payload))


class FakeNotubizApi:
    """Serves /events pages, single events and meetings for httpx.MockTransport."""

    def __init__(self):
        self.pages: list[dict] = []
        self.failing_pages: set[int] = set()
        self.events: dict[str, dict] = {}
        self.meetings: dict[str, dict] = {}
        self.failing_events: set[str] = set()
        self.requests: list[httpx.Request] = []

    def set_events(self, *pages: list[dict]) -> None:
        self.pages = [
            {"events": events, "pagination": {"has_more_pages": index < len(pages) - 1}}
            for index, events in enumerate(pages)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.startswith("/events/meetings/"):
            meeting = self.meetings.get(path.rsplit("/", 1)[-1])
            if meeting is None:
                return httpx.Response(404, json={"message": "Meeting not found"})
            return httpx.Response(200, json={"meeting": meeting})

        if path == "/events":
            page = int(request.url.params.get("page", "1"))
            if page in self.failing_pages or page > len(self.pages):
                return httpx.Response(503, json={"message": "Service unavailable"})
            return httpx.Response(200, json=self.pages[page - 1])

        event_id = path.rsplit("/", 1)[-1]
        if event_id in self.failing_events:
            return httpx.Response(503, json={"message": "Service unavailable"})
        if event_id in self.events:
            return httpx.Response(200, json={"event": [self.events[event_id]]})
        return httpx.Response(404, json={"message": "Event not found"})

    def requested_pages(self) -> list[int]:
        return [
            int(request.url.params["page"])
            for request in self.requests
            if request.url.path == "/events"
        ]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def notubiz_api():
    return FakeNotubizApi()


@pytest_asyncio.fixture
async def notubiz_client(notubiz_api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(notubiz_api.handler)) as client:
        yield NotubizClient(http_client=client, backoff_factor=0)


@pytest.fixture
def source():
    return Source(reference=SOURCE_REF, location=API_LOCATION)


@pytest.fixture
def scope():
    return SyncScope(
        source_ref=SOURCE_REF,
        schema_ref=SCHEMA_REF,
        mapping_ref=NOTUBIZ_EVENT_TO_WOO.reference,
        source_endpoint="/events",
        organisation_id=ORGANISATION_ID,
        oin="00000001234567890000",
        organisatie="Gemeente Voorbeeld",
    )


@pytest.fixture
def registry(source):
    return ResourceRegistry(
        sources={SOURCE_REF: source},
        schemas={SCHEMA_REF: Publicatie},
        mappings={NOTUBIZ_EVENT_TO_WOO.reference: NOTUBIZ_EVENT_TO_WOO},
    )


@pytest.fixture
def sync_context(registry, scope) -> SyncContext:
    return registry.resolve(scope)


@pytest.fixture
def fetcher(notubiz_client):
    return EventFetcher(client=notubiz_client, clock=lambda: FIXED_NOW)


@pytest.fixture
def reconciler(object_store, fetcher):
    return Reconciler(store=object_store, fetcher=fetcher)


@pytest.fixture
def attachment_dispatcher(dispatcher):
    return AttachmentDispatcher(dispatcher=dispatcher)
