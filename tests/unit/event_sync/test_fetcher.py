import dataclasses
from datetime import UTC, datetime

import pytest

from notubiz_sync.features.event_sync.domain.errors import (
    NotFoundUpstream,
    ScopeMismatch,
    TransportFailure,
)
from notubiz_sync.features.event_sync.pipeline.fetcher import EventFetcher, _years_before
from tests.factories import FIXED_NOW, make_event, make_meeting


@pytest.mark.asyncio
async def test_build_batch_query_uses_ten_year_window(fetcher, sync_context):
    query = fetcher.build_batch_query(sync_context, page=3)

    assert query == {
        "format": "json",
        "page": 3,
        "organisation_id": "686",
        "version": "1.21.1",
        "date_to": "2024-03-15 12:30:00",
        "date_from": "2014-03-15 12:30:00",
    }


@pytest.mark.asyncio
async def test_build_batch_query_includes_gremia_ids(fetcher, sync_context):
    scope = dataclasses.replace(sync_context.scope, gremia_ids=("12", "14"))
    context = dataclasses.replace(sync_context, scope=scope)

    query = fetcher.build_batch_query(context, page=1)

    assert query["gremia_ids[0]"] == "12"
    assert query["gremia_ids[1]"] == "14"


def test_years_before_handles_leap_day():
    leap_day = datetime(2024, 2, 29, 8, 0, tzinfo=UTC)
    assert _years_before(leap_day, 10) == datetime(2014, 2, 28, 8, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_fetch_batch_concatenates_pages_in_order(fetcher, sync_context, notubiz_api):
    notubiz_api.set_events(
        [make_event(1), make_event(2)],
        [make_event(3)],
        [make_event(4)],
    )

    result = await fetcher.fetch_batch(sync_context)

    assert result.complete is True
    assert result.pages_fetched == 3
    assert [record["id"] for record in result.records] == [1, 2, 3, 4]
    assert notubiz_api.requested_pages() == [1, 2, 3]


@pytest.mark.asyncio
async def test_fetch_batch_sends_gremia_ids_as_indexed_array(fetcher, sync_context, notubiz_api):
    scope = dataclasses.replace(sync_context.scope, gremia_ids=("12", "14"))
    context = dataclasses.replace(sync_context, scope=scope)
    notubiz_api.set_events([make_event(1)])

    await fetcher.fetch_batch(context)

    params = notubiz_api.requests[0].url.params
    assert params["gremia_ids[0]"] == "12"
    assert params["gremia_ids[1]"] == "14"
    assert "gremia_ids[]" not in params
    assert params["organisation_id"] == "686"


@pytest.mark.asyncio
async def test_fetch_batch_stops_at_page_limit(notubiz_client, sync_context, notubiz_api):
    notubiz_api.set_events([make_event(1)], [make_event(2)], [make_event(3)])
    fetcher = EventFetcher(client=notubiz_client, clock=lambda: FIXED_NOW, max_pages=2)

    result = await fetcher.fetch_batch(sync_context)

    assert [record["id"] for record in result.records] == [1, 2]
    assert result.complete is False
    assert result.pages_fetched == 2
    assert "after 2 pages" in result.error
    assert notubiz_api.requested_pages() == [1, 2]


@pytest.mark.asyncio
async def test_fetch_batch_failing_page_returns_partial_result(fetcher, sync_context, notubiz_api):
    notubiz_api.set_events([make_event(1)], [make_event(2)], [make_event(3)])
    notubiz_api.failing_pages.add(2)

    result = await fetcher.fetch_batch(sync_context)

    assert result.complete is False
    assert result.pages_fetched == 1
    assert [record["id"] for record in result.records] == [1]
    assert "Something went wrong fetching https://api.notubiz.test/events" in result.error
    # Page 3 is never requested once page 2 failed
    assert 3 not in notubiz_api.requested_pages()


@pytest.mark.asyncio
async def test_fetch_batch_stops_without_pagination_block(fetcher, sync_context, notubiz_api):
    notubiz_api.pages = [{"events": [make_event(1)]}]

    result = await fetcher.fetch_batch(sync_context)

    assert result.complete is True
    assert len(result.records) == 1


@pytest.mark.asyncio
async def test_fetch_one_returns_first_event(fetcher, sync_context, notubiz_api):
    notubiz_api.events["42"] = make_event(42, title="Commissie")

    record = await fetcher.fetch_one(sync_context, "42")

    assert record["title"] == "Commissie"


@pytest.mark.asyncio
async def test_fetch_one_not_found(fetcher, sync_context):
    with pytest.raises(NotFoundUpstream):
        await fetcher.fetch_one(sync_context, "404")


@pytest.mark.asyncio
async def test_fetch_one_transport_failure(fetcher, sync_context, notubiz_api):
    notubiz_api.failing_events.add("42")

    with pytest.raises(TransportFailure):
        await fetcher.fetch_one(sync_context, "42")


@pytest.mark.asyncio
async def test_fetch_one_organisation_mismatch(fetcher, sync_context, notubiz_api):
    notubiz_api.events["42"] = make_event(42, organisation="999")

    with pytest.raises(ScopeMismatch) as exc_info:
        await fetcher.fetch_one(sync_context, "42")

    assert exc_info.value.message == (
        "Fetched Notubiz Event does not match the organisationId of the Action"
    )


@pytest.mark.asyncio
async def test_fetch_meeting_context(fetcher, sync_context, notubiz_api):
    notubiz_api.meetings["42"] = make_meeting(gremium_id=14)

    meeting = await fetcher.fetch_meeting_context(sync_context, "42")

    assert meeting["gremium"]["id"] == 14


@pytest.mark.asyncio
async def test_fetch_meeting_context_failure_returns_none(fetcher, sync_context):
    assert await fetcher.fetch_meeting_context(sync_context, "42") is None

