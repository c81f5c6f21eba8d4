import dataclasses

from notubiz_sync.features.event_sync.domain.models import Mapped, Skipped
from notubiz_sync.features.event_sync.pipeline.reconciler import Reconciler
from notubiz_sync.features.event_sync.pipeline.record_sync import (
    RecordSynchronizer,
    enrich,
    gremium_allowed,
)
from tests.factories import make_event, make_meeting


def test_enrich_merges_custom_fields_and_meeting_documents(scope):
    meeting = make_meeting(documents=[{"id": "m1"}], agenda_documents=[[{"id": "a1"}]])

    enriched = enrich(make_event(1), meeting, scope)

    assert enriched["categorie"] == scope.category
    assert enriched["organisatie"]["naam"] == "Gemeente Voorbeeld"
    assert enriched["autoPublish"] is True
    assert enriched["bijlagen"] == [{"id": "m1"}, {"id": "a1"}]


def test_enrich_does_not_mutate_record(scope):
    record = make_event(1)

    enrich(record, None, scope)

    assert "bijlagen" not in record
    assert "categorie" not in record


def test_gremium_allowed_without_configured_gremia(scope):
    assert gremium_allowed(scope, make_meeting(gremium_id=99)) is True


def test_gremium_allowed_compares_as_strings(scope):
    scope = dataclasses.replace(scope, gremia_ids=("12",))

    assert gremium_allowed(scope, make_meeting(gremium_id=12)) is True
    assert gremium_allowed(scope, make_meeting(gremium_id=14)) is False
    assert gremium_allowed(scope, {"documents": []}) is False


def test_gremium_allowed_without_meeting(scope):
    scope = dataclasses.replace(scope, gremia_ids=("12",))

    assert gremium_allowed(scope, None) is True


def test_prepare_maps_without_touching_the_store(object_store, sync_context):
    synchronizer = RecordSynchronizer(reconciler=Reconciler(store=object_store))

    result = synchronizer.prepare(make_event(7), make_meeting(), sync_context)

    assert isinstance(result, Mapped)
    assert result.data["kenmerk"] == "7"
    assert object_store.links == {}


def test_prepare_skips_invalid_record(object_store, sync_context):
    synchronizer = RecordSynchronizer(reconciler=Reconciler(store=object_store))

    result = synchronizer.prepare(make_event(7, title=None), None, sync_context)

    assert isinstance(result, Skipped)
    assert result.errors
