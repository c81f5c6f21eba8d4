from notubiz_sync.features.event_sync.domain.models import Mapped, Skipped
from notubiz_sync.features.event_sync.domain.publication import Publicatie
from notubiz_sync.features.event_sync.pipeline.mapping import (
    FieldMapping,
    MapperValidator,
    MappingEngine,
    SchemaValidator,
)
from notubiz_sync.features.event_sync.pipeline.record_sync import enrich
from tests.factories import make_event, make_meeting


def test_mapping_engine_resolves_dotted_paths_and_list_indices():
    mapping = FieldMapping(
        reference="test",
        mapping={
            "titel": "title",
            "metadata.start": "plannings.0.start_date",
            "metadata.missing": "plannings.5.start_date",
        },
    )

    output = MappingEngine().map(mapping, make_event(7))

    assert output == {
        "titel": "Raadsvergadering",
        "metadata": {"start": "2024-02-01 19:30:00"},
    }


def test_mapping_engine_casts_values():
    mapping = FieldMapping(
        reference="test",
        mapping={"kenmerk": "id", "autoPublish": "flag"},
        cast={"kenmerk": "string", "autoPublish": "bool"},
    )

    output = MappingEngine().map(mapping, {"id": 7, "flag": "false"})

    assert output == {"kenmerk": "7", "autoPublish": False}


def test_mapping_engine_pass_through_keeps_source_keys():
    mapping = FieldMapping(reference="test", mapping={"titel": "title"}, pass_through=True)

    output = MappingEngine().map(mapping, {"title": "A", "extra": 1})

    assert output == {"title": "A", "extra": 1, "titel": "A"}


def test_schema_validator_reports_missing_fields():
    errors = SchemaValidator().validate({"categorie": "x"}, Publicatie)

    assert "titel: Field required" in errors
    assert "publicatiedatum: Field required" in errors


def test_schema_validator_patch_ignores_missing_fields():
    assert SchemaValidator().validate({"categorie": "x"}, Publicatie, "PATCH") is None


def test_event_maps_to_valid_publication(sync_context):
    documents = [{"id": 1, "url": "https://api.notubiz.test/document/1"}]
    record = enrich(make_event(7), make_meeting(documents=documents), sync_context.scope)

    result = MapperValidator().map_and_validate(record, sync_context)

    assert isinstance(result, Mapped)
    assert result.data["kenmerk"] == "7"
    assert result.data["titel"] == "Raadsvergadering"
    assert result.data["publicatiedatum"] == "2024-01-10 09:00:00"
    assert result.data["categorie"] == "Vergaderstukken decentrale overheden"
    assert result.data["organisatie"] == {
        "oin": "00000001234567890000",
        "naam": "Gemeente Voorbeeld",
    }
    assert result.data["autoPublish"] is True
    assert result.data["bijlagen"] == documents
    assert result.data["metadata"]["notubizOrganisatie"] == "686"


def test_invalid_event_is_skipped_with_reason(sync_context):
    record = enrich(make_event(8, title=None), None, sync_context.scope)

    result = MapperValidator().map_and_validate(record, sync_context)

    assert isinstance(result, Skipped)
    assert result.reason.startswith("Validation errors: ")
    assert "titel: Field required" in result.errors
