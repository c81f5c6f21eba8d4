"""
Resolves the references in a SyncScope (source, schema, mapping) into the
objects the pipeline works with, and bundles them into the SyncContext
that is threaded through every call of a run.
"""

from dataclasses import dataclass

from pydantic import BaseModel

from notubiz_sync.config import settings
from notubiz_sync.features.event_sync.domain.errors import ConfigurationError
from notubiz_sync.features.event_sync.domain.models import SyncScope
from notubiz_sync.features.event_sync.domain.publication import Publicatie
from notubiz_sync.features.event_sync.pipeline.mapping import FieldMapping
from notubiz_sync.infrastructure.observability.logging import get_logger
from notubiz_sync.services.notubiz_client import Source

logger = get_logger(__name__)

NOTUBIZ_EVENT_TO_WOO = FieldMapping(
    reference=settings.WOO_MAPPING_REF,
    mapping={
        "kenmerk": "id",
        "titel": "title",
        "beschrijving": "description",
        "samenvatting": "description",
        "publicatiedatum": "creation_date",
        "categorie": "categorie",
        "organisatie.oin": "organisatie.oin",
        "organisatie.naam": "organisatie.naam",
        "autoPublish": "autoPublish",
        "bijlagen": "bijlagen",
        "metadata.vergaderdatum": "plannings.0.start_date",
        "metadata.laatstGewijzigd": "last_modified",
        "metadata.notubizOrganisatie": "organisation",
    },
    cast={
        "kenmerk": "string",
        "autoPublish": "bool",
        "metadata.notubizOrganisatie": "string",
    },
)


@dataclass(frozen=True, slots=True)
class SyncContext:
    """Everything one run needs, resolved once up front."""

    scope: SyncScope
    source: Source
    schema: type[BaseModel]
    mapping: FieldMapping

    @property
    def schema_ref(self) -> str:
        return self.scope.schema_ref


class ResourceRegistry:
    """In-process registry of known sources, schemas and mappings."""

    def __init__(
        self,
        sources: dict[str, Source] | None = None,
        schemas: dict[str, type[BaseModel]] | None = None,
        mappings: dict[str, FieldMapping] | None = None,
    ):
        self._sources = (
            sources
            if sources is not None
            else {
                settings.NOTUBIZ_SOURCE_REF: Source(
                    reference=settings.NOTUBIZ_SOURCE_REF,
                    location=settings.notubiz_base_url(),
                )
            }
        )
        self._schemas = schemas if schemas is not None else {settings.WOO_SCHEMA_REF: Publicatie}
        self._mappings = (
            mappings
            if mappings is not None
            else {NOTUBIZ_EVENT_TO_WOO.reference: NOTUBIZ_EVENT_TO_WOO}
        )

    def resolve(self, scope: SyncScope) -> SyncContext:
        source = self._sources.get(scope.source_ref)
        schema = self._schemas.get(scope.schema_ref)
        mapping = self._mappings.get(scope.mapping_ref)

        if source is None or schema is None or mapping is None:
            message = (
                f"{scope.source_ref}, {scope.schema_ref} or {scope.mapping_ref} not found, "
                "ending sync NotuBiz"
            )
            logger.error(message)
            raise ConfigurationError(message)

        return SyncContext(scope=scope, source=source, schema=schema, mapping=mapping)


resource_registry = ResourceRegistry()
