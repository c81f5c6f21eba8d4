"""
Domain models for the NotuBiz event sync.

Raw source records and meeting contexts stay plain dicts (they are only
read and passed on); everything the pipeline produces or persists has a
dataclass here.
"""

from dataclasses import dataclass, field
from typing import Any, Literal

from notubiz_sync.config import settings
from notubiz_sync.features.event_sync.domain.errors import ConfigurationError

SourceRecord = dict[str, Any]
MeetingContext = dict[str, Any]

DEFAULT_CATEGORY = "Vergaderstukken decentrale overheden"
DEFAULT_NOTUBIZ_VERSION = "1.21.1"


@dataclass(frozen=True, slots=True)
class SyncScope:
    """Configuration bundle for one run. Never mutated during the run."""

    source_ref: str
    schema_ref: str
    mapping_ref: str
    source_endpoint: str
    organisation_id: str
    gremia_ids: tuple[str, ...] | None = None
    oin: str | None = None
    organisatie: str | None = None
    auto_publish: bool = True
    version: str = DEFAULT_NOTUBIZ_VERSION
    category: str = DEFAULT_CATEGORY

    @classmethod
    def from_settings(cls) -> "SyncScope":
        """Default scope from environment settings."""
        if not settings.NOTUBIZ_ORGANISATION_ID:
            raise ConfigurationError("NOTUBIZ_ORGANISATION_ID is not configured")

        gremia_ids = settings.gremia_ids()
        return cls(
            source_ref=settings.NOTUBIZ_SOURCE_REF,
            schema_ref=settings.WOO_SCHEMA_REF,
            mapping_ref=settings.WOO_MAPPING_REF,
            source_endpoint=settings.NOTUBIZ_SOURCE_ENDPOINT,
            organisation_id=str(settings.NOTUBIZ_ORGANISATION_ID),
            gremia_ids=tuple(gremia_ids) if gremia_ids else None,
            oin=settings.WOO_OIN,
            organisatie=settings.WOO_ORGANISATIE,
            auto_publish=settings.WOO_AUTO_PUBLISH,
            version=settings.NOTUBIZ_VERSION,
            category=settings.WOO_CATEGORY,
        )

    @classmethod
    def from_configuration(cls, configuration: dict[str, Any]) -> "SyncScope":
        """
        Build a scope from an action configuration (camelCase keys).

        Missing references fall back to the settings; sourceEndpoint and
        organisationId are required.
        """
        missing = [
            key
            for key in ("sourceEndpoint", "organisationId")
            if configuration.get(key) in (None, "")
        ]
        if missing:
            raise ConfigurationError(
                f"Sync NotuBiz configuration is missing required keys: {', '.join(missing)}"
            )

        gremia_ids = configuration.get("gremiaIds")
        if isinstance(gremia_ids, str | int):
            gremia_ids = [gremia_ids]

        return cls(
            source_ref=configuration.get("source") or settings.NOTUBIZ_SOURCE_REF,
            schema_ref=configuration.get("schema") or settings.WOO_SCHEMA_REF,
            mapping_ref=configuration.get("mapping") or settings.WOO_MAPPING_REF,
            source_endpoint=configuration["sourceEndpoint"],
            organisation_id=str(configuration["organisationId"]),
            gremia_ids=tuple(str(gid) for gid in gremia_ids) if gremia_ids else None,
            oin=configuration.get("oin"),
            organisatie=configuration.get("organisatie"),
            auto_publish=configuration.get("autoPublish", True),
            version=configuration.get("notubizVersion") or DEFAULT_NOTUBIZ_VERSION,
            category=configuration.get("categorie") or DEFAULT_CATEGORY,
        )

    def custom_fields(self) -> dict[str, Any]:
        """Fixed fields stamped onto every record before mapping."""
        return {
            "organisatie": {
                "oin": self.oin,
                "naam": self.organisatie,
            },
            "categorie": self.category,
            "autoPublish": self.auto_publish,
        }


@dataclass(frozen=True, slots=True)
class SyncLink:
    """Durable (source, schema, source_id) -> object association."""

    id: str
    source: str
    schema: str
    source_id: str
    object_id: str


@dataclass(slots=True)
class TargetObject:
    """A persisted publication, owned by its sync link."""

    id: str
    schema: str
    category: str | None
    data: dict[str, Any]
    source_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, **self.data}

    @property
    def attachments(self) -> list[dict[str, Any]]:
        return list(self.data.get("bijlagen") or [])


@dataclass(frozen=True, slots=True)
class Mapped:
    """Record mapped and validated, ready for upsert."""

    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Skipped:
    """Record left out of the run, with the reason."""

    reason: str
    errors: tuple[str, ...] = ()


MapResult = Mapped | Skipped


@dataclass(slots=True)
class FetchResult:
    """Outcome of a paginated fetch. complete=False means a page failed."""

    records: list[SourceRecord] = field(default_factory=list)
    complete: bool = True
    pages_fetched: int = 0
    error: str | None = None


@dataclass(slots=True)
class SyncBatch:
    """Accumulator for one bulk run."""

    synced: list[TargetObject] = field(default_factory=list)
    synced_ids: set[str] = field(default_factory=set)
    failed_ids: set[str] = field(default_factory=set)
    skipped: int = 0
    documents: list[dict[str, Any]] = field(default_factory=list)

    def record_synced(self, target: TargetObject, source_id: str) -> None:
        self.synced.append(target)
        self.synced_ids.add(source_id)
        self.documents.extend(target.attachments)

    def record_skipped(self) -> None:
        self.skipped += 1

    def record_failed(self, source_id: str) -> None:
        self.failed_ids.add(source_id)

    @property
    def keep_ids(self) -> set[str]:
        """Source ids whose objects the stale-delete pass must not touch."""
        return self.synced_ids | self.failed_ids


@dataclass(slots=True)
class SyncRunResult:
    """Summary of one bulk run, returned to the caller and logged."""

    source_name: str
    fetched: int = 0
    synced: list[TargetObject] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0
    deleted: int = 0
    documents_dispatched: int = 0
    fetch_complete: bool = True
    reconciled: bool = False
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_name,
            "fetched": self.fetched,
            "synced": len(self.synced),
            "skipped": self.skipped,
            "failed": self.failed,
            "deleted": self.deleted,
            "documents_dispatched": self.documents_dispatched,
            "fetch_complete": self.fetch_complete,
            "reconciled": self.reconciled,
            "warnings": self.warnings,
            "objects": [target.to_dict() for target in self.synced],
        }


@dataclass(frozen=True, slots=True)
class NotificationOutcome:
    """Result of handling one change notification."""

    status: Literal["done", "rejected"]
    message: str | None = None
    object: dict[str, Any] | None = None

    @classmethod
    def done(cls, message: str, obj: dict[str, Any] | None = None) -> "NotificationOutcome":
        return cls(status="done", message=message, object=obj)

    @classmethod
    def rejected(cls, message: str) -> "NotificationOutcome":
        return cls(status="rejected", message=message)

    def to_response(self) -> dict[str, Any]:
        if self.object is not None:
            return self.object
        return {"Message": self.message}
