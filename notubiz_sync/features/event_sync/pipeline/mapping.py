"""
Field mapping and schema validation.

MappingEngine applies a declarative FieldMapping (dotted target path ->
dotted source path) to a raw record. SchemaValidator checks the result
against a pydantic model. MapperValidator glues the two together and
turns the outcome into Mapped | Skipped so a bad record never aborts a
batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from notubiz_sync.features.event_sync.domain.models import Mapped, MapResult, Skipped
from notubiz_sync.infrastructure.observability.logging import get_logger

if TYPE_CHECKING:
    from notubiz_sync.features.event_sync.resources import SyncContext

logger = get_logger(__name__)

_MISSING = object()


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Declarative transformation from source shape to target shape."""

    reference: str
    mapping: dict[str, str]
    cast: dict[str, str] = field(default_factory=dict)
    pass_through: bool = False


def _resolve(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


def _assign(output: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    target = output
    for part in parts[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            nested = {}
            target[part] = nested
        target = nested
    target[parts[-1]] = value


def _cast(value: Any, cast: str) -> Any:
    if value is None:
        return None
    if cast == "string":
        return str(value)
    if cast == "int":
        return int(value)
    if cast == "bool":
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "ja")
        return bool(value)
    raise ValueError(f"Unknown cast '{cast}'")


class MappingEngine:
    """Pure transform, no side effects."""

    def map(self, mapping: FieldMapping, data: dict[str, Any]) -> dict[str, Any]:
        output: dict[str, Any] = dict(data) if mapping.pass_through else {}

        for target_path, source_path in mapping.mapping.items():
            value = _resolve(data, source_path)
            if value is _MISSING:
                continue
            if target_path in mapping.cast:
                value = _cast(value, mapping.cast[target_path])
            _assign(output, target_path, value)

        return output


class SchemaValidator:
    """Validates mapped data against a pydantic schema model."""

    def validate(
        self, data: dict[str, Any], schema: type[BaseModel], operation: str = "POST"
    ) -> list[str] | None:
        """
        Returns a list of error messages, or None when the data is valid.

        PATCH only checks the fields that are present.
        """
        try:
            schema.model_validate(data)
        except ValidationError as exc:
            errors = [
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in exc.errors()
                if not (operation == "PATCH" and error["type"] == "missing")
            ]
            return errors or None
        return None


class MapperValidator:
    """Map then validate; any rejection becomes a Skipped result."""

    def __init__(
        self,
        engine: MappingEngine | None = None,
        validator: SchemaValidator | None = None,
    ):
        self._engine = engine or MappingEngine()
        self._validator = validator or SchemaValidator()

    def map_and_validate(self, record: dict[str, Any], context: SyncContext) -> MapResult:
        source_id = str(record.get("id"))
        try:
            mapped = self._engine.map(context.mapping, record)
        except (TypeError, ValueError) as exc:
            logger.warning("SyncNotubiz mapping failed", source_id=source_id, error=str(exc))
            return Skipped(reason=f"Mapping failed: {exc}")

        errors = self._validator.validate(mapped, context.schema, "POST")
        if errors:
            joined = ", ".join(errors)
            logger.warning(
                "SyncNotubiz validation errors",
                source_id=source_id,
                validation_errors=joined,
            )
            return Skipped(reason=f"Validation errors: {joined}", errors=tuple(errors))

        return Mapped(data=mapped)
