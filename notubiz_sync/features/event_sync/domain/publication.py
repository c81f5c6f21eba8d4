"""
Woo publication target schema.

Validation only: mapped records are checked against these models and then
stored as plain JSON, unknown keys included.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Organisatie(BaseModel):
    """Publishing organisation."""

    model_config = ConfigDict(extra="allow")

    oin: str | None = None
    naam: str | None = None


class Publicatie(BaseModel):
    """A Woo publication synchronized from a NotuBiz event."""

    model_config = ConfigDict(extra="allow")

    titel: str = Field(..., min_length=1)
    publicatiedatum: str = Field(..., min_length=1)
    categorie: str = Field(..., min_length=1)
    organisatie: Organisatie
    kenmerk: str | None = None
    beschrijving: str | None = None
    samenvatting: str | None = None
    autoPublish: bool = True
    bijlagen: list[dict[str, Any]] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
