"""Pydantic models describing shipment status payloads."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shipguard.domain.model import ShipmentStatus


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class OracleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ObservationPayload(OracleBaseModel):
    shipment_id: str = Field(alias="shipmentId")
    status: ShipmentStatus
    location: str | None = None
    note: str | None = None
    timestamp: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_notes(cls, value: object) -> object:
        if isinstance(value, Mapping):
            mapping_value = cast(Mapping[str, object], value)
            if "notes" in mapping_value and "note" not in mapping_value:
                data: dict[str, object] = dict(mapping_value)
                data["note"] = data.pop("notes")
                return data
        return value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    _normalize_location = field_validator("location", mode="before")(_blank_to_none)
    _normalize_note = field_validator("note", mode="before")(_blank_to_none)
