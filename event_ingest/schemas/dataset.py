"""
event_ingest/schemas/dataset.py

Schemas for the persisted raw event dataset and the city reference file.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from event_ingest.domain.cities import City, CityName
from event_ingest.domain.events import RawRecord


def _optional_count(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return int(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


class RawRecordSchema(BaseModel):
    """
    One persisted raw record.

    Accepts the legacy field names (`time`, `location`, `views`,
    `favorites`, `scrapedAt`, `sort`) written by older scrapers.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = None
    title: str = ""
    time_text: str = Field(
        default="",
        validation_alias=AliasChoices("timeText", "time", "time_text"),
        serialization_alias="timeText",
    )
    location_text: str = Field(
        default="",
        validation_alias=AliasChoices("locationText", "location", "location_text"),
        serialization_alias="locationText",
    )
    url: str = ""
    image_url: str = Field(
        default="",
        validation_alias=AliasChoices("imageUrl", "image_url"),
        serialization_alias="imageUrl",
    )
    view_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("viewCount", "views", "view_count"),
        serialization_alias="viewCount",
    )
    favorite_count: int | None = Field(
        default=None,
        validation_alias=AliasChoices("favoriteCount", "favorites", "favorite_count"),
        serialization_alias="favoriteCount",
    )
    discovered_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("discoveredAt", "scrapedAt", "discovered_at"),
        serialization_alias="discoveredAt",
    )
    sort_rank: int | None = Field(
        default=None,
        validation_alias=AliasChoices("sortRank", "sort", "sort_rank"),
        serialization_alias="sortRank",
    )
    local_image: str | None = Field(
        default=None,
        validation_alias=AliasChoices("localImage", "local_image"),
        serialization_alias="localImage",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("title", "time_text", "location_text", "url", "image_url", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("view_count", "favorite_count", "sort_rank", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int | None:
        return _optional_count(value)

    @field_validator("discovered_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Any:
        if isinstance(value, str) and value.endswith("Z"):
            return value[:-1] + "+00:00"
        return value or None

    def to_domain(self) -> RawRecord:
        return RawRecord(
            id=self.id,
            title=self.title,
            time_text=self.time_text,
            location_text=self.location_text,
            url=self.url,
            image_url=self.image_url,
            view_count=self.view_count,
            favorite_count=self.favorite_count,
            discovered_at=self.discovered_at,
            sort_rank=self.sort_rank,
            local_image=self.local_image,
        )

    @classmethod
    def from_domain(cls, record: RawRecord) -> "RawRecordSchema":
        return cls(
            id=record.id,
            title=record.title,
            time_text=record.time_text,
            location_text=record.location_text,
            url=record.url,
            image_url=record.image_url,
            view_count=record.view_count,
            favorite_count=record.favorite_count,
            discovered_at=record.discovered_at,
            sort_rank=record.sort_rank,
            local_image=record.local_image,
        )


class CityNameSchema(BaseModel):
    zh: str = Field(..., min_length=1)
    en: str = ""


class CitySchema(BaseModel):
    """
    One entry of the city reference file.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., min_length=1)
    name: CityNameSchema
    active: bool = True
    province_patterns: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("provincePatterns", "province_patterns"),
    )
    keywords: list[str] | None = None

    def to_domain(self) -> City:
        return City(
            id=self.id,
            name=CityName(zh=self.name.zh, en=self.name.en),
            active=self.active,
            province_patterns=tuple(self.province_patterns) if self.province_patterns is not None else None,
            keywords=tuple(self.keywords) if self.keywords is not None else None,
        )
