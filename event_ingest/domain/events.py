"""
event_ingest/domain/events.py

Event records for each pipeline stage.

Every stage builds new instances from the previous stage's output; none of
these records is mutated after construction.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any

from event_ingest.domain.cities import MappingResult


@dataclass(frozen=True)
class RawRecord:
    """
    Unvalidated event data as extracted from one listing page.
    """

    id: str | None = None
    title: str = ""
    time_text: str = ""
    location_text: str = ""
    url: str = ""
    image_url: str = ""
    view_count: int | None = None
    favorite_count: int | None = None
    discovered_at: datetime | None = None
    sort_rank: int | None = None
    local_image: str | None = None

    @property
    def identity(self) -> str | None:
        """
        Identifier used for at-most-once ingestion; the URL stands in when id is absent.
        """

        if self.id:
            return self.id
        return self.url or None


def raw_fields(record: RawRecord) -> dict[str, Any]:
    """
    Return only the RawRecord-level fields of any stage record.
    """

    return {item.name: getattr(record, item.name) for item in fields(RawRecord)}


@dataclass(frozen=True)
class CleanedRecord(RawRecord):
    """
    Raw record after text, time, URL and counter normalization.
    """

    actions: tuple[str, ...] = ()


class ValidationStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    WARNING = "warning"


class IssueCode(str, Enum):
    """
    Validation issue labels; values are the human-readable report strings.
    """

    MISSING_ID = "Missing event ID"
    MISSING_TITLE = "Missing or empty title"
    MISSING_URL = "Missing event URL"
    TITLE_TOO_LONG = "Title too long (>200 chars)"
    LOCATION_TOO_LONG = "Location too long (>100 chars)"
    INVALID_VIEW_COUNT = "Invalid view count"
    INVALID_FAVORITE_COUNT = "Invalid favorite count"
    INVALID_URL = "Invalid URL format"
    INVALID_IMAGE_URL = "Invalid image URL format"
    INVALID_TIME = "Invalid time format (expected MM/DD HH:MM)"

    MISSING_LOCATION = "Missing location information"
    MISSING_IMAGE = "Missing event image"
    MISSING_VIEW_COUNT = "No view count data"
    MISSING_FAVORITE_COUNT = "No favorite count data"
    SHORT_TITLE = "Very short title (might be incomplete)"
    UNKNOWN_LOCATION = "Unknown or TBD location"


@dataclass(frozen=True)
class ValidatedRecord(CleanedRecord):
    """
    Cleaned record with its validation classification.

    `issues` holds critical problems, `warnings` the non-blocking ones.
    """

    status: ValidationStatus = ValidationStatus.VALID
    issues: tuple[IssueCode, ...] = ()
    warnings: tuple[IssueCode, ...] = ()

    @property
    def is_publishable(self) -> bool:
        return self.status is not ValidationStatus.INVALID


@dataclass(frozen=True)
class ProcessedEvent(ValidatedRecord):
    """
    Publishable event enriched with display fields and city mappings.
    """

    slug: str = ""
    tags: tuple[str, ...] = ()
    is_upcoming: bool = False
    formatted_date: str = ""
    city_mappings: tuple[MappingResult, ...] = field(default_factory=tuple)

    @property
    def city_ids(self) -> list[str]:
        return [mapping.city_id for mapping in self.city_mappings]
