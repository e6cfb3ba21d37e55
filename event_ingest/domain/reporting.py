"""
event_ingest/domain/reporting.py

Statistics and quality report models published for the rendering layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from event_ingest.domain.events import ProcessedEvent


@dataclass(frozen=True)
class TopEvent:
    id: str | None
    title: str
    value: int


@dataclass(frozen=True)
class EngagementMetrics:
    total_views: int
    total_favorites: int
    average_views: int
    average_favorites: int
    top_viewed_events: list[TopEvent] = field(default_factory=list)
    top_favorited_events: list[TopEvent] = field(default_factory=list)


@dataclass(frozen=True)
class MappingCoverage:
    """
    Mapped/unmapped counts. `mapped_events + unmapped_events == total_events`.
    """

    total_events: int
    mapped_events: int
    unmapped_events: int
    mapping_success_rate: float


@dataclass(frozen=True)
class MappingStats:
    coverage: MappingCoverage
    mappings_by_confidence: dict[str, int]
    mappings_by_type: dict[str, int]
    unmapped_locations: list[str]


@dataclass(frozen=True)
class EventStats:
    total_events: int
    upcoming_events: int
    past_events: int
    city_distribution: dict[str, int]
    engagement: EngagementMetrics
    mapping: MappingCoverage
    time_distribution: dict[str, int]
    last_updated: datetime


@dataclass(frozen=True)
class CityEventGroup:
    city_id: str
    city_name: str
    events: list[ProcessedEvent]
    last_updated: datetime

    @property
    def event_count(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class Recommendation:
    priority: str
    category: str
    message: str
    action: str


@dataclass(frozen=True)
class IssueListing:
    """
    One record mentioned in the quality report with its problems.
    """

    event_id: str | None
    title: str
    issues: tuple[str, ...]


@dataclass(frozen=True)
class QualityReport:
    """
    Structured data-quality report for one run.
    """

    timestamp: datetime
    original_event_count: int
    final_event_count: int
    data_quality_score: int
    processing_steps: dict[str, Any]
    critical: list[IssueListing]
    warnings: list[IssueListing]
    duplicates: list[IssueListing]
    common_issues: dict[str, int]
    duplicate_reasons: dict[str, int]
    cleaning_actions: dict[str, int]
    recommendations: list[Recommendation]
    crawl: dict[str, Any] | None = None
    used_fallback: bool = False
    fallback_reason: str | None = None
