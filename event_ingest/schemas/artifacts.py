"""
event_ingest/schemas/artifacts.py

Schemas for the JSON artifacts published for the rendering layer.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from event_ingest.domain.cities import MappingResult
from event_ingest.domain.events import ProcessedEvent
from event_ingest.domain.pipeline import CleaningSummary, DeduplicationSummary, ValidationSummary
from event_ingest.domain.reporting import (
    CityEventGroup,
    EventStats,
    IssueListing,
    MappingStats,
    QualityReport,
    Recommendation,
    TopEvent,
)


class ArtifactModel(BaseModel):
    """
    Base for published documents: snake_case in Python, camelCase on disk.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class MappingResultSchema(ArtifactModel):
    city_id: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    match_type: str
    matched_text: str = ""

    @classmethod
    def from_domain(cls, result: MappingResult) -> "MappingResultSchema":
        return cls(
            city_id=result.city_id,
            confidence=round(result.confidence, 4),
            match_type=result.match_type.value,
            matched_text=result.matched_text,
        )


class ProcessedEventSchema(ArtifactModel):
    """
    One publishable event. `city_mappings` lists city ids, best match first.
    """

    id: str | None
    title: str
    time_text: str
    location_text: str
    url: str
    image_url: str
    view_count: int | None
    favorite_count: int | None
    discovered_at: datetime | None
    sort_rank: int | None
    local_image: str | None
    status: str
    warnings: list[str] = Field(default_factory=list)
    slug: str
    tags: list[str] = Field(default_factory=list)
    is_upcoming: bool
    formatted_date: str
    city_mappings: list[str] = Field(default_factory=list)
    city_mapping_details: list[MappingResultSchema] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, event: ProcessedEvent) -> "ProcessedEventSchema":
        return cls(
            id=event.id,
            title=event.title,
            time_text=event.time_text,
            location_text=event.location_text,
            url=event.url,
            image_url=event.image_url,
            view_count=event.view_count,
            favorite_count=event.favorite_count,
            discovered_at=event.discovered_at,
            sort_rank=event.sort_rank,
            local_image=event.local_image,
            status=event.status.value,
            warnings=[warning.value for warning in event.warnings],
            slug=event.slug,
            tags=list(event.tags),
            is_upcoming=event.is_upcoming,
            formatted_date=event.formatted_date,
            city_mappings=event.city_ids,
            city_mapping_details=[MappingResultSchema.from_domain(result) for result in event.city_mappings],
        )


class CityEventGroupSchema(ArtifactModel):
    city_id: str
    city_name: str
    events: list[ProcessedEventSchema] = Field(default_factory=list)
    event_count: int = Field(..., ge=0)
    last_updated: datetime

    @classmethod
    def from_domain(cls, group: CityEventGroup) -> "CityEventGroupSchema":
        return cls(
            city_id=group.city_id,
            city_name=group.city_name,
            events=[ProcessedEventSchema.from_domain(event) for event in group.events],
            event_count=group.event_count,
            last_updated=group.last_updated,
        )


def city_mappings_document(groups: list[CityEventGroup]) -> dict[str, Any]:
    return {group.city_id: CityEventGroupSchema.from_domain(group).to_json_dict() for group in groups}


class TopEventSchema(ArtifactModel):
    id: str | None
    title: str
    value: int

    @classmethod
    def from_domain(cls, event: TopEvent) -> "TopEventSchema":
        return cls(id=event.id, title=event.title, value=event.value)


class EngagementMetricsSchema(ArtifactModel):
    total_views: int
    total_favorites: int
    average_views: int
    average_favorites: int
    top_viewed_events: list[TopEventSchema] = Field(default_factory=list)
    top_favorited_events: list[TopEventSchema] = Field(default_factory=list)


class MappingCoverageSchema(ArtifactModel):
    mapped_events: int = Field(..., ge=0)
    unmapped_events: int = Field(..., ge=0)
    mapping_success_rate: float = Field(..., ge=0.0, le=1.0)


class MappingQualitySchema(ArtifactModel):
    mappings_by_confidence: dict[str, int]
    mappings_by_type: dict[str, int]
    unmapped_locations: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, stats: MappingStats) -> "MappingQualitySchema":
        return cls(
            mappings_by_confidence=dict(stats.mappings_by_confidence),
            mappings_by_type=dict(stats.mappings_by_type),
            unmapped_locations=list(stats.unmapped_locations),
        )


class EventStatsSchema(ArtifactModel):
    total_events: int = Field(..., ge=0)
    upcoming_events: int = Field(..., ge=0)
    past_events: int = Field(..., ge=0)
    city_distribution: dict[str, int]
    engagement_metrics: EngagementMetricsSchema
    mapping_stats: MappingCoverageSchema
    mapping_quality: MappingQualitySchema | None = None
    time_distribution: dict[str, int]
    last_updated: datetime

    @classmethod
    def from_domain(
        cls,
        stats: EventStats,
        mapping_stats: MappingStats | None = None,
    ) -> "EventStatsSchema":
        engagement = stats.engagement
        return cls(
            total_events=stats.total_events,
            upcoming_events=stats.upcoming_events,
            past_events=stats.past_events,
            city_distribution=dict(stats.city_distribution),
            engagement_metrics=EngagementMetricsSchema(
                total_views=engagement.total_views,
                total_favorites=engagement.total_favorites,
                average_views=engagement.average_views,
                average_favorites=engagement.average_favorites,
                top_viewed_events=[TopEventSchema.from_domain(item) for item in engagement.top_viewed_events],
                top_favorited_events=[TopEventSchema.from_domain(item) for item in engagement.top_favorited_events],
            ),
            mapping_stats=MappingCoverageSchema(
                mapped_events=stats.mapping.mapped_events,
                unmapped_events=stats.mapping.unmapped_events,
                mapping_success_rate=stats.mapping.mapping_success_rate,
            ),
            mapping_quality=MappingQualitySchema.from_domain(mapping_stats) if mapping_stats else None,
            time_distribution=dict(stats.time_distribution),
            last_updated=stats.last_updated,
        )


class DeduplicationSummarySchema(ArtifactModel):
    original_count: int
    unique_count: int
    duplicate_count: int
    duplicate_reasons: dict[str, int]

    @classmethod
    def from_domain(cls, summary: DeduplicationSummary) -> "DeduplicationSummarySchema":
        return cls(
            original_count=summary.original_count,
            unique_count=summary.unique_count,
            duplicate_count=summary.duplicate_count,
            duplicate_reasons=dict(summary.duplicate_reasons),
        )


class CleaningSummarySchema(ArtifactModel):
    total_events: int
    cleaned_events: int
    cleaning_stats: dict[str, int]

    @classmethod
    def from_domain(cls, summary: CleaningSummary) -> "CleaningSummarySchema":
        return cls(
            total_events=summary.total_events,
            cleaned_events=summary.cleaned_events,
            cleaning_stats=dict(summary.cleaning_stats),
        )


class ValidationSummarySchema(ArtifactModel):
    total_events: int
    valid_events: int
    invalid_events: int
    warning_events: int
    common_issues: dict[str, int]
    quality_score: int = Field(..., ge=0, le=100)

    @classmethod
    def from_domain(cls, summary: ValidationSummary) -> "ValidationSummarySchema":
        return cls(
            total_events=summary.total_events,
            valid_events=summary.valid_events,
            invalid_events=summary.invalid_events,
            warning_events=summary.warning_events,
            common_issues=dict(summary.common_issues),
            quality_score=summary.quality_score,
        )


class ProcessingStepsSchema(ArtifactModel):
    deduplication: DeduplicationSummarySchema | None = None
    cleaning: CleaningSummarySchema | None = None
    validation: ValidationSummarySchema


class ReportSummarySchema(ArtifactModel):
    original_event_count: int
    final_event_count: int
    data_quality_score: int
    processing_steps: ProcessingStepsSchema


class IssueListingSchema(ArtifactModel):
    event_id: str | None
    title: str
    issues: list[str]

    @classmethod
    def from_domain(cls, listing: IssueListing) -> "IssueListingSchema":
        return cls(event_id=listing.event_id, title=listing.title, issues=list(listing.issues))


class DuplicateListingSchema(ArtifactModel):
    event_id: str | None
    title: str
    reasons: list[str]

    @classmethod
    def from_domain(cls, listing: IssueListing) -> "DuplicateListingSchema":
        return cls(event_id=listing.event_id, title=listing.title, reasons=list(listing.issues))


class ReportIssuesSchema(ArtifactModel):
    critical: list[IssueListingSchema] = Field(default_factory=list)
    warnings: list[IssueListingSchema] = Field(default_factory=list)
    duplicates: list[DuplicateListingSchema] = Field(default_factory=list)


class ReportStatisticsSchema(ArtifactModel):
    common_issues: dict[str, int]
    duplicate_reasons: dict[str, int]
    cleaning_actions: dict[str, int]


class RecommendationSchema(ArtifactModel):
    priority: str
    category: str
    message: str
    action: str

    @classmethod
    def from_domain(cls, recommendation: Recommendation) -> "RecommendationSchema":
        return cls(
            priority=recommendation.priority,
            category=recommendation.category,
            message=recommendation.message,
            action=recommendation.action,
        )


class QualityReportSchema(ArtifactModel):
    timestamp: datetime
    summary: ReportSummarySchema
    issues: ReportIssuesSchema
    statistics: ReportStatisticsSchema
    recommendations: list[RecommendationSchema] = Field(default_factory=list)
    crawl: dict[str, Any] | None = None
    used_fallback: bool = False
    fallback_reason: str | None = None

    @classmethod
    def from_domain(cls, report: QualityReport) -> "QualityReportSchema":
        steps = report.processing_steps
        deduplication = steps.get("deduplication")
        cleaning = steps.get("cleaning")
        return cls(
            timestamp=report.timestamp,
            summary=ReportSummarySchema(
                original_event_count=report.original_event_count,
                final_event_count=report.final_event_count,
                data_quality_score=report.data_quality_score,
                processing_steps=ProcessingStepsSchema(
                    deduplication=DeduplicationSummarySchema.from_domain(deduplication) if deduplication else None,
                    cleaning=CleaningSummarySchema.from_domain(cleaning) if cleaning else None,
                    validation=ValidationSummarySchema.from_domain(steps["validation"]),
                ),
            ),
            issues=ReportIssuesSchema(
                critical=[IssueListingSchema.from_domain(item) for item in report.critical],
                warnings=[IssueListingSchema.from_domain(item) for item in report.warnings],
                duplicates=[DuplicateListingSchema.from_domain(item) for item in report.duplicates],
            ),
            statistics=ReportStatisticsSchema(
                common_issues=dict(report.common_issues),
                duplicate_reasons=dict(report.duplicate_reasons),
                cleaning_actions=dict(report.cleaning_actions),
            ),
            recommendations=[RecommendationSchema.from_domain(item) for item in report.recommendations],
            crawl=report.crawl,
            used_fallback=report.used_fallback,
            fallback_reason=report.fallback_reason,
        )
