"""
event_ingest/domain/pipeline.py

Per-stage results produced by crawl, deduplication, cleaning and validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from event_ingest.domain.events import CleanedRecord, RawRecord, ValidatedRecord, ValidationStatus


class CrawlStopReason(str, Enum):
    EMPTY_PAGES = "empty_pages"
    NO_NEW_RECORDS = "no_new_records"
    LAST_PAGE = "last_page"
    PAGE_FAILURES = "page_failures"


@dataclass(frozen=True)
class CrawlResult:
    """
    Outcome of one pagination walk. `records` holds only new records.
    """

    records: list[RawRecord]
    pages_walked: int
    failed_pages: int
    stop_reason: CrawlStopReason
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicateEntry:
    record: RawRecord
    index: int
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class DeduplicationSummary:
    original_count: int
    unique_count: int
    duplicate_count: int
    duplicate_reasons: dict[str, int]


@dataclass(frozen=True)
class DeduplicationResult:
    unique: list[RawRecord]
    duplicates: list[DuplicateEntry]
    summary: DeduplicationSummary


@dataclass(frozen=True)
class CleaningAction:
    index: int
    event_id: str | None
    actions: tuple[str, ...]


@dataclass(frozen=True)
class CleaningSummary:
    total_events: int
    cleaned_events: int
    cleaning_stats: dict[str, int]


@dataclass(frozen=True)
class CleaningResult:
    cleaned: list[CleanedRecord]
    actions: list[CleaningAction]
    summary: CleaningSummary


@dataclass(frozen=True)
class ValidationSummary:
    total_events: int
    valid_events: int
    invalid_events: int
    warning_events: int
    common_issues: dict[str, int]
    quality_score: int


@dataclass(frozen=True)
class ValidationResult:
    """
    Classified batch. `valid` includes records that only carry warnings.
    """

    records: list[ValidatedRecord]
    summary: ValidationSummary

    @property
    def valid(self) -> list[ValidatedRecord]:
        return [record for record in self.records if record.is_publishable]

    @property
    def invalid(self) -> list[ValidatedRecord]:
        return [record for record in self.records if record.status is ValidationStatus.INVALID]

    @property
    def warnings(self) -> list[ValidatedRecord]:
        return [record for record in self.records if record.status is ValidationStatus.WARNING]


@dataclass(frozen=True)
class PipelineRunSummary:
    """
    Outcome of one end-to-end pipeline run.
    """

    mode: str
    crawled: bool
    new_records: int
    records_added: int
    dataset_records: int
    published_events: int
    quality_score: int
    used_fallback: bool = False
    fallback_reason: str | None = None
    skipped_reason: str | None = None
    artifacts: dict[str, str] = field(default_factory=dict)
