"""
Data-quality report assembly and improvement recommendations.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from event_ingest.domain.events import RawRecord
from event_ingest.domain.pipeline import CleaningResult, CrawlResult, DeduplicationResult, ValidationResult
from event_ingest.domain.reporting import IssueListing, QualityReport, Recommendation

WARNING_RATE_THRESHOLD = 20.0
QUALITY_SCORE_THRESHOLD = 80


def build_recommendations(
    *,
    validation: ValidationResult,
    deduplication: DeduplicationResult | None = None,
    used_fallback: bool = False,
    fallback_reason: str | None = None,
) -> list[Recommendation]:
    recommendations: list[Recommendation] = []
    summary = validation.summary

    if summary.invalid_events > 0:
        recommendations.append(
            Recommendation(
                priority="high",
                category="data_integrity",
                message=f"{summary.invalid_events} events have critical issues and were excluded",
                action="Review and fix data source or scraping logic",
            )
        )

    if deduplication is not None and deduplication.duplicates:
        recommendations.append(
            Recommendation(
                priority="medium",
                category="data_quality",
                message=f"{len(deduplication.duplicates)} duplicate events were removed",
                action="Improve scraping logic to prevent duplicates",
            )
        )

    if summary.warning_events > 0 and summary.total_events > 0:
        warning_rate = summary.warning_events / summary.total_events * 100
        if warning_rate > WARNING_RATE_THRESHOLD:
            recommendations.append(
                Recommendation(
                    priority="medium",
                    category="data_completeness",
                    message=f"{warning_rate:.1f}% of events have data completeness issues",
                    action="Enhance scraping to capture missing fields",
                )
            )

    if summary.quality_score < QUALITY_SCORE_THRESHOLD:
        recommendations.append(
            Recommendation(
                priority="high",
                category="overall_quality",
                message=f"Data quality score is {summary.quality_score}% (below 80% threshold)",
                action="Comprehensive review of data collection and processing pipeline needed",
            )
        )

    if used_fallback:
        reason = f": {fallback_reason}" if fallback_reason else ""
        recommendations.append(
            Recommendation(
                priority="high",
                category="data_freshness",
                message=f"Crawl failed and previously persisted data was used{reason}",
                action="Check listing site availability and scraper selectors",
            )
        )

    return recommendations


def crawl_details(crawl: CrawlResult, *, mode: str | None = None) -> dict[str, Any]:
    return {
        "mode": mode,
        "pagesWalked": crawl.pages_walked,
        "failedPages": crawl.failed_pages,
        "stopReason": crawl.stop_reason.value,
        "newRecords": len(crawl.records),
        "errors": list(crawl.errors),
    }


class QualityReportBuilder:
    """
    Combines per-stage results into one `QualityReport`.
    """

    def report(
        self,
        raw: Sequence[RawRecord],
        deduplication: DeduplicationResult,
        cleaning: CleaningResult,
        validation: ValidationResult,
        *,
        crawl: dict[str, Any] | None = None,
        used_fallback: bool = False,
        fallback_reason: str | None = None,
        now: datetime | None = None,
    ) -> QualityReport:
        critical = [
            IssueListing(
                event_id=record.id,
                title=record.title,
                issues=tuple(issue.value for issue in record.issues),
            )
            for record in validation.invalid
        ]
        warnings = [
            IssueListing(
                event_id=record.id,
                title=record.title,
                issues=tuple(issue.value for issue in record.warnings),
            )
            for record in validation.warnings
        ]
        duplicates = [
            IssueListing(event_id=entry.record.id, title=entry.record.title, issues=entry.reasons)
            for entry in deduplication.duplicates
        ]

        return QualityReport(
            timestamp=now or datetime.now(timezone.utc),
            original_event_count=len(raw),
            final_event_count=validation.summary.valid_events,
            data_quality_score=validation.summary.quality_score,
            processing_steps={
                "deduplication": deduplication.summary,
                "cleaning": cleaning.summary,
                "validation": validation.summary,
            },
            critical=critical,
            warnings=warnings,
            duplicates=duplicates,
            common_issues=dict(validation.summary.common_issues),
            duplicate_reasons=dict(deduplication.summary.duplicate_reasons),
            cleaning_actions=dict(cleaning.summary.cleaning_stats),
            recommendations=build_recommendations(
                validation=validation,
                deduplication=deduplication,
                used_fallback=used_fallback,
                fallback_reason=fallback_reason,
            ),
            crawl=crawl,
            used_fallback=used_fallback,
            fallback_reason=fallback_reason,
        )
