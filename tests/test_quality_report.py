"""
tests/test_quality_report.py

Pytest unit tests for QualityReportBuilder, recommendations and the
published quality report document.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from event_ingest.domain.events import IssueCode
from event_ingest.domain.pipeline import CrawlResult, CrawlStopReason, ValidationResult
from event_ingest.normalization.event_cleaner import ACTION_TIME, EventCleaner
from event_ingest.schemas.artifacts import QualityReportSchema
from event_ingest.services.deduplication import DUPLICATE_CONTENT, DUPLICATE_ID, DUPLICATE_URL, Deduplicator
from event_ingest.services.quality_report import QualityReportBuilder, build_recommendations, crawl_details
from event_ingest.validators.event_validator import EventValidator
from fakes import make_record

NOW = datetime(2025, 9, 1, tzinfo=timezone.utc)


def _build(raw, **kwargs):
    deduplication = Deduplicator().dedupe(raw)
    cleaning = EventCleaner().clean_all(deduplication.unique)
    validation = EventValidator().validate_all(cleaning.cleaned)
    report = QualityReportBuilder().report(raw, deduplication, cleaning, validation, now=NOW, **kwargs)
    return report, validation


def _validation(records) -> ValidationResult:
    return EventValidator().validate_all(EventCleaner().clean_all(records).cleaned)


@pytest.fixture()
def mixed_batch():
    return [
        make_record(1),
        make_record(2),
        make_record(2),
        make_record(3, url=""),
    ]


# ---------------------------------------------------------------------------
# Report contents
# ---------------------------------------------------------------------------


class TestReport:
    def test_counts_and_score(self, mixed_batch) -> None:
        report, _ = _build(mixed_batch)

        assert report.original_event_count == 4
        assert report.final_event_count == 2
        assert report.data_quality_score == 67
        assert report.timestamp == NOW

    def test_invalid_record_is_listed_as_critical(self, mixed_batch) -> None:
        report, _ = _build(mixed_batch)

        assert len(report.critical) == 1
        assert report.critical[0].event_id == "3"
        assert report.critical[0].issues == (IssueCode.MISSING_URL.value,)

    def test_duplicates_are_listed_with_reasons(self, mixed_batch) -> None:
        report, _ = _build(mixed_batch)

        assert len(report.duplicates) == 1
        assert report.duplicates[0].event_id == "2"
        assert report.duplicates[0].issues == (DUPLICATE_ID, DUPLICATE_URL, DUPLICATE_CONTENT)
        assert report.duplicate_reasons == {DUPLICATE_ID: 1, DUPLICATE_URL: 1, DUPLICATE_CONTENT: 1}

    def test_warning_records_are_listed(self) -> None:
        report, _ = _build([make_record(1, image_url=""), make_record(2)])

        assert [item.event_id for item in report.warnings] == ["1"]
        assert report.warnings[0].issues == (IssueCode.MISSING_IMAGE.value,)
        assert report.critical == []

    def test_cleaning_actions_and_steps(self) -> None:
        report, _ = _build([make_record(1, time_text="2025-09-21 14:00")])

        assert report.cleaning_actions == {ACTION_TIME: 1}
        assert set(report.processing_steps) == {"deduplication", "cleaning", "validation"}

    def test_crawl_details(self) -> None:
        crawl = CrawlResult(
            records=[make_record(1)],
            pages_walked=2,
            failed_pages=1,
            stop_reason=CrawlStopReason.LAST_PAGE,
            errors=["page 2 failed"],
        )

        assert crawl_details(crawl, mode="full") == {
            "mode": "full",
            "pagesWalked": 2,
            "failedPages": 1,
            "stopReason": "last_page",
            "newRecords": 1,
            "errors": ["page 2 failed"],
        }


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


class TestRecommendations:
    def test_mixed_batch_recommendations(self, mixed_batch) -> None:
        report, _ = _build(mixed_batch)

        assert [item.category for item in report.recommendations] == [
            "data_integrity",
            "data_quality",
            "overall_quality",
        ]
        assert report.recommendations[0].priority == "high"
        assert report.recommendations[0].message.startswith("1 events")

    def test_clean_batch_has_no_recommendations(self) -> None:
        assert build_recommendations(validation=_validation([make_record(1), make_record(2)])) == []

    def test_completeness_recommendation_above_threshold(self) -> None:
        records = [make_record(1, image_url=""), make_record(2, image_url="")] + [make_record(n) for n in range(3, 6)]

        recommendations = build_recommendations(validation=_validation(records))

        assert [item.category for item in recommendations] == ["data_completeness"]
        assert recommendations[0].message.startswith("40.0%")

    def test_completeness_recommendation_not_at_threshold(self) -> None:
        records = [make_record(1, image_url="")] + [make_record(n) for n in range(2, 6)]

        assert build_recommendations(validation=_validation(records)) == []

    def test_fallback_recommendation(self) -> None:
        recommendations = build_recommendations(
            validation=_validation([make_record(1)]),
            used_fallback=True,
            fallback_reason="listing unavailable",
        )

        assert [item.category for item in recommendations] == ["data_freshness"]
        assert recommendations[0].message.endswith(": listing unavailable")


# ---------------------------------------------------------------------------
# Published document
# ---------------------------------------------------------------------------


class TestReportDocument:
    def test_document_layout(self, mixed_batch) -> None:
        report, _ = _build(mixed_batch, used_fallback=True, fallback_reason="timeout")

        document = QualityReportSchema.from_domain(report).to_json_dict()

        assert document["summary"]["originalEventCount"] == 4
        assert document["summary"]["finalEventCount"] == 2
        assert document["summary"]["dataQualityScore"] == 67
        steps = document["summary"]["processingSteps"]
        assert steps["deduplication"]["duplicateCount"] == 1
        assert steps["validation"]["qualityScore"] == 67
        assert document["issues"]["critical"][0]["eventId"] == "3"
        assert document["issues"]["duplicates"][0]["reasons"][0] == DUPLICATE_ID
        assert document["statistics"]["commonIssues"][IssueCode.MISSING_URL.value] == 1
        assert document["usedFallback"] is True
        assert document["fallbackReason"] == "timeout"
        assert document["recommendations"][-1]["category"] == "data_freshness"
