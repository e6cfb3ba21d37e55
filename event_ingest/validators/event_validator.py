"""
event_ingest/validators/event_validator.py

Record-level classification into valid, warning and invalid events.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import fields
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import urlsplit

from event_ingest.domain.events import CleanedRecord, IssueCode, ValidatedRecord, ValidationStatus
from event_ingest.domain.pipeline import ValidationResult, ValidationSummary
from event_ingest.logging_utils import log_event

logger = logging.getLogger(__name__)

TIME_FORMAT_REGEX = re.compile(r"^\d{2}/\d{2}\s+\d{2}:\d{2}$")

MAX_TITLE_LENGTH = 200
MAX_LOCATION_LENGTH = 100
MAX_VIEW_COUNT = 1_000_000
MAX_FAVORITE_COUNT = 100_000
SHORT_TITLE_LENGTH = 10
UNKNOWN_LOCATION_MARKERS = ("未知",)
TBD_LOCATION = "TBD"


def quality_score(*, valid_count: int, total_count: int) -> int:
    """
    Percentage of publishable records with half-up rounding.

    An empty batch scores 100. A batch holding any invalid record never
    reaches 100, so a perfect score always means nothing was excluded.
    """

    if total_count <= 0:
        return 100
    score = int((Decimal(100 * valid_count) / Decimal(total_count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if valid_count < total_count:
        score = min(score, 99)
    return score


def _is_http_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


class EventValidator:
    """
    Applies critical and warning checks to cleaned records.
    """

    def validate(self, record: CleanedRecord) -> ValidatedRecord:
        issues = self._critical_issues(record)
        warnings = self._warnings(record)

        if issues:
            status = ValidationStatus.INVALID
        elif warnings:
            status = ValidationStatus.WARNING
        else:
            status = ValidationStatus.VALID

        values = {item.name: getattr(record, item.name) for item in fields(CleanedRecord)}
        return ValidatedRecord(
            **values,
            status=status,
            issues=tuple(issues),
            warnings=tuple(warnings),
        )

    def validate_all(self, records: Sequence[CleanedRecord]) -> ValidationResult:
        validated = [self.validate(record) for record in records]
        issue_counts: Counter[str] = Counter()
        for record in validated:
            issue_counts.update(issue.value for issue in (*record.issues, *record.warnings))

        valid_count = sum(1 for record in validated if record.is_publishable)
        warning_count = sum(1 for record in validated if record.status is ValidationStatus.WARNING)
        summary = ValidationSummary(
            total_events=len(validated),
            valid_events=valid_count,
            invalid_events=len(validated) - valid_count,
            warning_events=warning_count,
            common_issues=dict(issue_counts),
            quality_score=quality_score(valid_count=valid_count, total_count=len(validated)),
        )
        log_event(
            logger,
            logging.INFO,
            "records_validated",
            total=summary.total_events,
            valid=summary.valid_events,
            invalid=summary.invalid_events,
            warnings=summary.warning_events,
            quality_score=summary.quality_score,
        )
        return ValidationResult(records=validated, summary=summary)

    @staticmethod
    def _critical_issues(record: CleanedRecord) -> list[IssueCode]:
        issues: list[IssueCode] = []

        if not record.id:
            issues.append(IssueCode.MISSING_ID)
        if not record.title or not record.title.strip():
            issues.append(IssueCode.MISSING_TITLE)
        if not record.url:
            issues.append(IssueCode.MISSING_URL)

        if record.title and len(record.title) > MAX_TITLE_LENGTH:
            issues.append(IssueCode.TITLE_TOO_LONG)
        if record.location_text and len(record.location_text) > MAX_LOCATION_LENGTH:
            issues.append(IssueCode.LOCATION_TOO_LONG)
        if record.view_count is not None and not 0 <= record.view_count <= MAX_VIEW_COUNT:
            issues.append(IssueCode.INVALID_VIEW_COUNT)
        if record.favorite_count is not None and not 0 <= record.favorite_count <= MAX_FAVORITE_COUNT:
            issues.append(IssueCode.INVALID_FAVORITE_COUNT)

        if record.url and not _is_http_url(record.url):
            issues.append(IssueCode.INVALID_URL)
        if record.image_url and not _is_http_url(record.image_url):
            issues.append(IssueCode.INVALID_IMAGE_URL)

        if record.time_text and not TIME_FORMAT_REGEX.match(record.time_text):
            issues.append(IssueCode.INVALID_TIME)

        return issues

    @staticmethod
    def _warnings(record: CleanedRecord) -> list[IssueCode]:
        warnings: list[IssueCode] = []
        location = record.location_text.strip()

        if not location:
            warnings.append(IssueCode.MISSING_LOCATION)
        if not record.image_url:
            warnings.append(IssueCode.MISSING_IMAGE)
        if record.view_count is None:
            warnings.append(IssueCode.MISSING_VIEW_COUNT)
        if record.favorite_count is None:
            warnings.append(IssueCode.MISSING_FAVORITE_COUNT)
        if record.title and len(record.title) < SHORT_TITLE_LENGTH:
            warnings.append(IssueCode.SHORT_TITLE)
        if any(marker in location for marker in UNKNOWN_LOCATION_MARKERS) or location == TBD_LOCATION:
            warnings.append(IssueCode.UNKNOWN_LOCATION)

        return warnings
