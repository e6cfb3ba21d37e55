"""
Batch duplicate removal by identifier, canonical URL and content key.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Sequence

from event_ingest.domain.events import RawRecord
from event_ingest.domain.pipeline import DeduplicationResult, DeduplicationSummary, DuplicateEntry
from event_ingest.logging_utils import log_event
from event_ingest.normalization.text import canonical_url, comparison_key

logger = logging.getLogger(__name__)

DUPLICATE_ID = "Duplicate ID"
DUPLICATE_URL = "Duplicate URL"
DUPLICATE_CONTENT = "Duplicate title, time and location"


def content_key(record: RawRecord) -> str | None:
    """
    Title/time/location key, or None when any of the three is empty.
    """

    if not (record.title and record.time_text and record.location_text):
        return None
    title = comparison_key(record.title)
    location = comparison_key(record.location_text, strip_punctuation=False)
    return f"{title}_{record.time_text.strip()}_{location}"


class Deduplicator:
    """
    Removes duplicate records from one batch; the first occurrence wins.

    The three checks are independent, so one record may carry several
    reasons. Records passed as `prior` seed the seen sets without being
    returned.
    """

    def dedupe(
        self,
        records: Sequence[RawRecord],
        prior: Iterable[RawRecord] = (),
    ) -> DeduplicationResult:
        seen_ids: set[str] = set()
        seen_urls: set[str] = set()
        seen_content: set[str] = set()

        for record in prior:
            self._check(record, seen_ids, seen_urls, seen_content)

        unique: list[RawRecord] = []
        duplicates: list[DuplicateEntry] = []
        reason_counts: Counter[str] = Counter()

        for index, record in enumerate(records):
            reasons = self._check(record, seen_ids, seen_urls, seen_content)
            if reasons:
                duplicates.append(DuplicateEntry(record=record, index=index, reasons=reasons))
                reason_counts.update(reasons)
            else:
                unique.append(record)

        summary = DeduplicationSummary(
            original_count=len(records),
            unique_count=len(unique),
            duplicate_count=len(duplicates),
            duplicate_reasons=dict(reason_counts),
        )
        if duplicates:
            log_event(
                logger,
                logging.INFO,
                "duplicates_removed",
                original=summary.original_count,
                duplicates=summary.duplicate_count,
                reasons=summary.duplicate_reasons,
            )
        return DeduplicationResult(unique=unique, duplicates=duplicates, summary=summary)

    @staticmethod
    def _check(
        record: RawRecord,
        seen_ids: set[str],
        seen_urls: set[str],
        seen_content: set[str],
    ) -> tuple[str, ...]:
        reasons: list[str] = []

        if record.id:
            if record.id in seen_ids:
                reasons.append(DUPLICATE_ID)
            else:
                seen_ids.add(record.id)

        if record.url:
            url = canonical_url(record.url)
            if url in seen_urls:
                reasons.append(DUPLICATE_URL)
            else:
                seen_urls.add(url)

        key = content_key(record)
        if key is not None:
            if key in seen_content:
                reasons.append(DUPLICATE_CONTENT)
            else:
                seen_content.add(key)

        return tuple(reasons)
