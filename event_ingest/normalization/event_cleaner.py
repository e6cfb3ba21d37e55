"""
event_ingest/normalization/event_cleaner.py

Text, time, URL and counter normalization for raw event records.
"""

from __future__ import annotations

import logging
import math
import re
from collections import Counter
from collections.abc import Sequence
from typing import Any

from event_ingest.domain.events import CleanedRecord, RawRecord, raw_fields
from event_ingest.domain.pipeline import CleaningAction, CleaningResult, CleaningSummary
from event_ingest.logging_utils import log_event
from event_ingest.normalization.text import canonical_url, clean_text, collapse_whitespace

logger = logging.getLogger(__name__)

TITLE_DISALLOWED_REGEX = re.compile(
    r"[^\u4e00-\u9fa5a-zA-Z0-9\s\-\(\)\[\]【】：:，,。.！!？?]"
)

# Year-first and month-first variants, then the Chinese month/day form with
# an optional year and weekday.
TIME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?P<year>\d{2,4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"),
    re.compile(r"(?P<year>\d{2,4})/(?P<month>\d{1,2})/(?P<day>\d{1,2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"),
    re.compile(r"(?<!\d)(?P<month>\d{1,2})-(?P<day>\d{1,2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"),
    re.compile(
        r"(?:(?P<year>\d{4})年)?(?P<month>\d{1,2})月(?P<day>\d{1,2})日\s*"
        r"(?:(?:周|星期)[一二三四五六日天])?\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})"
    ),
)

VIEW_COUNT_UPPER_BOUND = 1_000_000
FAVORITE_COUNT_UPPER_BOUND = 100_000

ACTION_TITLE = "Cleaned title"
ACTION_LOCATION = "Cleaned location"
ACTION_TIME = "Normalized time format"
ACTION_URL = "Normalized URL"
ACTION_IMAGE_URL = "Normalized image URL"
ACTION_VIEW_COUNT = "Normalized view count"
ACTION_FAVORITE_COUNT = "Normalized favorite count"


def normalize_time_text(value: str) -> str:
    """
    Rewrite recognised date-time variants to `MM/DD HH:MM`.

    Text that matches none of the known variants is returned trimmed but
    otherwise untouched.
    """

    candidate = value.strip()
    for pattern in TIME_PATTERNS:
        match = pattern.search(candidate)
        if match is None:
            continue
        month = match.group("month").zfill(2)
        day = match.group("day").zfill(2)
        hour = match.group("hour").zfill(2)
        return f"{month}/{day} {hour}:{match.group('minute')}"
    return candidate


def coerce_count(value: Any, *, upper_bound: int) -> int | None:
    """
    Coerce a counter to an int in `[0, upper_bound)`; unparseable values become 0.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        number = int(value)
    elif isinstance(value, int):
        number = value
    else:
        try:
            parsed = float(str(value).strip().replace(",", ""))
        except ValueError:
            return 0
        if math.isnan(parsed) or math.isinf(parsed):
            return 0
        number = int(parsed)
    return min(max(0, number), upper_bound - 1)


class EventCleaner:
    """
    Pure, total normalization of raw records.
    """

    def clean(self, record: RawRecord) -> CleanedRecord:
        values = raw_fields(record)
        actions: list[str] = []

        if record.title:
            title = collapse_whitespace(TITLE_DISALLOWED_REGEX.sub("", clean_text(record.title)))
            if title != record.title:
                actions.append(ACTION_TITLE)
            values["title"] = title

        if record.location_text:
            location = clean_text(record.location_text)
            if location != record.location_text:
                actions.append(ACTION_LOCATION)
            values["location_text"] = location

        if record.time_text:
            time_text = normalize_time_text(record.time_text)
            if time_text != record.time_text:
                actions.append(ACTION_TIME)
            values["time_text"] = time_text

        if record.url:
            url = canonical_url(record.url)
            if url != record.url:
                actions.append(ACTION_URL)
            values["url"] = url

        if record.image_url:
            image_url = canonical_url(record.image_url)
            if image_url != record.image_url:
                actions.append(ACTION_IMAGE_URL)
            values["image_url"] = image_url

        if record.view_count is not None:
            view_count = coerce_count(record.view_count, upper_bound=VIEW_COUNT_UPPER_BOUND)
            if view_count != record.view_count:
                actions.append(ACTION_VIEW_COUNT)
            values["view_count"] = view_count

        if record.favorite_count is not None:
            favorite_count = coerce_count(record.favorite_count, upper_bound=FAVORITE_COUNT_UPPER_BOUND)
            if favorite_count != record.favorite_count:
                actions.append(ACTION_FAVORITE_COUNT)
            values["favorite_count"] = favorite_count

        return CleanedRecord(**values, actions=tuple(actions))

    def clean_all(self, records: Sequence[RawRecord]) -> CleaningResult:
        cleaned: list[CleanedRecord] = []
        actions: list[CleaningAction] = []
        stats: Counter[str] = Counter()

        for index, record in enumerate(records):
            result = self.clean(record)
            cleaned.append(result)
            if result.actions:
                actions.append(CleaningAction(index=index, event_id=record.id, actions=result.actions))
                stats.update(result.actions)

        summary = CleaningSummary(
            total_events=len(records),
            cleaned_events=len(actions),
            cleaning_stats=dict(stats),
        )
        log_event(
            logger,
            logging.INFO,
            "records_cleaned",
            total=summary.total_events,
            cleaned=summary.cleaned_events,
            actions=summary.cleaning_stats,
        )
        return CleaningResult(cleaned=cleaned, actions=actions, summary=summary)
