"""
Display enrichment for publishable events: slug, tags, upcoming flag and
a human-readable date.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import fields
from datetime import datetime, timedelta, timezone

from event_ingest.domain.events import ProcessedEvent, ValidatedRecord
from event_ingest.logging_utils import log_event
from event_ingest.mappers.city_mapper import literal_pattern

logger = logging.getLogger(__name__)

# Listing times are China Standard Time, which has no daylight saving.
EVENT_TIMEZONE = timezone(timedelta(hours=8), "CST")
EVENT_TIME_REGEX = re.compile(r"(\d{2})/(\d{2})\s+(\d{2}):(\d{2})")

SLUG_DISALLOWED_REGEX = re.compile(r"[^\u4e00-\u9fa5a-z0-9\s-]")
SLUG_SPACE_REGEX = re.compile(r"\s+")
SLUG_DASH_REGEX = re.compile(r"-+")

TECH_KEYWORDS: tuple[str, ...] = (
    "ai", "artificial intelligence", "人工智能",
    "aws", "amazon", "cloud", "云计算",
    "bedrock", "genai", "生成式ai",
    "machine learning", "ml", "机器学习",
    "deep learning", "deepseek", "深度学习",
    "reinvent", "re:invent",
    "serverless", "无服务器",
    "kubernetes", "k8s",
    "docker", "容器",
    "microservices", "微服务",
    "devops", "开发运维",
)

EVENT_TYPE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "meetup": ("meetup", "聚会"),
    "workshop": ("workshop", "工作坊"),
    "conference": ("conference", "大会"),
    "community": ("community", "社区"),
    "hackathon": ("hackathon", "黑客马拉松"),
}

_TECH_PATTERNS = tuple((keyword, literal_pattern(keyword)) for keyword in TECH_KEYWORDS)
_EVENT_TYPE_PATTERNS = tuple(
    (tag, tuple(literal_pattern(keyword) for keyword in keywords))
    for tag, keywords in EVENT_TYPE_KEYWORDS.items()
)


def generate_slug(title: str, event_id: str | None) -> str:
    slug = SLUG_DISALLOWED_REGEX.sub("", title.lower())
    slug = SLUG_SPACE_REGEX.sub("-", slug)
    slug = SLUG_DASH_REGEX.sub("-", slug).strip("-")
    return f"{slug}-{event_id}" if slug else f"event-{event_id}"


def extract_tags(title: str, location_text: str) -> tuple[str, ...]:
    """
    Technology and event-type tags found in the title and location, in
    first-seen order without repeats.
    """

    text = f"{title} {location_text}".lower()
    tags: list[str] = []
    for keyword, pattern in _TECH_PATTERNS:
        if pattern.search(text) and keyword not in tags:
            tags.append(keyword)
    for tag, patterns in _EVENT_TYPE_PATTERNS:
        if any(pattern.search(text) for pattern in patterns) and tag not in tags:
            tags.append(tag)
    return tuple(tags)


def parse_event_time(time_text: str, *, year: int) -> datetime | None:
    match = EVENT_TIME_REGEX.search(time_text or "")
    if match is None:
        return None
    month, day, hour, minute = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute, tzinfo=EVENT_TIMEZONE)
    except ValueError:
        return None


def is_upcoming(time_text: str, *, now: datetime) -> bool:
    """
    Whether the event starts after `now`; the listing omits the year, so the
    year of `now` is assumed. Unparseable times count as past.
    """

    local_now = _as_event_time(now)
    starts_at = parse_event_time(time_text, year=local_now.year)
    return starts_at is not None and starts_at > local_now


def format_event_date(time_text: str, *, locale: str = "zh", year: int | None = None) -> str:
    if not time_text:
        return ""
    starts_at = parse_event_time(time_text, year=year or datetime.now(EVENT_TIMEZONE).year)
    if starts_at is None:
        return time_text
    if locale == "en":
        return f"{starts_at:%b} {starts_at.day}, {starts_at:%I:%M %p}"
    return f"{starts_at:%m}月{starts_at:%d}日 {starts_at:%H}:{starts_at:%M}"


def _as_event_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=EVENT_TIMEZONE)
    return value.astimezone(EVENT_TIMEZONE)


class EventEnricher:
    """
    Turns publishable validated records into processed events without city mappings.
    """

    def __init__(self, *, locale: str = "zh") -> None:
        self._locale = locale

    def enrich(self, record: ValidatedRecord, *, now: datetime) -> ProcessedEvent:
        values = {item.name: getattr(record, item.name) for item in fields(ValidatedRecord)}
        year = _as_event_time(now).year
        return ProcessedEvent(
            **values,
            slug=generate_slug(record.title, record.id),
            tags=extract_tags(record.title, record.location_text),
            is_upcoming=is_upcoming(record.time_text, now=now),
            formatted_date=format_event_date(record.time_text, locale=self._locale, year=year),
            city_mappings=(),
        )

    def enrich_all(
        self,
        records: Sequence[ValidatedRecord],
        *,
        now: datetime | None = None,
    ) -> list[ProcessedEvent]:
        reference_time = now or datetime.now(timezone.utc)
        events = [self.enrich(record, now=reference_time) for record in records if record.is_publishable]
        log_event(
            logger,
            logging.INFO,
            "events_enriched",
            events=len(events),
            upcoming=sum(1 for event in events if event.is_upcoming),
        )
        return events
