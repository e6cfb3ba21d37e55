"""
Aggregate statistics over processed events.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from event_ingest.domain.events import ProcessedEvent
from event_ingest.domain.reporting import EngagementMetrics, EventStats, MappingCoverage, TopEvent
from event_ingest.normalization.numbers import ratio, round_half_up

TOP_EVENT_LIMIT = 5
TIME_BUCKET_LENGTH = 5


class StatisticsAggregator:
    """
    Computes counts, engagement, mapping coverage and time distribution.
    """

    def aggregate(
        self,
        events: Sequence[ProcessedEvent],
        now: datetime | None = None,
    ) -> EventStats:
        total = len(events)
        upcoming = sum(1 for event in events if event.is_upcoming)

        city_distribution: Counter[str] = Counter()
        time_distribution: Counter[str] = Counter()
        for event in events:
            city_distribution.update(event.city_ids)
            if event.time_text:
                time_distribution[event.time_text[:TIME_BUCKET_LENGTH]] += 1

        mapped = sum(1 for event in events if event.city_mappings)
        coverage = MappingCoverage(
            total_events=total,
            mapped_events=mapped,
            unmapped_events=total - mapped,
            mapping_success_rate=ratio(mapped, total),
        )

        return EventStats(
            total_events=total,
            upcoming_events=upcoming,
            past_events=total - upcoming,
            city_distribution=dict(city_distribution),
            engagement=self._engagement(events),
            mapping=coverage,
            time_distribution=dict(time_distribution),
            last_updated=now or datetime.now(timezone.utc),
        )

    def _engagement(self, events: Sequence[ProcessedEvent]) -> EngagementMetrics:
        total = len(events)
        total_views = sum(event.view_count or 0 for event in events)
        total_favorites = sum(event.favorite_count or 0 for event in events)
        return EngagementMetrics(
            total_views=total_views,
            total_favorites=total_favorites,
            average_views=int(round_half_up(total_views / total)) if total else 0,
            average_favorites=int(round_half_up(total_favorites / total)) if total else 0,
            top_viewed_events=self._top(events, lambda event: event.view_count or 0),
            top_favorited_events=self._top(events, lambda event: event.favorite_count or 0),
        )

    @staticmethod
    def _top(
        events: Sequence[ProcessedEvent],
        metric: Callable[[ProcessedEvent], int],
    ) -> list[TopEvent]:
        ranked = sorted((event for event in events if metric(event) > 0), key=metric, reverse=True)
        return [
            TopEvent(id=event.id, title=event.title, value=metric(event))
            for event in ranked[:TOP_EVENT_LIMIT]
        ]
