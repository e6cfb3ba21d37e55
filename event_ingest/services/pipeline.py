"""
event_ingest/services/pipeline.py

End-to-end orchestration: crawl new events, persist them, then rebuild the
published artifacts from the full dataset.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from event_ingest.config import PipelineSettings, get_pipeline_settings
from event_ingest.domain.events import ProcessedEvent, RawRecord
from event_ingest.domain.pipeline import CrawlResult, CrawlStopReason, PipelineRunSummary
from event_ingest.domain.reporting import CityEventGroup, EventStats, MappingStats, QualityReport
from event_ingest.errors import SetupError
from event_ingest.logging_utils import log_event
from event_ingest.mappers.city_mapper import CityMappingEngine
from event_ingest.normalization.event_cleaner import EventCleaner
from event_ingest.schemas.artifacts import (
    EventStatsSchema,
    ProcessedEventSchema,
    QualityReportSchema,
    city_mappings_document,
)
from event_ingest.scraping.backoff import BackoffPolicy
from event_ingest.scraping.base import PageExtractor
from event_ingest.scraping.images import ImageDownloader
from event_ingest.scraping.pagination import CrawlMode, PaginationController
from event_ingest.scraping.parsing.listing_parser import ListingPageExtractor
from event_ingest.scraping.rate_limiter import InterPageDelay
from event_ingest.services.deduplication import Deduplicator
from event_ingest.services.enrichment import EventEnricher
from event_ingest.services.quality_report import QualityReportBuilder, crawl_details
from event_ingest.services.statistics import StatisticsAggregator
from event_ingest.storage.atomic import write_json_atomic
from event_ingest.storage.json_store import JsonEventStore
from event_ingest.storage.reference_data import load_cities
from event_ingest.validators.event_validator import EventValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessingOutcome:
    """
    Everything derived from one pass over the dataset.
    """

    events: list[ProcessedEvent]
    groups: list[CityEventGroup]
    stats: EventStats
    mapping_stats: MappingStats
    report: QualityReport


class EventPipelineService:
    """
    Runs crawl, persistence, processing and artifact publication.
    """

    def __init__(
        self,
        *,
        settings: PipelineSettings | None = None,
        store: JsonEventStore | None = None,
        extractor_factory: Callable[[PipelineSettings], PageExtractor] | None = None,
        image_downloader: ImageDownloader | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings or get_pipeline_settings()
        self._store = store or JsonEventStore(path=self._settings.dataset_path)
        self._extractor_factory = extractor_factory or self._default_extractor
        self._image_downloader = image_downloader
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep

        self._deduplicator = Deduplicator()
        self._cleaner = EventCleaner()
        self._validator = EventValidator()
        self._enricher = EventEnricher()
        self._aggregator = StatisticsAggregator()
        self._report_builder = QualityReportBuilder()

    def run(self, mode: CrawlMode = CrawlMode.INCREMENTAL, *, force: bool = False) -> PipelineRunSummary:
        now = self._clock()
        cities = load_cities(path=self._settings.cities_path)
        engine = CityMappingEngine(cities, similarity_threshold=self._settings.similarity_threshold)

        log_event(logger, logging.INFO, "pipeline_started", mode=mode.value, force=force)

        crawl: dict[str, Any] | None = None
        crawled = False
        new_records: list[RawRecord] = []
        records_added = 0
        used_fallback = False
        fallback_reason: str | None = None
        skipped_reason = self._freshness_skip_reason(now=now, force=force)

        if skipped_reason is None:
            try:
                result = self._crawl(mode)
            except SetupError:
                raise
            except Exception as exc:
                fallback_reason = f"{type(exc).__name__}: {exc}"
                result = None
            else:
                if result.stop_reason is CrawlStopReason.PAGE_FAILURES and result.pages_walked == 0:
                    fallback_reason = "; ".join(result.errors) or "every listing page failed"

            if fallback_reason is not None:
                used_fallback = True
                if not self._store.exists():
                    raise SetupError(f"Crawl failed and no persisted dataset is available: {fallback_reason}")
                log_event(logger, logging.WARNING, "crawl_fallback", reason=fallback_reason)
            if result is not None:
                crawled = True
                crawl = crawl_details(result, mode=mode.value)
                new_records = self._accept_new_records(result, now=now)
                records_added = self._store.commit(new_records)
        else:
            log_event(logger, logging.INFO, "crawl_skipped", reason=skipped_reason)

        dataset = list(self._store.snapshot().records)
        outcome = self.process(
            dataset,
            engine=engine,
            crawl=crawl,
            used_fallback=used_fallback,
            fallback_reason=fallback_reason,
            now=now,
        )
        artifacts = self.write_artifacts(outcome)

        summary = PipelineRunSummary(
            mode=mode.value,
            crawled=crawled,
            new_records=len(new_records),
            records_added=records_added,
            dataset_records=len(dataset),
            published_events=len(outcome.events),
            quality_score=outcome.report.data_quality_score,
            used_fallback=used_fallback,
            fallback_reason=fallback_reason,
            skipped_reason=skipped_reason,
            artifacts=artifacts,
        )
        log_event(
            logger,
            logging.INFO,
            "pipeline_completed",
            mode=summary.mode,
            crawled=summary.crawled,
            records_added=summary.records_added,
            published_events=summary.published_events,
            quality_score=summary.quality_score,
            used_fallback=summary.used_fallback,
        )
        return summary

    def process(
        self,
        records: Sequence[RawRecord],
        *,
        engine: CityMappingEngine,
        crawl: dict[str, Any] | None = None,
        used_fallback: bool = False,
        fallback_reason: str | None = None,
        now: datetime | None = None,
    ) -> ProcessingOutcome:
        """
        Dedupe, clean, validate, enrich, map and aggregate a full dataset.
        """

        reference_time = now or self._clock()
        deduplication = self._deduplicator.dedupe(records)
        cleaning = self._cleaner.clean_all(deduplication.unique)
        validation = self._validator.validate_all(cleaning.cleaned)
        enriched = self._enricher.enrich_all(validation.records, now=reference_time)
        events = engine.map_all(enriched, min_confidence=self._settings.min_mapping_confidence)

        report = self._report_builder.report(
            records,
            deduplication,
            cleaning,
            validation,
            crawl=crawl,
            used_fallback=used_fallback,
            fallback_reason=fallback_reason,
            now=reference_time,
        )
        return ProcessingOutcome(
            events=events,
            groups=engine.group_by_city(events, now=reference_time),
            stats=self._aggregator.aggregate(events, now=reference_time),
            mapping_stats=engine.mapping_stats(events),
            report=report,
        )

    def write_artifacts(self, outcome: ProcessingOutcome) -> dict[str, str]:
        documents = {
            "processed_events": (
                self._settings.processed_events_path,
                [ProcessedEventSchema.from_domain(event).to_json_dict() for event in outcome.events],
            ),
            "city_mappings": (
                self._settings.city_mappings_path,
                city_mappings_document(outcome.groups),
            ),
            "event_stats": (
                self._settings.event_stats_path,
                EventStatsSchema.from_domain(outcome.stats, outcome.mapping_stats).to_json_dict(),
            ),
            "quality_report": (
                self._settings.quality_report_path,
                QualityReportSchema.from_domain(outcome.report).to_json_dict(),
            ),
        }

        written: dict[str, str] = {}
        for name, (path, payload) in documents.items():
            try:
                write_json_atomic(path, payload)
            except OSError as exc:
                raise SetupError(f"Unable to write artifact {path}: {exc}") from exc
            written[name] = str(path)
            log_event(logger, logging.INFO, "artifact_written", artifact=name, path=path)
        return written

    def _freshness_skip_reason(self, *, now: datetime, force: bool) -> str | None:
        if force:
            return None
        modified_at = self._store.modified_at()
        if modified_at is None:
            return None
        age = now - modified_at
        if age < timedelta(hours=self._settings.freshness_max_age_hours):
            return f"dataset is {age.total_seconds() / 3600:.1f}h old"
        return None

    def _crawl(self, mode: CrawlMode) -> CrawlResult:
        settings = self._settings
        extractor = self._extractor_factory(settings)
        controller = PaginationController(
            extractor=extractor,
            store=self._store,
            delay=InterPageDelay(
                min_seconds=settings.min_page_delay_seconds,
                max_seconds=settings.max_page_delay_seconds,
                sleep=self._sleep,
            ),
            backoff=self._backoff_policy(),
            max_empty_pages=settings.max_empty_pages,
            incremental_stop_threshold=settings.incremental_stop_threshold,
            max_consecutive_page_failures=settings.max_consecutive_page_failures,
            sleep=self._sleep,
        )
        try:
            return controller.run(mode)
        finally:
            extractor.close()

    def _accept_new_records(self, result: CrawlResult, *, now: datetime) -> list[RawRecord]:
        snapshot = self._store.snapshot()
        deduplication = self._deduplicator.dedupe(result.records, prior=snapshot.records)
        accepted = [
            record if record.discovered_at else replace(record, discovered_at=now)
            for record in deduplication.unique
        ]
        if self._settings.download_images and accepted:
            accepted = self._images().download_all(accepted)
        return accepted

    def _images(self) -> ImageDownloader:
        if self._image_downloader is None:
            settings = self._settings
            self._image_downloader = ImageDownloader(
                image_dir=settings.image_dir,
                user_agent=settings.user_agent,
                referer=settings.listing_url_template.format(page=1),
                timeout_seconds=settings.timeout_seconds,
                max_workers=settings.image_workers,
                backoff=self._backoff_policy(),
                sleep=self._sleep,
            )
        return self._image_downloader

    def _backoff_policy(self) -> BackoffPolicy:
        settings = self._settings
        return BackoffPolicy(
            max_retries=settings.max_retries,
            base_seconds=settings.backoff_base_seconds,
            multiplier=settings.backoff_multiplier,
            jitter_seconds=settings.backoff_jitter_seconds,
            max_seconds=settings.backoff_max_seconds,
        )

    @staticmethod
    def _default_extractor(settings: PipelineSettings) -> PageExtractor:
        return ListingPageExtractor(
            url_template=settings.listing_url_template,
            user_agent=settings.user_agent,
            timeout_seconds=settings.timeout_seconds,
        )
