"""
Sequential listing walk with incremental-stop heuristics.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from enum import Enum

from event_ingest.domain.events import RawRecord
from event_ingest.domain.pipeline import CrawlResult, CrawlStopReason
from event_ingest.errors import PageFetchError
from event_ingest.logging_utils import log_event
from event_ingest.scraping.backoff import BackoffPolicy, run_with_backoff
from event_ingest.scraping.base import PageExtractor, PageResult
from event_ingest.scraping.rate_limiter import InterPageDelay
from event_ingest.storage.base import KnownIdStore

logger = logging.getLogger(__name__)


class CrawlMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    QUICK = "quick"


class WalkState(str, Enum):
    WALKING = "walking"
    RETRYING = "retrying"
    STOPPED = "stopped"


QUICK_STOP_THRESHOLD = 1
DEFAULT_INCREMENTAL_STOP_THRESHOLD = 2


class PaginationController:
    """
    Drives a page extractor page by page and collects records not seen before.

    Pages are walked strictly in order on the calling thread. The only waits
    are the randomized inter-page delay and retry backoff sleeps.
    """

    def __init__(
        self,
        *,
        extractor: PageExtractor,
        store: KnownIdStore,
        delay: InterPageDelay,
        backoff: BackoffPolicy | None = None,
        max_empty_pages: int = 3,
        incremental_stop_threshold: int = DEFAULT_INCREMENTAL_STOP_THRESHOLD,
        max_consecutive_page_failures: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._extractor = extractor
        self._store = store
        self._delay = delay
        self._backoff = backoff or BackoffPolicy()
        self._max_empty_pages = max(1, max_empty_pages)
        self._incremental_stop_threshold = max(1, incremental_stop_threshold)
        self._max_consecutive_page_failures = max(1, max_consecutive_page_failures)
        self._sleep = sleep
        self.state = WalkState.STOPPED

    def stop_threshold(self, mode: CrawlMode, incremental_threshold: int | None = None) -> int | None:
        """
        Consecutive pages without new records that end the walk; None means never.
        """

        if mode is CrawlMode.QUICK:
            return QUICK_STOP_THRESHOLD
        if mode is CrawlMode.INCREMENTAL:
            return max(1, incremental_threshold or self._incremental_stop_threshold)
        return None

    def run(
        self,
        mode: CrawlMode = CrawlMode.INCREMENTAL,
        *,
        incremental_threshold: int | None = None,
    ) -> CrawlResult:
        threshold = self.stop_threshold(mode, incremental_threshold)
        known: set[str] = set(self._store.snapshot().ids)

        new_records: list[RawRecord] = []
        errors: list[str] = []
        page_number = 1
        next_rank = 1
        pages_walked = 0
        failed_pages = 0
        consecutive_empty_pages = 0
        consecutive_pages_without_new = 0
        consecutive_page_failures = 0
        stop_reason: CrawlStopReason | None = None

        self.state = WalkState.WALKING
        log_event(
            logger,
            logging.INFO,
            "crawl_started",
            mode=mode.value,
            stop_threshold=threshold,
            max_empty_pages=self._max_empty_pages,
            known_records=len(known),
        )

        while stop_reason is None:
            try:
                page = self._fetch_with_retry(page_number)
            except PageFetchError as exc:
                self.state = WalkState.WALKING
                failed_pages += 1
                consecutive_page_failures += 1
                errors.append(str(exc))
                log_event(
                    logger,
                    logging.ERROR,
                    "page_failed",
                    page=page_number,
                    consecutive_failures=consecutive_page_failures,
                    error=str(exc),
                )
                if consecutive_page_failures >= self._max_consecutive_page_failures:
                    stop_reason = CrawlStopReason.PAGE_FAILURES
                    break
                page_number += 1
                continue

            self.state = WalkState.WALKING
            consecutive_page_failures = 0
            pages_walked += 1

            ranked = [
                replace(record, sort_rank=next_rank + offset)
                for offset, record in enumerate(page.records)
            ]
            next_rank += len(ranked)
            fresh = self._select_new(ranked, known)

            log_event(
                logger,
                logging.INFO,
                "page_scraped",
                page=page_number,
                records=len(ranked),
                new_records=len(fresh),
                has_more=page.has_more,
            )

            if not ranked:
                consecutive_empty_pages += 1
                if consecutive_empty_pages >= self._max_empty_pages:
                    stop_reason = CrawlStopReason.EMPTY_PAGES
                    break
            else:
                consecutive_empty_pages = 0
                if not fresh:
                    consecutive_pages_without_new += 1
                    if threshold is not None and consecutive_pages_without_new >= threshold:
                        stop_reason = CrawlStopReason.NO_NEW_RECORDS
                        break
                else:
                    consecutive_pages_without_new = 0
                    new_records.extend(fresh)

            if not page.has_more:
                stop_reason = CrawlStopReason.LAST_PAGE
                break

            self._delay.wait()
            page_number += 1

        self.state = WalkState.STOPPED
        log_event(
            logger,
            logging.INFO,
            "crawl_stopped",
            mode=mode.value,
            stop_reason=stop_reason.value,
            pages_walked=pages_walked,
            failed_pages=failed_pages,
            new_records=len(new_records),
        )
        return CrawlResult(
            records=new_records,
            pages_walked=pages_walked,
            failed_pages=failed_pages,
            stop_reason=stop_reason,
            errors=errors,
        )

    def _fetch_with_retry(self, page_number: int) -> PageResult:
        def on_retry(attempt: int, exc: BaseException, delay: float) -> None:
            self.state = WalkState.RETRYING
            log_event(
                logger,
                logging.WARNING,
                "page_retry",
                page=page_number,
                attempt=attempt,
                delay_seconds=round(delay, 2),
                error=str(exc),
            )

        return run_with_backoff(
            lambda: self._extractor.fetch_page(page_number),
            policy=self._backoff,
            retry_on=(PageFetchError,),
            sleep=self._sleep,
            on_retry=on_retry,
            should_retry=lambda exc: getattr(exc, "retryable", True),
        )

    @staticmethod
    def _select_new(records: list[RawRecord], known: set[str]) -> list[RawRecord]:
        fresh: list[RawRecord] = []
        for record in records:
            identity = record.identity
            if identity is not None:
                if identity in known:
                    continue
                known.add(identity)
            fresh.append(record)
        return fresh
