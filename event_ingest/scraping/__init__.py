"""
Listing walk, page extraction and image download components.
"""

from event_ingest.scraping.backoff import BackoffPolicy, run_with_backoff
from event_ingest.scraping.base import PageExtractor, PageResult
from event_ingest.scraping.images import ImageDownloader
from event_ingest.scraping.pagination import CrawlMode, PaginationController, WalkState
from event_ingest.scraping.rate_limiter import InterPageDelay

__all__ = [
    "BackoffPolicy",
    "CrawlMode",
    "ImageDownloader",
    "InterPageDelay",
    "PageExtractor",
    "PageResult",
    "PaginationController",
    "WalkState",
    "run_with_backoff",
]
