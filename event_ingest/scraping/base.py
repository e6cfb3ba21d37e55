"""
Page extractor abstraction for listing walks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from event_ingest.domain.events import RawRecord


@dataclass(frozen=True)
class PageResult:
    """
    Records found on one listing page and whether a further page exists.
    """

    records: list[RawRecord] = field(default_factory=list)
    has_more: bool = False


class PageExtractor(ABC):
    """
    Capability interface isolating markup-specific scraping from the pipeline.

    One implementation exists per markup version of the listing site.
    """

    @abstractmethod
    def fetch_page(self, page_number: int) -> PageResult:
        """
        Return the raw records of listing page `page_number` (1-based).

        Raises PageFetchError on transport or pagination failures.
        Individual records that fail to parse are dropped, not raised.
        """

    def close(self) -> None:
        """
        Release any held resources.
        """
