"""
BeautifulSoup-based extractor for the community listing markup.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup, Tag

from event_ingest.domain.events import RawRecord
from event_ingest.errors import ExtractionError, PageFetchError
from event_ingest.logging_utils import log_event
from event_ingest.scraping.base import PageExtractor, PageResult

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
EVENT_ID_REGEX = re.compile(r"/event/(\d+)")
COUNT_REGEX = re.compile(r"(\d+(?:\.\d+)?)\s*([kKwW万])?")
COUNT_MULTIPLIERS = {"k": 1_000, "w": 10_000, "万": 10_000}
NEXT_PAGE_SELECTOR = 'button[aria-label="Go to next page"]'


class ListingPageExtractor(PageExtractor):
    """
    Fetches listing pages over HTTP and parses event cards.

    Markup: ``ul.event-list > li.event-item`` cards with title, date,
    address, image and a ``.card-img-box`` holding view/favorite counters.
    """

    def __init__(
        self,
        *,
        url_template: str,
        user_agent: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._url_template = url_template
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
        }

    def page_url(self, page_number: int) -> str:
        return self._url_template.format(page=page_number)

    def fetch_page(self, page_number: int) -> PageResult:
        url = self.page_url(page_number)
        try:
            response = self._session.get(
                url,
                headers=self._headers,
                timeout=self._timeout_seconds,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            raise PageFetchError(f"page={page_number} url={url} error={exc}", page_number=page_number) from exc

        if response.status_code >= 400:
            raise PageFetchError(
                f"page={page_number} url={url} status={response.status_code}",
                page_number=page_number,
                retryable=response.status_code in RETRYABLE_STATUS_CODES,
            )

        soup = BeautifulSoup(response.text, "html.parser")
        return self.parse_listing(soup=soup, page_url=url)

    def parse_listing(self, *, soup: BeautifulSoup, page_url: str) -> PageResult:
        """
        Parse one listing document. Cards that fail to parse are skipped.
        """

        discovered_at = datetime.now(timezone.utc)
        records: list[RawRecord] = []
        for index, item in enumerate(soup.select("ul.event-list li.event-item")):
            try:
                records.append(self._parse_item(item, page_url=page_url, discovered_at=discovered_at))
            except ExtractionError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "listing_item_dropped",
                    page_url=page_url,
                    item_index=index,
                    error=str(exc),
                )
        return PageResult(records=records, has_more=self._has_next_page(soup))

    def close(self) -> None:
        self._session.close()

    def _parse_item(self, item: Tag, *, page_url: str, discovered_at: datetime) -> RawRecord:
        link = item.select_one('a[href*="/event/"]')
        if link is None:
            raise ExtractionError("event link not found")

        href = str(link.get("href") or "")
        id_match = EVENT_ID_REGEX.search(href)
        if id_match is None:
            raise ExtractionError(f"event id not found in href={href!r}")

        try:
            url = urljoin(page_url, href)
        except ValueError as exc:
            raise ExtractionError(f"malformed event link href={href!r}") from exc

        views, favorites = self._parse_counters(item)
        return RawRecord(
            id=id_match.group(1),
            title=self._text(item, ".event-item-title"),
            time_text=self._text(item, ".event-item-date"),
            location_text=self._text(item, ".event-item-address-text"),
            url=url,
            image_url=self._image_url(item, page_url=page_url),
            view_count=views,
            favorite_count=favorites,
            discovered_at=discovered_at,
        )

    @staticmethod
    def _text(item: Tag, selector: str) -> str:
        node = item.select_one(selector)
        return node.get_text(strip=True) if node is not None else ""

    @staticmethod
    def _image_url(item: Tag, *, page_url: str) -> str:
        image = item.select_one("img")
        if image is None:
            return ""
        for attribute in ("src", "data-src", "data-original"):
            value = str(image.get(attribute) or "").strip()
            if not value:
                continue
            try:
                return urljoin(page_url, value)
            except ValueError:
                return value
        return ""

    @classmethod
    def _parse_counters(cls, item: Tag) -> tuple[int | None, int | None]:
        box = item.select_one(".card-img-box")
        if box is None:
            return None, None
        spans = box.select("span")
        if len(spans) < 2:
            return None, None
        return cls.parse_count(spans[0].get_text(strip=True)), cls.parse_count(spans[1].get_text(strip=True))

    @staticmethod
    def parse_count(text: str) -> int | None:
        match = COUNT_REGEX.search(text.replace(",", ""))
        if match is None:
            return None
        value = float(match.group(1))
        suffix = (match.group(2) or "").lower()
        return int(value * COUNT_MULTIPLIERS.get(suffix, 1))

    @staticmethod
    def _has_next_page(soup: BeautifulSoup) -> bool:
        button = soup.select_one(NEXT_PAGE_SELECTOR)
        if button is None:
            return soup.select_one('a[rel="next"]') is not None

        classes = button.get("class") or []
        disabled = (
            button.has_attr("disabled")
            or str(button.get("aria-disabled", "")).lower() == "true"
            or "disabled" in classes
            or "is-disabled" in classes
        )
        return not disabled
