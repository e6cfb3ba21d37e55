"""
Bounded-parallel image downloads for newly discovered events.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from urllib.parse import urlparse

import requests

from event_ingest.domain.events import RawRecord
from event_ingest.errors import ImageDownloadError
from event_ingest.logging_utils import log_event
from event_ingest.scraping.backoff import BackoffPolicy, run_with_backoff

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
SAFE_NAME_REGEX = re.compile(r"[^A-Za-z0-9_-]")


class TransientImageError(ImageDownloadError):
    """
    Download failure worth retrying.
    """


class ImageDownloader:
    """
    Downloads event images into `image_dir` using a small worker pool.

    A failed download never fails its record; the record simply keeps no
    local image reference.
    """

    def __init__(
        self,
        *,
        image_dir: Path,
        user_agent: str,
        referer: str | None = None,
        timeout_seconds: float = 30.0,
        max_workers: int = 4,
        backoff: BackoffPolicy | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._image_dir = image_dir
        self._timeout_seconds = timeout_seconds
        self._max_workers = max(1, max_workers)
        self._backoff = backoff or BackoffPolicy(max_retries=2, base_seconds=0.5)
        self._session = session or requests.Session()
        self._sleep = sleep
        self._headers = {"User-Agent": user_agent}
        if referer:
            self._headers["Referer"] = referer

    def download_all(self, records: Sequence[RawRecord]) -> list[RawRecord]:
        """
        Return new records with `local_image` set where the download succeeded.

        Output order matches input order.
        """

        if not records:
            return []

        self._image_dir.mkdir(parents=True, exist_ok=True)
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            results = list(pool.map(self._download_record, records))

        downloaded = sum(1 for record in results if record.local_image)
        log_event(
            logger,
            logging.INFO,
            "images_downloaded",
            requested=sum(1 for record in records if record.image_url),
            downloaded=downloaded,
        )
        return results

    def _download_record(self, record: RawRecord) -> RawRecord:
        if not record.image_url or not record.identity:
            return replace(record, local_image=None)
        try:
            filename = run_with_backoff(
                lambda: self.download(record.image_url, name=record.identity),
                policy=self._backoff,
                retry_on=(TransientImageError,),
                sleep=self._sleep,
            )
        except ImageDownloadError as exc:
            log_event(
                logger,
                logging.WARNING,
                "image_download_failed",
                event_id=record.id,
                image_url=record.image_url,
                error=str(exc),
            )
            return replace(record, local_image=None)
        return replace(record, local_image=filename)

    def download(self, image_url: str, *, name: str) -> str:
        """
        Download one image and return its filename inside `image_dir`.
        """

        try:
            parsed = urlparse(image_url)
        except ValueError as exc:
            raise ImageDownloadError(f"Malformed image URL: {image_url}") from exc
        if parsed.scheme not in {"http", "https"}:
            raise ImageDownloadError(f"Unsupported image URL: {image_url}")

        extension = Path(parsed.path).suffix.lower() or ".jpg"
        filename = f"{SAFE_NAME_REGEX.sub('_', name)}{extension}"
        target = self._image_dir / filename
        if target.exists():
            return filename

        try:
            response = self._session.get(
                image_url,
                headers=self._headers,
                timeout=self._timeout_seconds,
                stream=True,
                allow_redirects=True,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise TransientImageError(f"{image_url}: {exc}") from exc
        except requests.RequestException as exc:
            raise ImageDownloadError(f"{image_url}: {exc}") from exc

        with response:
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise TransientImageError(f"{image_url}: status={response.status_code}")
            if response.status_code != 200:
                raise ImageDownloadError(f"{image_url}: status={response.status_code}")
            self._write(target, response)
        return filename

    def _write(self, target: Path, response: requests.Response) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
        try:
            with os.fdopen(fd, "wb") as handle:
                for chunk in response.iter_content(chunk_size=64 * 1024):
                    if chunk:
                        handle.write(chunk)
            os.replace(tmp_name, target)
        except (OSError, requests.RequestException) as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise ImageDownloadError(f"Unable to store image {target.name}: {exc}") from exc
