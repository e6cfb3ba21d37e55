"""
tests/test_images.py

Pytest unit tests for ImageDownloader with a scripted HTTP session.
"""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
import requests

from event_ingest.errors import ImageDownloadError
from event_ingest.scraping.backoff import BackoffPolicy
from event_ingest.scraping.images import ImageDownloader, TransientImageError
from fakes import SleepRecorder, make_record


class FakeImageResponse:
    def __init__(self, status_code: int = 200, body: bytes = b"image-bytes") -> None:
        self.status_code = status_code
        self._body = body

    def __enter__(self) -> "FakeImageResponse":
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self._body), chunk_size):
            yield self._body[start:start + chunk_size]


class FakeImageSession:
    """
    Serves scripted outcomes per URL; the last outcome repeats.
    """

    def __init__(self, outcomes: dict[str, list[object]]) -> None:
        self._outcomes = {url: list(items) for url, items in outcomes.items()}
        self._lock = threading.Lock()
        self.calls: list[str] = []
        self.headers: list[dict] = []

    def get(self, url: str, **kwargs: object) -> FakeImageResponse:
        with self._lock:
            self.calls.append(url)
            self.headers.append(dict(kwargs.get("headers") or {}))
            items = self._outcomes.get(url) or [FakeImageResponse(404)]
            outcome = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome  # type: ignore[return-value]


def _downloader(tmp_path: Path, session: FakeImageSession, sleep: SleepRecorder | None = None) -> ImageDownloader:
    return ImageDownloader(
        image_dir=tmp_path / "images",
        user_agent="event-ingest-tests",
        referer="https://community.example.com/",
        max_workers=3,
        backoff=BackoffPolicy(max_retries=2, base_seconds=0.5, jitter_seconds=0.0),
        session=session,  # type: ignore[arg-type]
        sleep=sleep or SleepRecorder(),
    )


# ---------------------------------------------------------------------------
# Single downloads
# ---------------------------------------------------------------------------


class TestDownload:
    def test_writes_file_named_after_record(self, tmp_path: Path) -> None:
        url = "https://cdn.example.com/posters/a.PNG"
        session = FakeImageSession({url: [FakeImageResponse(200, b"png-data")]})
        downloader = _downloader(tmp_path, session)
        (tmp_path / "images").mkdir()

        filename = downloader.download(url, name="1001")

        assert filename == "1001.png"
        assert (tmp_path / "images" / "1001.png").read_bytes() == b"png-data"
        assert session.headers[0]["Referer"] == "https://community.example.com/"
        assert session.headers[0]["User-Agent"] == "event-ingest-tests"

    def test_default_extension_and_safe_name(self, tmp_path: Path) -> None:
        url = "https://cdn.example.com/poster"
        downloader = _downloader(tmp_path, FakeImageSession({url: [FakeImageResponse()]}))
        (tmp_path / "images").mkdir()

        assert downloader.download(url, name="https://example.com/event/9") == "https___example_com_event_9.jpg"

    def test_existing_file_is_not_downloaded_again(self, tmp_path: Path) -> None:
        url = "https://cdn.example.com/1.jpg"
        session = FakeImageSession({url: [FakeImageResponse()]})
        image_dir = tmp_path / "images"
        image_dir.mkdir()
        (image_dir / "1.jpg").write_bytes(b"cached")

        assert _downloader(tmp_path, session).download(url, name="1") == "1.jpg"
        assert session.calls == []

    @pytest.mark.parametrize("url", ["data:image/png;base64,AAAA", "http://[bad-host/x.jpg"])
    def test_unusable_url_is_rejected(self, tmp_path: Path, url: str) -> None:
        session = FakeImageSession({})

        with pytest.raises(ImageDownloadError) as exc_info:
            _downloader(tmp_path, session).download(url, name="1")

        assert not isinstance(exc_info.value, TransientImageError)
        assert session.calls == []

    @pytest.mark.parametrize(
        ("outcome", "error"),
        [
            (FakeImageResponse(503), TransientImageError),
            (requests.Timeout("slow"), TransientImageError),
            (requests.ConnectionError("reset"), TransientImageError),
            (FakeImageResponse(404), ImageDownloadError),
            (requests.TooManyRedirects("loop"), ImageDownloadError),
        ],
    )
    def test_failure_classification(self, tmp_path: Path, outcome: object, error: type) -> None:
        url = "https://cdn.example.com/1.jpg"
        downloader = _downloader(tmp_path, FakeImageSession({url: [outcome]}))
        (tmp_path / "images").mkdir()

        with pytest.raises(error) as exc_info:
            downloader.download(url, name="1")

        if error is ImageDownloadError:
            assert not isinstance(exc_info.value, TransientImageError)


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class TestDownloadAll:
    def test_sets_local_image_and_keeps_order(self, tmp_path: Path) -> None:
        records = [make_record(n) for n in range(1, 6)]
        session = FakeImageSession({record.image_url: [FakeImageResponse()] for record in records})

        results = _downloader(tmp_path, session).download_all(records)

        assert [record.id for record in results] == ["1", "2", "3", "4", "5"]
        assert [record.local_image for record in results] == [f"{n}.jpg" for n in range(1, 6)]
        assert sorted(path.name for path in (tmp_path / "images").iterdir()) == [f"{n}.jpg" for n in range(1, 6)]

    def test_transient_failures_are_retried(self, tmp_path: Path) -> None:
        record = make_record(1)
        sleeps = SleepRecorder()
        session = FakeImageSession(
            {record.image_url: [FakeImageResponse(503), requests.Timeout("slow"), FakeImageResponse()]}
        )

        results = _downloader(tmp_path, session, sleeps).download_all([record])

        assert results[0].local_image == "1.jpg"
        assert len(session.calls) == 3
        assert sleeps.calls == [0.5, 1.0]

    def test_failed_download_does_not_fail_the_record(self, tmp_path: Path) -> None:
        good, bad = make_record(1), make_record(2)
        session = FakeImageSession(
            {good.image_url: [FakeImageResponse()], bad.image_url: [FakeImageResponse(503)]}
        )

        results = _downloader(tmp_path, session).download_all([good, bad])

        assert results[0].local_image == "1.jpg"
        assert results[1].local_image is None
        assert results[1].title == bad.title

    def test_records_without_image_are_passed_through(self, tmp_path: Path) -> None:
        record = make_record(1, image_url="")
        session = FakeImageSession({})

        results = _downloader(tmp_path, session).download_all([record])

        assert results[0].local_image is None
        assert session.calls == []

    def test_empty_batch(self, tmp_path: Path) -> None:
        assert _downloader(tmp_path, FakeImageSession({})).download_all([]) == []

    def test_malformed_url_does_not_stop_the_batch(self, tmp_path: Path) -> None:
        good = make_record(1)
        malformed = make_record(2, image_url="http://[bad-host/x.jpg")
        missing = make_record(3, image_url="")
        sleeps = SleepRecorder()
        session = FakeImageSession({good.image_url: [FakeImageResponse()]})

        results = _downloader(tmp_path, session, sleeps).download_all([missing, malformed, good])

        assert [record.local_image for record in results] == [None, None, "1.jpg"]
        assert session.calls == [good.image_url]
        assert sleeps.calls == []
