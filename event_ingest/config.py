"""
event_ingest/config.py

Environment-driven settings for the event ingestion pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_LISTING_URL_TEMPLATE = "https://usergroup.huodongxing.com/?page={page}"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    project_root = _project_root()
    for filename in (".env", ".env.local"):
        env_path = project_root / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    _load_env_once()
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    raw = os.getenv(name)
    if raw is None:
        return default
    stripped = raw.strip()
    return stripped if stripped else default


def _resolve_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


@dataclass(frozen=True)
class PipelineSettings:
    """
    Runtime settings for one pipeline run.
    """

    data_dir: Path
    dataset_path: Path
    cities_path: Path
    output_dir: Path
    quality_report_path: Path
    image_dir: Path
    log_path: Path
    log_level: str = "INFO"

    listing_url_template: str = DEFAULT_LISTING_URL_TEMPLATE
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0

    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_multiplier: float = 2.0
    backoff_jitter_seconds: float = 1.0
    backoff_max_seconds: float = 30.0

    min_page_delay_seconds: float = 3.0
    max_page_delay_seconds: float = 5.0
    max_empty_pages: int = 3
    incremental_stop_threshold: int = 2
    max_consecutive_page_failures: int = 3

    download_images: bool = True
    image_workers: int = 4

    freshness_max_age_hours: float = 24.0
    min_mapping_confidence: float = 0.5
    similarity_threshold: float = 0.6

    @property
    def processed_events_path(self) -> Path:
        return self.output_dir / "processed-events.json"

    @property
    def city_mappings_path(self) -> Path:
        return self.output_dir / "city-mappings.json"

    @property
    def event_stats_path(self) -> Path:
        return self.output_dir / "event-stats.json"


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    """
    Return cached pipeline settings from environment variables.
    """

    data_dir = _resolve_path(_get_str_env("EVENT_PIPELINE_DATA_DIR", "data/events"))
    min_delay = max(0.0, _get_float_env("EVENT_PIPELINE_MIN_PAGE_DELAY_SECONDS", 3.0))
    max_delay = max(min_delay, _get_float_env("EVENT_PIPELINE_MAX_PAGE_DELAY_SECONDS", 5.0))

    return PipelineSettings(
        data_dir=data_dir,
        dataset_path=_resolve_path(
            _get_str_env("EVENT_PIPELINE_DATASET_PATH", str(data_dir / "events.json"))
        ),
        cities_path=_resolve_path(_get_str_env("EVENT_PIPELINE_CITIES_PATH", "data/cities.json")),
        output_dir=_resolve_path(_get_str_env("EVENT_PIPELINE_OUTPUT_DIR", "data/processed")),
        quality_report_path=_resolve_path(
            _get_str_env("EVENT_PIPELINE_QUALITY_REPORT_PATH", str(data_dir / "quality-report.json"))
        ),
        image_dir=_resolve_path(_get_str_env("EVENT_PIPELINE_IMAGE_DIR", str(data_dir / "images"))),
        log_path=_resolve_path(_get_str_env("EVENT_PIPELINE_LOG_PATH", str(data_dir / "scraper.log"))),
        log_level=_get_str_env("LOG_LEVEL", "INFO").upper(),
        listing_url_template=_get_str_env(
            "EVENT_PIPELINE_LISTING_URL_TEMPLATE",
            DEFAULT_LISTING_URL_TEMPLATE,
        ),
        user_agent=_get_str_env("EVENT_PIPELINE_USER_AGENT", DEFAULT_USER_AGENT),
        timeout_seconds=max(1.0, _get_float_env("EVENT_PIPELINE_TIMEOUT_SECONDS", 30.0)),
        max_retries=max(0, _get_int_env("EVENT_PIPELINE_MAX_RETRIES", 3)),
        backoff_base_seconds=max(0.0, _get_float_env("EVENT_PIPELINE_BACKOFF_BASE_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("EVENT_PIPELINE_BACKOFF_MULTIPLIER", 2.0)),
        backoff_jitter_seconds=max(0.0, _get_float_env("EVENT_PIPELINE_BACKOFF_JITTER_SECONDS", 1.0)),
        backoff_max_seconds=max(0.0, _get_float_env("EVENT_PIPELINE_BACKOFF_MAX_SECONDS", 30.0)),
        min_page_delay_seconds=min_delay,
        max_page_delay_seconds=max_delay,
        max_empty_pages=max(1, _get_int_env("EVENT_PIPELINE_MAX_EMPTY_PAGES", 3)),
        incremental_stop_threshold=max(
            1,
            _get_int_env("EVENT_PIPELINE_INCREMENTAL_STOP_THRESHOLD", 2),
        ),
        max_consecutive_page_failures=max(
            1,
            _get_int_env("EVENT_PIPELINE_MAX_CONSECUTIVE_PAGE_FAILURES", 3),
        ),
        download_images=_get_bool_env("EVENT_PIPELINE_DOWNLOAD_IMAGES", True),
        image_workers=max(1, _get_int_env("EVENT_PIPELINE_IMAGE_WORKERS", 4)),
        freshness_max_age_hours=max(0.0, _get_float_env("EVENT_PIPELINE_FRESHNESS_HOURS", 24.0)),
        min_mapping_confidence=min(
            1.0,
            max(0.0, _get_float_env("EVENT_PIPELINE_MIN_MAPPING_CONFIDENCE", 0.5)),
        ),
        similarity_threshold=min(
            1.0,
            max(0.0, _get_float_env("EVENT_PIPELINE_SIMILARITY_THRESHOLD", 0.6)),
        ),
    )
