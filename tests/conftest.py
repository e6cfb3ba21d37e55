from __future__ import annotations

from pathlib import Path

import pytest

from event_ingest.config import PipelineSettings
from event_ingest.domain.cities import City, CityName
from fakes import SleepRecorder


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def cities() -> list[City]:
    return [
        City(id="beijing", name=CityName(zh="北京", en="Beijing")),
        City(id="shanghai", name=CityName(zh="上海", en="Shanghai")),
        City(id="shenzhen", name=CityName(zh="深圳", en="Shenzhen")),
        City(id="guangzhou", name=CityName(zh="广州", en="Guangzhou")),
        City(id="urumqi", name=CityName(zh="乌鲁木齐", en="Urumqi")),
        City(id="hongkong", name=CityName(zh="香港", en="Hong Kong"), active=False),
    ]


@pytest.fixture()
def settings(tmp_path: Path) -> PipelineSettings:
    data_dir = tmp_path / "data" / "events"
    return PipelineSettings(
        data_dir=data_dir,
        dataset_path=data_dir / "events.json",
        cities_path=tmp_path / "data" / "cities.json",
        output_dir=tmp_path / "data" / "processed",
        quality_report_path=data_dir / "quality-report.json",
        image_dir=data_dir / "images",
        log_path=data_dir / "scraper.log",
        max_retries=1,
        backoff_base_seconds=0.0,
        backoff_jitter_seconds=0.0,
        min_page_delay_seconds=0.0,
        max_page_delay_seconds=0.0,
        download_images=False,
    )
