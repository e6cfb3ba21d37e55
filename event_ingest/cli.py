"""
Command-line entry point for the event pipeline.
"""

from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Sequence

from event_ingest.config import get_pipeline_settings
from event_ingest.errors import SetupError
from event_ingest.logging_utils import configure_logging, log_event
from event_ingest.scraping.pagination import CrawlMode
from event_ingest.services.pipeline import EventPipelineService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="event-pipeline",
        description="Crawl community events and publish processed event artifacts.",
    )
    parser.add_argument(
        "mode",
        nargs="?",
        choices=[mode.value for mode in CrawlMode],
        default=CrawlMode.INCREMENTAL.value,
        help="Crawl mode: walk every page, stop after pages without new events, or check page one only.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Crawl even when the persisted dataset is still fresh.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_pipeline_settings()
    try:
        configure_logging(log_path=settings.log_path, level=settings.log_level)
    except OSError as exc:
        configure_logging(level=settings.log_level)
        log_event(logger, logging.ERROR, "pipeline_setup_failed", error=f"Unable to open run log: {exc}")
        return 1

    service = EventPipelineService(settings=settings)
    try:
        summary = service.run(CrawlMode(args.mode), force=args.force)
    except SetupError as exc:
        log_event(logger, logging.ERROR, "pipeline_setup_failed", error=str(exc))
        return 1

    payload = {
        "mode": summary.mode,
        "crawled": summary.crawled,
        "new_records": summary.new_records,
        "records_added": summary.records_added,
        "dataset_records": summary.dataset_records,
        "published_events": summary.published_events,
        "quality_score": summary.quality_score,
        "used_fallback": summary.used_fallback,
        "fallback_reason": summary.fallback_reason,
        "skipped_reason": summary.skipped_reason,
        "artifacts": summary.artifacts,
    }
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
