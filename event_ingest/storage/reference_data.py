"""
City reference data loader.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from event_ingest.domain.cities import City
from event_ingest.errors import SetupError
from event_ingest.logging_utils import log_event
from event_ingest.schemas.dataset import CitySchema

logger = logging.getLogger(__name__)


def load_cities(*, path: Path) -> list[City]:
    """
    Load the city reference file. Missing or malformed data is fatal.
    """

    if not path.exists():
        raise SetupError(f"City reference data not found: {path}")

    try:
        raw_data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise SetupError(f"Unable to read city reference data {path}: {exc}") from exc

    if isinstance(raw_data, dict):
        raw_data = raw_data.get("cities", [])
    if not isinstance(raw_data, list):
        raise SetupError("Invalid city reference data: expected a list of cities.")

    try:
        cities = [CitySchema.model_validate(entry).to_domain() for entry in raw_data]
    except ValidationError as exc:
        raise SetupError(f"Invalid city reference data in {path}: {exc}") from exc

    if not any(city.active for city in cities):
        raise SetupError(f"City reference data {path} has no active cities.")

    log_event(
        logger,
        logging.INFO,
        "cities_loaded",
        path=path,
        cities=len(cities),
        active=sum(1 for city in cities if city.active),
    )
    return cities
