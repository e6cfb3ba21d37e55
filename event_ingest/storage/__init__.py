"""
Storage layer exports.
"""

from event_ingest.storage.atomic import write_json_atomic
from event_ingest.storage.base import DatasetSnapshot, KnownIdStore
from event_ingest.storage.json_store import JsonEventStore
from event_ingest.storage.reference_data import load_cities

__all__ = [
    "DatasetSnapshot",
    "JsonEventStore",
    "KnownIdStore",
    "load_cities",
    "write_json_atomic",
]
