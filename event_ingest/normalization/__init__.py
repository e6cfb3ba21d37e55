"""
Record normalization: text cleanup, time formats, URLs and counters.
"""

from event_ingest.normalization.event_cleaner import EventCleaner, coerce_count, normalize_time_text
from event_ingest.normalization.numbers import ratio, round_half_up
from event_ingest.normalization.text import canonical_url, clean_text, comparison_key

__all__ = [
    "EventCleaner",
    "canonical_url",
    "clean_text",
    "coerce_count",
    "comparison_key",
    "normalize_time_text",
    "ratio",
    "round_half_up",
]
