"""
Domain model exports.
"""

from event_ingest.domain.cities import City, CityName, MappingResult, MatchRule, MatchType
from event_ingest.domain.events import (
    CleanedRecord,
    IssueCode,
    ProcessedEvent,
    RawRecord,
    ValidatedRecord,
    ValidationStatus,
)

__all__ = [
    "City",
    "CityName",
    "CleanedRecord",
    "IssueCode",
    "MappingResult",
    "MatchRule",
    "MatchType",
    "ProcessedEvent",
    "RawRecord",
    "ValidatedRecord",
    "ValidationStatus",
]
