"""
event_ingest/domain/cities.py

City reference data and mapping result types.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class MatchType(str, Enum):
    EXACT = "exact"
    PROVINCE = "province"
    KEYWORD = "keyword"
    FUZZY = "fuzzy"


@dataclass(frozen=True)
class CityName:
    zh: str
    en: str = ""


@dataclass(frozen=True)
class City:
    """
    One canonical city. Loaded once per run and never modified.

    `province_patterns` and `keywords` override the built-in tables when set.
    """

    id: str
    name: CityName
    active: bool = True
    province_patterns: tuple[str, ...] | None = None
    keywords: tuple[str, ...] | None = None


@dataclass(frozen=True)
class MatchRule:
    """
    One compiled location pattern pointing at a city.
    """

    pattern: re.Pattern[str]
    city_id: str
    priority: int
    kind: MatchType


@dataclass(frozen=True)
class MappingResult:
    city_id: str
    confidence: float
    match_type: MatchType
    matched_text: str = ""
