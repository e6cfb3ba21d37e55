"""
event_ingest/mappers/city_mapper.py

Rule-based city resolution for free-form event location text, with an
edit-distance fallback when no rule produces a confident match.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timezone

import Levenshtein

from event_ingest.domain.cities import City, MappingResult, MatchRule, MatchType
from event_ingest.domain.events import ProcessedEvent
from event_ingest.domain.reporting import CityEventGroup, MappingCoverage, MappingStats
from event_ingest.errors import SetupError
from event_ingest.logging_utils import log_event
from event_ingest.normalization.numbers import ratio

logger = logging.getLogger(__name__)

EXACT_ZH_PRIORITY = 100
EXACT_EN_PRIORITY = 99
PROVINCE_BASE_PRIORITY = 80
FUZZY_PARTIAL_PRIORITY = 60
KEYWORD_BASE_PRIORITY = 40

BASE_CONFIDENCE: dict[MatchType, float] = {
    MatchType.EXACT: 0.95,
    MatchType.PROVINCE: 0.8,
    MatchType.KEYWORD: 0.7,
    MatchType.FUZZY: 0.6,
}
PRIORITY_PIVOT = 50
PRIORITY_BONUS_SCALE = 0.1
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 1.0

EXACT_STOP_CONFIDENCE = 0.9
FALLBACK_TRIGGER_CONFIDENCE = 0.7
DEFAULT_SIMILARITY_THRESHOLD = 0.6
DEFAULT_MIN_CONFIDENCE = 0.5
MAX_MAPPINGS_PER_EVENT = 3

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5
MAX_UNMAPPED_SAMPLES = 20

PROVINCE_PATTERNS: dict[str, tuple[str, ...]] = {
    "北京": ("北京市?", "京"),
    "上海": ("上海市?", "沪"),
    "深圳": ("广东.*深圳", "深圳.*广东", "粤.*深圳"),
    "广州": ("广东.*广州", "广州.*广东", "粤.*广州"),
    "杭州": ("浙江.*杭州", "杭州.*浙江", "浙.*杭州"),
    "成都": ("四川.*成都", "成都.*四川", "川.*成都", "蜀.*成都"),
    "武汉": ("湖北.*武汉", "武汉.*湖北", "鄂.*武汉"),
    "西安": ("陕西.*西安", "西安.*陕西", "陕.*西安", "秦.*西安"),
    "南京": ("江苏.*南京", "南京.*江苏", "苏.*南京"),
    "苏州": ("江苏.*苏州", "苏州.*江苏"),
    "福州": ("福建.*福州", "福州.*福建", "闽.*福州"),
    "厦门": ("福建.*厦门", "厦门.*福建", "闽.*厦门"),
    "合肥": ("安徽.*合肥", "合肥.*安徽", "皖.*合肥"),
    "郑州": ("河南.*郑州", "郑州.*河南", "豫.*郑州"),
    "兰州": ("甘肃.*兰州", "兰州.*甘肃", "甘.*兰州", "陇.*兰州"),
    "乌鲁木齐": ("新疆.*乌鲁木齐", "乌鲁木齐.*新疆", "新.*乌鲁木齐"),
    "昌吉": ("新疆.*昌吉", "昌吉.*新疆", "新.*昌吉"),
    "张家口": ("河北.*张家口", "张家口.*河北", "冀.*张家口"),
    "青岛": ("山东.*青岛", "青岛.*山东", "鲁.*青岛"),
    "重庆": ("重庆市?", "渝"),
}

DISTRICT_KEYWORDS: dict[str, tuple[str, ...]] = {
    "北京": ("朝阳", "海淀", "丰台", "东城", "西城", "石景山"),
    "上海": ("浦东", "徐汇", "黄浦", "静安", "普陀", "虹口", "杨浦"),
    "深圳": ("南山", "福田", "罗湖", "宝安", "龙岗", "盐田"),
    "广州": ("天河", "越秀", "荔湾", "海珠", "白云", "黄埔"),
    "重庆": ("渝北", "江北", "九龙坡", "南岸", "沙坪坝"),
}

ASCII_WORD_CHARS = "A-Za-z0-9"


def _is_ascii_word_char(char: str) -> bool:
    return char.isascii() and char.isalnum()


def literal_pattern(text: str) -> re.Pattern[str]:
    """
    Compile a literal name, bounding it only on sides that end in a Latin
    letter or digit. CJK text has no word boundaries and matches as a
    substring.
    """

    pattern = re.escape(text)
    if _is_ascii_word_char(text[0]):
        pattern = rf"(?<![{ASCII_WORD_CHARS}]){pattern}"
    if _is_ascii_word_char(text[-1]):
        pattern = rf"{pattern}(?![{ASCII_WORD_CHARS}])"
    return re.compile(pattern, re.IGNORECASE)


def confidence_for(kind: MatchType, priority: int) -> float:
    bonus = (priority - PRIORITY_PIVOT) / 100 * PRIORITY_BONUS_SCALE
    return min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, BASE_CONFIDENCE[kind] + bonus))


def similarity(left: str, right: str) -> float:
    """
    Normalized edit-distance similarity in `[0, 1]`; two empty strings are identical.
    """

    if not left:
        return 1.0 if not right else 0.0
    if not right:
        return 0.0
    longest = max(len(left), len(right))
    return (longest - Levenshtein.distance(left, right)) / longest


class CityMappingEngine:
    """
    Resolves location text to up to three cities with confidence scores.

    Rules are compiled once from the active cities and kept as an immutable
    tuple ordered by priority, highest first.
    """

    def __init__(
        self,
        cities: Sequence[City],
        *,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> None:
        self.cities: tuple[City, ...] = tuple(city for city in cities if city.active)
        self.similarity_threshold = similarity_threshold
        self.rules: tuple[MatchRule, ...] = self._compile_rules(self.cities)
        log_event(
            logger,
            logging.INFO,
            "city_rules_compiled",
            cities=len(self.cities),
            rules=len(self.rules),
        )

    @staticmethod
    def _compile_rules(cities: Sequence[City]) -> tuple[MatchRule, ...]:
        rules: list[MatchRule] = []
        for city in cities:
            zh_name = city.name.zh.strip()
            en_name = city.name.en.strip()

            if zh_name:
                rules.append(MatchRule(literal_pattern(zh_name), city.id, EXACT_ZH_PRIORITY, MatchType.EXACT))
            if en_name:
                rules.append(MatchRule(literal_pattern(en_name), city.id, EXACT_EN_PRIORITY, MatchType.EXACT))

            province_patterns = city.province_patterns
            if province_patterns is None:
                province_patterns = PROVINCE_PATTERNS.get(zh_name, ())
            for index, expression in enumerate(province_patterns):
                try:
                    pattern = re.compile(expression, re.IGNORECASE)
                except re.error as exc:
                    raise SetupError(f"Invalid province pattern for city {city.id}: {expression!r}: {exc}") from exc
                rules.append(MatchRule(pattern, city.id, PROVINCE_BASE_PRIORITY - index, MatchType.PROVINCE))

            if len(zh_name) > 2:
                rules.append(
                    MatchRule(literal_pattern(zh_name[:-1]), city.id, FUZZY_PARTIAL_PRIORITY, MatchType.FUZZY)
                )

            keywords = city.keywords
            if keywords is None:
                keywords = DISTRICT_KEYWORDS.get(zh_name, ())
            for index, keyword in enumerate(item for item in keywords if item.strip()):
                rules.append(
                    MatchRule(
                        literal_pattern(keyword.strip()),
                        city.id,
                        KEYWORD_BASE_PRIORITY - index,
                        MatchType.KEYWORD,
                    )
                )

        return tuple(sorted(rules, key=lambda rule: rule.priority, reverse=True))

    def map_to_city(self, location_text: str | None) -> list[MappingResult]:
        """
        Return candidate cities for `location_text`, best first, one result per city.
        """

        if not location_text or not location_text.strip():
            return []
        location = location_text.strip()

        results: list[MappingResult] = []
        for rule in self.rules:
            match = rule.pattern.search(location)
            if match is None:
                continue
            confidence = confidence_for(rule.kind, rule.priority)
            results.append(MappingResult(rule.city_id, confidence, rule.kind, match.group(0)))
            if rule.kind is MatchType.EXACT and confidence >= EXACT_STOP_CONFIDENCE:
                break

        if not any(result.confidence >= FALLBACK_TRIGGER_CONFIDENCE for result in results):
            results.extend(self._similarity_matches(location))

        best: dict[str, MappingResult] = {}
        for result in results:
            current = best.get(result.city_id)
            if current is None or result.confidence > current.confidence:
                best[result.city_id] = result
        return sorted(best.values(), key=lambda result: result.confidence, reverse=True)

    def _similarity_matches(self, location: str) -> list[MappingResult]:
        lowered = location.lower()
        matches: list[MappingResult] = []
        for city in self.cities:
            zh_score = similarity(lowered, city.name.zh.lower())
            en_score = similarity(lowered, city.name.en.lower()) if city.name.en else 0.0
            score = max(zh_score, en_score)
            if score >= self.similarity_threshold:
                matched = city.name.zh if zh_score >= en_score else city.name.en
                matches.append(MappingResult(city.id, score, MatchType.FUZZY, matched))
        return sorted(matches, key=lambda result: result.confidence, reverse=True)

    def map_all(
        self,
        events: Sequence[ProcessedEvent],
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> list[ProcessedEvent]:
        mapped: list[ProcessedEvent] = []
        for event in events:
            candidates = [
                result
                for result in self.map_to_city(event.location_text)
                if result.confidence >= min_confidence
            ]
            mapped.append(replace(event, city_mappings=tuple(candidates[:MAX_MAPPINGS_PER_EVENT])))

        log_event(
            logger,
            logging.INFO,
            "events_mapped",
            total=len(mapped),
            mapped=sum(1 for event in mapped if event.city_mappings),
            min_confidence=min_confidence,
        )
        return mapped

    def group_by_city(
        self,
        events: Sequence[ProcessedEvent],
        now: datetime | None = None,
    ) -> list[CityEventGroup]:
        """
        One group per active city; upcoming events first, then by time text.
        """

        last_updated = now or datetime.now(timezone.utc)
        buckets: dict[str, list[ProcessedEvent]] = {city.id: [] for city in self.cities}
        for event in events:
            for city_id in event.city_ids:
                if city_id in buckets:
                    buckets[city_id].append(event)

        groups: list[CityEventGroup] = []
        for city in self.cities:
            ordered = sorted(buckets[city.id], key=lambda event: (not event.is_upcoming, event.time_text))
            groups.append(
                CityEventGroup(
                    city_id=city.id,
                    city_name=city.name.zh,
                    events=ordered,
                    last_updated=last_updated,
                )
            )
        return groups

    def mapping_stats(self, events: Sequence[ProcessedEvent]) -> MappingStats:
        total = len(events)
        mapped = sum(1 for event in events if event.city_mappings)
        buckets = {"high": 0, "medium": 0, "low": 0}
        by_type: Counter[str] = Counter()
        unmapped_locations: list[str] = []

        for event in events:
            if not event.city_mappings:
                location = event.location_text
                if location and location not in unmapped_locations:
                    unmapped_locations.append(location)
                continue
            best = event.city_mappings[0]
            if best.confidence >= HIGH_CONFIDENCE:
                buckets["high"] += 1
            elif best.confidence >= MEDIUM_CONFIDENCE:
                buckets["medium"] += 1
            else:
                buckets["low"] += 1
            by_type[best.match_type.value] += 1

        coverage = MappingCoverage(
            total_events=total,
            mapped_events=mapped,
            unmapped_events=total - mapped,
            mapping_success_rate=ratio(mapped, total),
        )
        return MappingStats(
            coverage=coverage,
            mappings_by_confidence=buckets,
            mappings_by_type=dict(by_type),
            unmapped_locations=unmapped_locations[:MAX_UNMAPPED_SAMPLES],
        )
