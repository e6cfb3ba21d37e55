"""
tests/test_city_mapper.py

Pytest unit tests for CityMappingEngine.

Coverage
--------
- Rule priorities: exact Chinese/English names, province patterns,
  district keywords, partial-name fuzzy rule
- Edit-distance fallback when no rule reaches the trigger confidence
- Inactive cities, empty text, multi-city locations and the per-event cap
- Per-city keyword and pattern overrides, invalid pattern handling
- Grouping by city and mapping statistics
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from event_ingest.domain.cities import City, CityName, MappingResult, MatchType
from event_ingest.domain.events import ProcessedEvent, raw_fields
from event_ingest.errors import SetupError
from event_ingest.mappers.city_mapper import CityMappingEngine, confidence_for, literal_pattern, similarity
from fakes import make_record


@pytest.fixture()
def engine(cities: list[City]) -> CityMappingEngine:
    return CityMappingEngine(cities)


def _event(number: int, **overrides: object) -> ProcessedEvent:
    mappings = overrides.pop("city_mappings", ())
    upcoming = overrides.pop("is_upcoming", False)
    return ProcessedEvent(
        **raw_fields(make_record(number, **overrides)),
        city_mappings=tuple(mappings),
        is_upcoming=upcoming,
    )


def _mapping(city_id: str, confidence: float, kind: MatchType = MatchType.EXACT) -> MappingResult:
    return MappingResult(city_id=city_id, confidence=confidence, match_type=kind)


# ---------------------------------------------------------------------------
# Confidence and matching helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    @pytest.mark.parametrize(
        ("kind", "priority", "expected"),
        [
            (MatchType.EXACT, 100, 1.0),
            (MatchType.EXACT, 99, 0.999),
            (MatchType.PROVINCE, 80, 0.83),
            (MatchType.FUZZY, 60, 0.61),
            (MatchType.KEYWORD, 40, 0.69),
            (MatchType.KEYWORD, 39, 0.689),
        ],
    )
    def test_confidence_for(self, kind: MatchType, priority: int, expected: float) -> None:
        assert confidence_for(kind, priority) == pytest.approx(expected)

    def test_confidence_is_clamped(self) -> None:
        assert confidence_for(MatchType.EXACT, 500) == 1.0
        assert confidence_for(MatchType.FUZZY, -5000) == pytest.approx(0.1)

    def test_similarity(self) -> None:
        assert similarity("", "") == 1.0
        assert similarity("abc", "") == 0.0
        assert similarity("", "abc") == 0.0
        assert similarity("shanghai", "shanghai") == 1.0
        assert similarity("乌鲁木", "乌鲁木齐") == pytest.approx(0.75)

    def test_literal_pattern_bounds_only_latin_edges(self) -> None:
        assert literal_pattern("Xi'an").search("Meetup in xi'an today")
        assert not literal_pattern("ai").search("blockchain")
        assert literal_pattern("北京").search("中国北京朝阳")
        assert literal_pattern("AWS北京").search("xAWS北京y") is None
        assert literal_pattern("AWS北京").search("在AWS北京办公室")


# ---------------------------------------------------------------------------
# map_to_city
# ---------------------------------------------------------------------------


class TestMapToCity:
    def test_exact_chinese_name_stops_the_scan(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("北京朝阳")

        assert len(results) == 1
        assert results[0].city_id == "beijing"
        assert results[0].match_type is MatchType.EXACT
        assert results[0].confidence == pytest.approx(1.0)
        assert results[0].matched_text == "北京"

    def test_exact_english_name_is_case_insensitive(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("Shanghai Pudong")

        assert [result.city_id for result in results] == ["shanghai"]
        assert results[0].confidence == pytest.approx(0.999)

    def test_province_abbreviation(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("沪上")

        assert results[0].city_id == "shanghai"
        assert results[0].match_type is MatchType.PROVINCE
        assert results[0].confidence == pytest.approx(0.829)

    def test_district_keyword(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("海淀区中关村")

        assert [result.city_id for result in results] == ["beijing"]
        assert results[0].match_type is MatchType.KEYWORD
        assert results[0].confidence == pytest.approx(0.689)

    def test_partial_name_is_upgraded_by_similarity(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("乌鲁木")

        assert [result.city_id for result in results] == ["urumqi"]
        assert results[0].match_type is MatchType.FUZZY
        assert results[0].confidence == pytest.approx(0.75)

    def test_similarity_fallback_for_misspelled_name(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("Shanghaiese")

        assert [result.city_id for result in results] == ["shanghai"]
        assert results[0].match_type is MatchType.FUZZY
        assert results[0].confidence == pytest.approx(8 / 11)

    def test_several_districts_resolve_to_several_cities(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("海淀 浦东 南山 天河")

        assert {result.city_id for result in results} == {"beijing", "shanghai", "shenzhen", "guangzhou"}
        confidences = [result.confidence for result in results]
        assert confidences == sorted(confidences, reverse=True)

    def test_one_result_per_city(self, engine: CityMappingEngine) -> None:
        results = engine.map_to_city("京 海淀 朝阳")

        assert [result.city_id for result in results] == ["beijing"]
        assert results[0].match_type is MatchType.PROVINCE

    @pytest.mark.parametrize("location", ["", "   ", None, "线上直播"])
    def test_no_match(self, engine: CityMappingEngine, location: str | None) -> None:
        assert engine.map_to_city(location) == []

    def test_inactive_city_is_never_returned(self, engine: CityMappingEngine) -> None:
        assert engine.map_to_city("香港") == []
        assert all(city.active for city in engine.cities)

    def test_rules_are_ordered_by_priority(self, engine: CityMappingEngine) -> None:
        priorities = [rule.priority for rule in engine.rules]

        assert priorities == sorted(priorities, reverse=True)


# ---------------------------------------------------------------------------
# Per-city overrides
# ---------------------------------------------------------------------------


class TestOverrides:
    def test_custom_keywords_replace_builtin_table(self) -> None:
        engine = CityMappingEngine(
            [City(id="hangzhou", name=CityName(zh="杭州", en="Hangzhou"), keywords=("西湖", "滨江"))]
        )

        results = engine.map_to_city("滨江区 网商路")

        assert results[0].city_id == "hangzhou"
        assert results[0].match_type is MatchType.KEYWORD
        assert results[0].confidence == pytest.approx(0.689)

    def test_custom_province_patterns(self) -> None:
        engine = CityMappingEngine(
            [City(id="beijing", name=CityName(zh="北京"), province_patterns=("帝都",))]
        )

        assert engine.map_to_city("帝都 望京")[0].match_type is MatchType.PROVINCE
        assert engine.map_to_city("京") == []

    def test_invalid_pattern_is_a_setup_error(self) -> None:
        with pytest.raises(SetupError):
            CityMappingEngine([City(id="broken", name=CityName(zh="坏城"), province_patterns=("坏(",))])


# ---------------------------------------------------------------------------
# map_all, grouping and statistics
# ---------------------------------------------------------------------------


class TestBatchOperations:
    def test_map_all_caps_mappings_per_event(self, engine: CityMappingEngine) -> None:
        events = [_event(1, location_text="海淀 浦东 南山 天河")]

        mapped = engine.map_all(events)

        assert len(mapped[0].city_mappings) == 3

    def test_map_all_applies_min_confidence(self, engine: CityMappingEngine) -> None:
        events = [_event(1, location_text="海淀区中关村")]

        assert engine.map_all(events, min_confidence=0.7)[0].city_mappings == ()
        assert engine.map_all(events)[0].city_ids == ["beijing"]

    def test_map_all_does_not_modify_inputs(self, engine: CityMappingEngine) -> None:
        event = _event(1)

        engine.map_all([event])

        assert event.city_mappings == ()

    def test_group_by_city_orders_upcoming_first(self, engine: CityMappingEngine) -> None:
        now = datetime(2025, 9, 1, tzinfo=timezone.utc)
        beijing = (_mapping("beijing", 1.0),)
        events = [
            _event(1, time_text="09/01 10:00", city_mappings=beijing),
            _event(2, time_text="10/05 10:00", city_mappings=beijing, is_upcoming=True),
            _event(3, time_text="09/20 10:00", city_mappings=beijing, is_upcoming=True),
            _event(4, city_mappings=(_mapping("shanghai", 1.0), _mapping("beijing", 0.69))),
        ]

        groups = engine.group_by_city(events, now=now)

        assert [group.city_id for group in groups] == ["beijing", "shanghai", "shenzhen", "guangzhou", "urumqi"]
        assert [event.id for event in groups[0].events] == ["3", "2", "1", "4"]
        assert groups[1].event_count == 1
        assert groups[2].events == []
        assert groups[0].last_updated == now
        assert groups[0].city_name == "北京"

    def test_mapping_stats(self, engine: CityMappingEngine) -> None:
        events = [
            _event(1, city_mappings=(_mapping("beijing", 1.0),)),
            _event(2, city_mappings=(_mapping("beijing", 0.689, MatchType.KEYWORD),)),
            _event(3, location_text="线上直播"),
            _event(4, location_text="线上直播"),
        ]

        stats = engine.mapping_stats(events)

        assert stats.coverage.total_events == 4
        assert stats.coverage.mapped_events == 2
        assert stats.coverage.unmapped_events == 2
        assert stats.coverage.mapping_success_rate == 0.5
        assert stats.mappings_by_confidence == {"high": 1, "medium": 1, "low": 0}
        assert stats.mappings_by_type == {"exact": 1, "keyword": 1}
        assert stats.unmapped_locations == ["线上直播"]

    def test_mapping_stats_on_empty_batch(self, engine: CityMappingEngine) -> None:
        stats = engine.mapping_stats([])

        assert stats.coverage.mapped_events + stats.coverage.unmapped_events == 0
        assert stats.coverage.mapping_success_rate == 0.0
