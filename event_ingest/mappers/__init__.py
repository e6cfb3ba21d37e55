from event_ingest.mappers.city_mapper import CityMappingEngine, confidence_for, similarity

__all__ = ["CityMappingEngine", "confidence_for", "similarity"]
