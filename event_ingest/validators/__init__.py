from event_ingest.validators.event_validator import EventValidator, quality_score

__all__ = ["EventValidator", "quality_score"]
