"""
event_ingest/errors.py

Exception hierarchy for the event ingestion pipeline.

Only infrastructure problems are exceptions. Data-quality problems
(missing fields, unparseable dates) are classified by the validator.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """
    Base class for pipeline failures.
    """


class PageFetchError(PipelineError):
    """
    Raised when one listing page cannot be fetched or paginated.

    Transient by default: the pagination controller retries it with backoff.
    `retryable=False` marks a permanent failure such as a 404, which skips
    the page without retrying.
    """

    def __init__(self, message: str, *, page_number: int | None = None, retryable: bool = True) -> None:
        self.page_number = page_number
        self.retryable = retryable
        super().__init__(message)


class ExtractionError(PipelineError):
    """
    Raised when a single listing item cannot be turned into a raw record.
    """


class ImageDownloadError(PipelineError):
    """
    Raised when an event image cannot be downloaded after retries.
    """


class SetupError(PipelineError):
    """
    Fatal configuration or environment failure that aborts the run.
    """
