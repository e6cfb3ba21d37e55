"""
Known-record store interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from event_ingest.domain.events import RawRecord


@dataclass(frozen=True)
class DatasetSnapshot:
    """
    Read-only view of the persisted dataset taken before a run.
    """

    records: tuple[RawRecord, ...]
    ids: frozenset[str]
    modified_at: datetime | None = None

    def contains(self, identity: str | None) -> bool:
        return identity is not None and identity in self.ids


class KnownIdStore(ABC):
    """
    System of record for identifiers accepted by earlier runs.
    """

    @abstractmethod
    def contains(self, identity: str) -> bool:
        """
        Return whether `identity` was accepted by a previous run.
        """

    @abstractmethod
    def snapshot(self) -> DatasetSnapshot:
        """
        Return the persisted records and their identifiers.
        """

    @abstractmethod
    def commit(self, records: Sequence[RawRecord]) -> int:
        """
        Persist newly accepted records as one unit and return how many were added.
        """
