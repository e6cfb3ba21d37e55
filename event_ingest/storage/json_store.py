"""
JSON-file backed store for the persisted raw event dataset.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from event_ingest.domain.events import RawRecord
from event_ingest.errors import SetupError
from event_ingest.logging_utils import log_event
from event_ingest.schemas.dataset import RawRecordSchema
from event_ingest.storage.atomic import write_json_atomic
from event_ingest.storage.base import DatasetSnapshot, KnownIdStore

logger = logging.getLogger(__name__)


class JsonEventStore(KnownIdStore):
    """
    Stores raw records as one JSON array, rewritten atomically on commit.
    """

    def __init__(self, *, path: Path) -> None:
        self._path = path
        self._snapshot: DatasetSnapshot | None = None

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def modified_at(self) -> datetime | None:
        if not self._path.exists():
            return None
        return datetime.fromtimestamp(self._path.stat().st_mtime, tz=timezone.utc)

    def contains(self, identity: str) -> bool:
        return self.snapshot().contains(identity)

    def snapshot(self) -> DatasetSnapshot:
        if self._snapshot is None:
            records = self._load()
            self._snapshot = self._build_snapshot(records, modified_at=self.modified_at())
        return self._snapshot

    def commit(self, records: Sequence[RawRecord]) -> int:
        current = self.snapshot()
        known = set(current.ids)
        appended: list[RawRecord] = []
        for record in records:
            identity = record.identity
            if identity is not None and identity in known:
                continue
            if identity is not None:
                known.add(identity)
            appended.append(record)

        if not appended:
            log_event(logger, logging.INFO, "dataset_commit_skipped", path=self._path, reason="no_new_records")
            return 0

        next_state = [*current.records, *appended]
        payload = [
            RawRecordSchema.from_domain(record).model_dump(mode="json", by_alias=True)
            for record in next_state
        ]
        try:
            write_json_atomic(self._path, payload)
        except OSError as exc:
            raise SetupError(f"Unable to write event dataset {self._path}: {exc}") from exc

        self._snapshot = self._build_snapshot(next_state, modified_at=self.modified_at())
        log_event(
            logger,
            logging.INFO,
            "dataset_committed",
            path=self._path,
            records_added=len(appended),
            records_total=len(next_state),
        )
        return len(appended)

    def _load(self) -> list[RawRecord]:
        if not self._path.exists():
            return []

        try:
            raw_data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise SetupError(f"Unable to read event dataset {self._path}: {exc}") from exc
        if not isinstance(raw_data, list):
            raise SetupError(f"Invalid event dataset {self._path}: expected a JSON array.")

        records: list[RawRecord] = []
        for index, entry in enumerate(raw_data):
            if not isinstance(entry, dict):
                continue
            try:
                records.append(RawRecordSchema.model_validate(entry).to_domain())
            except ValidationError as exc:
                log_event(
                    logger,
                    logging.WARNING,
                    "dataset_entry_skipped",
                    path=self._path,
                    index=index,
                    error=str(exc),
                )
        log_event(logger, logging.INFO, "dataset_loaded", path=self._path, records=len(records))
        return records

    @staticmethod
    def _build_snapshot(records: Sequence[RawRecord], *, modified_at: datetime | None) -> DatasetSnapshot:
        ids = frozenset(record.identity for record in records if record.identity is not None)
        return DatasetSnapshot(records=tuple(records), ids=ids, modified_at=modified_at)
