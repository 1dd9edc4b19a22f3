"""
DatasetStore Class - Holds the loaded datasets

This module keeps at most one record collection (and its source filename)
per record schema for the lifetime of the process.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from elb_dashboard.models.data_models import DatasetSlot, RecordSchema, StoreStatus

logger = logging.getLogger(__name__)


class DatasetStore:
    """
    Manages the per-schema dataset slots.
    Responsibilities:
    - Replace a slot wholesale on load (no merging)
    - Clear one slot or all slots
    - Report which schemas are populated
    """

    def __init__(self) -> None:
        self._slots: Dict[RecordSchema, Optional[DatasetSlot]] = {s: None for s in RecordSchema}
        # One writer per slot; whoever acquires last wins
        self._locks = {s: threading.Lock() for s in RecordSchema}

    def load(self, schema: RecordSchema, records: List[Any], filename: str) -> None:
        """Replace the slot for `schema` with a new collection"""
        with self._locks[schema]:
            previous = self._slots[schema]
            self._slots[schema] = DatasetSlot(
                records=list(records),
                filename=filename,
                loaded_at=datetime.now(timezone.utc),
            )
        if previous is not None:
            logger.info("Replaced %s dataset %s with %s", schema.value, previous.filename, filename)
        else:
            logger.info("Loaded %s dataset from %s (%d records)", schema.value, filename, len(records))

    def clear(self, schema: Optional[RecordSchema] = None) -> None:
        """Clear one slot, or every slot when no schema is given"""
        targets = [schema] if schema is not None else list(RecordSchema)
        for s in targets:
            with self._locks[s]:
                self._slots[s] = None

    def slot(self, schema: RecordSchema) -> Optional[DatasetSlot]:
        return self._slots[schema]

    def records(self, schema: RecordSchema) -> Optional[List[Any]]:
        """Records for a schema, or None when the slot is empty"""
        slot = self._slots[schema]
        return slot.records if slot is not None else None

    def filename(self, schema: RecordSchema) -> Optional[str]:
        slot = self._slots[schema]
        return slot.filename if slot is not None else None

    def active_schemas(self) -> Set[RecordSchema]:
        return {s for s, slot in dict(self._slots).items() if slot is not None}

    def file_names(self) -> Dict[str, str]:
        return {s.value: slot.filename for s, slot in dict(self._slots).items() if slot is not None}

    def stat(self) -> StoreStatus:
        """Get dataset statistics from one snapshot of the slots"""
        slots = dict(self._slots)
        active = [(s, slots[s]) for s in RecordSchema if slots[s] is not None]
        return StoreStatus(
            status="ok",
            active_schemas=[s.value for s, _ in active],
            file_names={s.value: slot.filename for s, slot in active},
            record_counts={s.value: len(slot.records) for s, slot in active},
        )
