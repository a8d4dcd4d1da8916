"""
Readiness Audit Trail
=====================

Append-only, tamper-evident log of readiness domain events.

Each record hashes its own content together with the previous record's
hash, so editing or dropping any record breaks the chain.

Author: Mirathi Team
Version: 1.0.0
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from mirathi.readiness.events import ReadinessEvent


logger = logging.getLogger(__name__)


GENESIS_HASH = "0" * 64


@dataclass
class AuditRecord:
    """One audited domain event."""
    sequence: int
    event_type: str
    aggregate_id: str
    aggregate_type: str
    aggregate_version: int
    occurred_at: datetime
    payload: Dict[str, Any]
    previous_hash: str
    correlation_id: Optional[str] = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    hash: str = field(default="", init=False)

    def __post_init__(self):
        self.hash = self._calculate_hash()

    def _calculate_hash(self) -> str:
        """SHA-256 over the record content and the previous hash."""
        content = json.dumps({
            "sequence": self.sequence,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "aggregate_version": self.aggregate_version,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": self.payload,
            "correlation_id": self.correlation_id,
            "previous_hash": self.previous_hash,
        }, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "aggregate_version": self.aggregate_version,
            "occurred_at": self.occurred_at.isoformat(),
            "recorded_at": self.recorded_at.isoformat(),
            "payload": self.payload,
            "correlation_id": self.correlation_id,
            "previous_hash": self.previous_hash,
            "hash": self.hash,
        }


class ReadinessAuditTrail:
    """
    Hash-chained audit trail for readiness events.

    Example:
        audit = ReadinessAuditTrail()
        audit.record_all(assessment.pull_events(), correlation_id="c-1")
        audit.for_aggregate(assessment.id)
        audit.verify_integrity()   # True
    """

    def __init__(self, storage_backend: Optional[Any] = None):
        """
        Args:
            storage_backend: Optional sink with a ``write(dict)`` method
        """
        self.storage_backend = storage_backend
        self._records: List[AuditRecord] = []
        self._last_hash = GENESIS_HASH

    def __len__(self) -> int:
        return len(self._records)

    @property
    def last_hash(self) -> str:
        return self._last_hash

    def record(self, event: ReadinessEvent, correlation_id: Optional[str] = None) -> AuditRecord:
        """Append one event to the chain."""
        entry = AuditRecord(
            sequence=len(self._records) + 1,
            event_type=event.event_type,
            aggregate_id=event.aggregate_id,
            aggregate_type=event.aggregate_type,
            aggregate_version=event.version,
            occurred_at=event.occurred_at,
            payload=event.payload(),
            previous_hash=self._last_hash,
            correlation_id=correlation_id,
        )
        self._records.append(entry)
        self._last_hash = entry.hash

        if self.storage_backend is not None:
            self.storage_backend.write(entry.to_dict())
        return entry

    def record_all(
        self,
        events: Iterable[ReadinessEvent],
        correlation_id: Optional[str] = None,
    ) -> List[AuditRecord]:
        return [self.record(event, correlation_id) for event in events]

    def query(
        self,
        aggregate_id: Optional[str] = None,
        event_type: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditRecord]:
        """
        Query records, newest first.

        Args:
            aggregate_id: Filter by assessment id
            event_type: Filter by event class name
            start_time: Earliest occurrence
            end_time: Latest occurrence
            limit: Maximum results
        """
        results = []
        for entry in reversed(self._records):
            if aggregate_id and entry.aggregate_id != aggregate_id:
                continue
            if event_type and entry.event_type != event_type:
                continue
            if start_time and entry.occurred_at < start_time:
                continue
            if end_time and entry.occurred_at > end_time:
                continue
            results.append(entry)
            if len(results) >= limit:
                break
        return results

    def for_aggregate(self, aggregate_id: str) -> List[AuditRecord]:
        """Every record of one assessment in emission order."""
        return [entry for entry in self._records if entry.aggregate_id == aggregate_id]

    def verify_integrity(self) -> bool:
        """
        Verify the hash chain.

        Returns:
            True if the chain is intact, False if any record was altered
        """
        previous = GENESIS_HASH
        for entry in self._records:
            if entry.previous_hash != previous:
                logger.error(f"Audit chain broken at record {entry.sequence}")
                return False
            if entry.hash != entry._calculate_hash():
                logger.error(f"Audit record {entry.sequence} was modified")
                return False
            previous = entry.hash
        return previous == self._last_hash

    def export(self, aggregate_id: Optional[str] = None) -> str:
        """Export records as JSON in emission order."""
        records = self.for_aggregate(aggregate_id) if aggregate_id else self._records
        return json.dumps([entry.to_dict() for entry in records], indent=2)

    def get_statistics(self) -> Dict[str, Any]:
        if not self._records:
            return {"total_records": 0}

        event_types: Dict[str, int] = {}
        for entry in self._records:
            event_types[entry.event_type] = event_types.get(entry.event_type, 0) + 1

        return {
            "total_records": len(self._records),
            "event_types": event_types,
            "aggregates": len({entry.aggregate_id for entry in self._records}),
            "first_event": self._records[0].occurred_at.isoformat(),
            "last_event": self._records[-1].occurred_at.isoformat(),
            "integrity_verified": self.verify_integrity(),
        }
