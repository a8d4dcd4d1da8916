"""
Risk Source
===========

Traceability value recording which system or rule detected a risk,
when, and on what basis.

The source fingerprint feeds the risk fingerprint used for
deduplication, so two detections of the same fact from the same
rule collapse into one risk.

Author: Mirathi Team
Version: 1.0.0
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from mirathi.readiness.exceptions import InvalidValueError


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class RiskSourceType(Enum):
    """Systems that can raise a risk."""
    FAMILY_SERVICE = "FAMILY_SERVICE"
    GUARDIANSHIP_SERVICE = "GUARDIANSHIP_SERVICE"
    ESTATE_SERVICE = "ESTATE_SERVICE"
    WILL_SERVICE = "WILL_SERVICE"
    DOCUMENT_SERVICE = "DOCUMENT_SERVICE"
    EXTERNAL_REGISTRY = "EXTERNAL_REGISTRY"
    COMPLIANCE_ENGINE = "COMPLIANCE_ENGINE"
    USER_INPUT = "USER_INPUT"


@dataclass(frozen=True)
class RiskSource:
    """
    Where a risk came from.

    Attributes:
        source_type: Detecting system
        detection_method: Rule or procedure that fired
        source_entity_id: Upstream entity the detection refers to
        source_entity_type: Type of that entity (required with the id)
        legal_basis: Statute the detection relies on
        detected_at: Detection timestamp
    """
    source_type: RiskSourceType
    detection_method: str
    source_entity_id: Optional[str] = None
    source_entity_type: Optional[str] = None
    legal_basis: Optional[str] = None
    detected_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.detection_method or not self.detection_method.strip():
            raise InvalidValueError("Risk source requires a detection method")
        if bool(self.source_entity_id) != bool(self.source_entity_type):
            raise InvalidValueError(
                "source_entity_id and source_entity_type must be provided together",
                {
                    "source_entity_id": self.source_entity_id,
                    "source_entity_type": self.source_entity_type,
                },
            )

    @property
    def fingerprint(self) -> str:
        return ":".join([
            self.source_type.value,
            self.source_entity_type or "UNKNOWN",
            self.source_entity_id or "UNKNOWN",
            self.detection_method,
        ])

    @property
    def is_external_source(self) -> bool:
        return self.source_type == RiskSourceType.EXTERNAL_REGISTRY

    @property
    def is_user_source(self) -> bool:
        return self.source_type == RiskSourceType.USER_INPUT

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def from_compliance_engine(
        cls,
        rule_id: str,
        legal_basis: Optional[str] = None,
        detected_at: Optional[datetime] = None,
    ) -> "RiskSource":
        """Source for a risk raised by a compliance rule."""
        return cls(
            source_type=RiskSourceType.COMPLIANCE_ENGINE,
            detection_method=rule_id,
            legal_basis=legal_basis,
            detected_at=detected_at or utc_now(),
        )

    @classmethod
    def from_service(
        cls,
        source_type: RiskSourceType,
        entity_id: str,
        entity_type: str,
        detection_method: str,
        legal_basis: Optional[str] = None,
    ) -> "RiskSource":
        """Source for a risk reported by an upstream service about one entity."""
        return cls(
            source_type=source_type,
            detection_method=detection_method,
            source_entity_id=entity_id,
            source_entity_type=entity_type,
            legal_basis=legal_basis,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_persistable_state(self) -> Dict[str, Any]:
        return {
            "source_type": self.source_type.value,
            "detection_method": self.detection_method,
            "source_entity_id": self.source_entity_id,
            "source_entity_type": self.source_entity_type,
            "legal_basis": self.legal_basis,
            "detected_at": self.detected_at.isoformat(),
        }

    @classmethod
    def from_persistable_state(cls, state: Dict[str, Any]) -> "RiskSource":
        return cls(
            source_type=RiskSourceType(state["source_type"]),
            detection_method=state["detection_method"],
            source_entity_id=state.get("source_entity_id"),
            source_entity_type=state.get("source_entity_type"),
            legal_basis=state.get("legal_basis"),
            detected_at=datetime.fromisoformat(state["detected_at"]),
        )
