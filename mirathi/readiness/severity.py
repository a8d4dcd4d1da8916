"""
Risk Severity
=============

Severity scale shared by risk flags and document gaps.

Author: Mirathi Team
Version: 1.0.0
"""

from enum import Enum


class RiskSeverity(Enum):
    """
    Severity classifications with scoring weight and auto-resolve
    timeout (days).
    """
    CRITICAL = ("CRITICAL", 10, 30)
    HIGH = ("HIGH", 7, 60)
    MEDIUM = ("MEDIUM", 4, 90)
    LOW = ("LOW", 1, 180)

    def __init__(self, value: str, weight: int, timeout_days: int):
        self._value_ = value
        self.weight = weight
        self.timeout_days = timeout_days

    @classmethod
    def _missing_(cls, value):
        for severity in cls:
            if severity.value == value:
                return severity
        return None

    @property
    def rank(self) -> int:
        """Sort key, 0 for the most severe."""
        return list(RiskSeverity).index(self)
