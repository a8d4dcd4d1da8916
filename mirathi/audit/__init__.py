"""
Audit Module
============

Tamper-evident audit trail of readiness domain events.

Author: Mirathi Team
Version: 1.0.0
"""

from mirathi.audit.audit_trail import GENESIS_HASH, AuditRecord, ReadinessAuditTrail

__all__ = [
    "AuditRecord",
    "ReadinessAuditTrail",
    "GENESIS_HASH",
]
