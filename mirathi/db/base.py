"""
Readiness Persistence Base
==========================

Declarative base for the readiness tables.

Two tables hang off this base:
    - readiness_assessments: one row per estate, holding the succession
      context, the current score and the optimistic-concurrency version
    - risk_flags: child rows of an assessment in aggregate order

Domain timestamps (``created_at``, ``last_assessed_at``) come from the
aggregate. The ``row_*`` columns only track when the database row
itself was written.

Author: Mirathi Team
Version: 1.0.0
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from mirathi.readiness.risk_source import utc_now


class Base(DeclarativeBase):
    """Base for readiness models; every datetime column is timezone-aware."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """Row write times, independent of the aggregate's own timestamps."""

    row_created_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        server_default=func.now(),
    )
    row_updated_at: Mapped[datetime] = mapped_column(
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
    )
