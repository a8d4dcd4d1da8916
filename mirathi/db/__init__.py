"""
Mirathi Database Layer
======================

PostgreSQL persistence for readiness assessments using SQLAlchemy 2.0
async.

This module provides:
    - Lazily created async engine and session factory
    - ORM models for assessments and risk flags
    - Repositories with optimistic concurrency

Usage:
    from mirathi.db import get_session_factory, SqlAssessmentRepository

    async with get_session_factory()() as db:
        repository = SqlAssessmentRepository(db)
        assessment = await repository.load(estate_id)

Author: Mirathi Team
Version: 1.0.0
"""

from mirathi.db.base import Base
from mirathi.db.models import ReadinessAssessmentDB, RiskFlagDB
from mirathi.db.repository import (
    AssessmentRepository,
    InMemoryAssessmentRepository,
    SqlAssessmentRepository,
)
from mirathi.db.session import (
    close_db,
    get_db,
    get_engine,
    get_session_factory,
    init_db,
)

__all__ = [
    "Base",
    "ReadinessAssessmentDB",
    "RiskFlagDB",
    "AssessmentRepository",
    "InMemoryAssessmentRepository",
    "SqlAssessmentRepository",
    "get_engine",
    "get_session_factory",
    "get_db",
    "init_db",
    "close_db",
]
