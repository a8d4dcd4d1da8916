"""
Assessment Repositories
=======================

Load and save readiness assessments with optimistic concurrency.

A save succeeds only if the stored version still equals the version
the aggregate was loaded at (``persisted_version``). A brand new
aggregate (persisted_version 0) conflicts if its estate already has an
assessment. Conflicts raise ConcurrencyConflictError; callers reload
and retry.

Implementations:
    - InMemoryAssessmentRepository: snapshots in a dict, for tests and
      single-process use
    - SqlAssessmentRepository: PostgreSQL via SQLAlchemy AsyncSession

Author: Mirathi Team
Version: 1.0.0
"""

import asyncio
import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mirathi.db.mapper import (
    assessment_columns,
    from_model,
    rebuild_assessment,
    risk_flag_rows,
    to_model,
)
from mirathi.db.models import ReadinessAssessmentDB, RiskFlagDB
from mirathi.readiness.assessment import ReadinessAssessment
from mirathi.readiness.exceptions import (
    AssessmentNotFoundError,
    ConcurrencyConflictError,
)


logger = logging.getLogger(__name__)


class AssessmentRepository(ABC):
    """Persistence port for readiness assessments."""

    @abstractmethod
    async def load(self, estate_id: str) -> ReadinessAssessment:
        """
        Load the assessment for an estate.

        Raises:
            AssessmentNotFoundError: If the estate has no assessment
            PersistedStateError: If stored state is malformed or inconsistent
        """

    @abstractmethod
    async def load_by_id(self, assessment_id: str) -> ReadinessAssessment:
        """Load an assessment by its own id."""

    @abstractmethod
    async def save(self, assessment: ReadinessAssessment) -> None:
        """
        Persist the aggregate and mark it persisted.

        Raises:
            ConcurrencyConflictError: If the stored version moved on
        """

    @abstractmethod
    async def exists(self, estate_id: str) -> bool:
        """True if the estate already has an assessment."""

    @abstractmethod
    async def list_open(self, limit: int = 100) -> List[ReadinessAssessment]:
        """Incomplete assessments, oldest assessed first."""


# =============================================================================
# In-memory
# =============================================================================

class InMemoryAssessmentRepository(AssessmentRepository):
    """
    Dict-backed repository storing persisted-state snapshots.

    Snapshots go through the same validation as database rows, so a
    load never hands out an aggregate that shares state with another.
    """

    def __init__(self):
        self._states: Dict[str, Dict[str, Any]] = {}
        self._estate_by_id: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def load(self, estate_id: str) -> ReadinessAssessment:
        state = self._states.get(estate_id)
        if state is None:
            raise AssessmentNotFoundError(estate_id)
        return rebuild_assessment(copy.deepcopy(state))

    async def load_by_id(self, assessment_id: str) -> ReadinessAssessment:
        estate_id = self._estate_by_id.get(assessment_id)
        if estate_id is None:
            raise AssessmentNotFoundError(assessment_id)
        return await self.load(estate_id)

    async def save(self, assessment: ReadinessAssessment) -> None:
        assessment.validate()
        state = assessment.to_persistable_state()

        async with self._lock:
            stored = self._states.get(assessment.estate_id)
            stored_version = stored["version"] if stored else 0
            if stored is not None and stored["id"] != assessment.id:
                raise ConcurrencyConflictError(
                    assessment.id, assessment.persisted_version, stored_version
                )
            if stored_version != assessment.persisted_version:
                raise ConcurrencyConflictError(
                    assessment.id, assessment.persisted_version, stored_version
                )
            self._states[assessment.estate_id] = copy.deepcopy(state)
            self._estate_by_id[assessment.id] = assessment.estate_id

        assessment.mark_persisted()
        logger.debug(f"Saved assessment {assessment.id} at version {assessment.version}")

    async def exists(self, estate_id: str) -> bool:
        return estate_id in self._states

    async def list_open(self, limit: int = 100) -> List[ReadinessAssessment]:
        open_states = sorted(
            (state for state in self._states.values() if not state["is_complete"]),
            key=lambda state: state["last_assessed_at"],
        )
        return [rebuild_assessment(copy.deepcopy(state)) for state in open_states[:limit]]


# =============================================================================
# PostgreSQL
# =============================================================================

class SqlAssessmentRepository(AssessmentRepository):
    """
    PostgreSQL repository.

    The caller owns the session and its transaction (see
    ``mirathi.db.session.get_db``). Risk flags are rewritten as a
    whole on every save.

    Example:
        async with get_session_factory()() as db:
            repository = SqlAssessmentRepository(db)
            assessment = await repository.load("estate-1")
            assessment.handle_death_certificate_uploaded()
            await repository.save(assessment)
            await db.commit()
    """

    def __init__(self, db: AsyncSession):
        """
        Args:
            db: Async database session
        """
        self.db = db

    async def _fetch(self, *criteria: Any) -> Optional[ReadinessAssessmentDB]:
        result = await self.db.execute(
            select(ReadinessAssessmentDB)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def load(self, estate_id: str) -> ReadinessAssessment:
        row = await self._fetch(ReadinessAssessmentDB.estate_id == estate_id)
        if row is None:
            raise AssessmentNotFoundError(estate_id)
        return rebuild_assessment(from_model(row))

    async def load_by_id(self, assessment_id: str) -> ReadinessAssessment:
        row = await self._fetch(ReadinessAssessmentDB.id == assessment_id)
        if row is None:
            raise AssessmentNotFoundError(assessment_id)
        return rebuild_assessment(from_model(row))

    async def save(self, assessment: ReadinessAssessment) -> None:
        assessment.validate()
        state = assessment.to_persistable_state()

        if assessment.persisted_version == 0:
            await self._insert(assessment, state)
        else:
            await self._update(assessment, state)

        assessment.mark_persisted()
        logger.info(f"Saved assessment {assessment.id} at version {assessment.version}")

    async def _insert(self, assessment: ReadinessAssessment, state: Dict[str, Any]) -> None:
        result = await self.db.execute(
            select(ReadinessAssessmentDB.version)
            .where(ReadinessAssessmentDB.estate_id == assessment.estate_id)
        )
        existing_version = result.scalar_one_or_none()
        if existing_version is not None:
            raise ConcurrencyConflictError(assessment.id, 0, existing_version)

        self.db.add(to_model(state))
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Another writer inserted the same estate between check and flush
            await self.db.rollback()
            raise ConcurrencyConflictError(assessment.id, 0, None) from e

    async def _update(self, assessment: ReadinessAssessment, state: Dict[str, Any]) -> None:
        values = assessment_columns(state)
        values.pop("id")

        result = await self.db.execute(
            update(ReadinessAssessmentDB)
            .where(
                ReadinessAssessmentDB.id == assessment.id,
                ReadinessAssessmentDB.version == assessment.persisted_version,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.db.execute(
                select(ReadinessAssessmentDB.version)
                .where(ReadinessAssessmentDB.id == assessment.id)
            )
            actual_version = current.scalar_one_or_none()
            logger.warning(
                f"Version conflict on assessment {assessment.id}: "
                f"expected {assessment.persisted_version}, found {actual_version}"
            )
            raise ConcurrencyConflictError(
                assessment.id, assessment.persisted_version, actual_version
            )

        await self.db.execute(
            delete(RiskFlagDB).where(RiskFlagDB.assessment_id == assessment.id)
        )
        rows = risk_flag_rows(state)
        if rows:
            await self.db.execute(insert(RiskFlagDB), rows)

    async def exists(self, estate_id: str) -> bool:
        result = await self.db.execute(
            select(ReadinessAssessmentDB.id).where(ReadinessAssessmentDB.estate_id == estate_id)
        )
        return result.scalar_one_or_none() is not None

    async def list_open(self, limit: int = 100) -> List[ReadinessAssessment]:
        result = await self.db.execute(
            select(ReadinessAssessmentDB)
            .where(ReadinessAssessmentDB.is_complete.is_(False))
            .order_by(ReadinessAssessmentDB.last_assessed_at)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return [rebuild_assessment(from_model(row)) for row in result.scalars().all()]
