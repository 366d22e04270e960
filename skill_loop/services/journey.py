"""JourneyService: the employee journey state machine over the database.

Pure rules live in skill_loop.domain; this service loads the journey
aggregate, applies those rules, writes the user projection and the activity
log, and commits everything as one transaction per public call.
"""

import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from skill_loop.core.config import get_settings
from skill_loop.core.exceptions import (
    InvalidTransitionError,
    JourneyInvariantError,
    JourneyNotFoundError,
    PhaseConfigError,
    PhaseNotFoundError,
    SkillLoopError,
    UserNotFoundError,
)
from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_activity import JourneyActivity
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.db.models.user import User
from skill_loop.domain.journeys import (
    ACTIVE_PHASE_STATUSES,
    ActivityType,
    AssessmentCompleted,
    EmployeeCategory,
    JourneyStatus,
    ManualOverride,
    PhaseStatus,
    TrainingCompleted,
    Trigger,
    check_phase_numbering,
    find_active_phase,
    validate_journey_transition,
    validate_phase_transition,
)
from skill_loop.domain.progress import JourneyProgress, compute_journey_progress
from skill_loop.domain.templates import PhaseConfig, build_schedule, default_phases_for, validate_phase_configs
from skill_loop.services.notification_service import JourneyNotifier, LoggingNotifier, safe_notify

logger = structlog.get_logger(__name__)

# PostgreSQL serialization_failure / deadlock_detected
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

_T = TypeVar("_T")


class JourneyService:
    """Service layer for journey state machine orchestration.

    Every public mutating method:
    - Locks the journey row before reading its phases
    - Validates transitions through the domain transition tables
    - Appends JourneyActivity rows in the same transaction as the change
    - Commits once, or rolls back and re-raises
    """

    def __init__(self, session: AsyncSession, notifier: JourneyNotifier | None = None):
        """Initialize with dependency-injected session.

        Args:
            session: SQLAlchemy async session (not global state)
            notifier: Receives post-commit notifications (default: log only)
        """
        self.session = session
        self.notifier = notifier or LoggingNotifier()

    # ──────────────────────────────────────────────────────────────────────
    # Initializer
    # ──────────────────────────────────────────────────────────────────────

    async def initialize_journey(
        self,
        user_id: uuid.UUID,
        employee_category: EmployeeCategory,
        phases: list[PhaseConfig] | None = None,
        start_date: datetime | None = None,
    ) -> uuid.UUID:
        """Create a journey with its scheduled phases and start phase 1.

        Args:
            user_id: Employee the journey belongs to
            employee_category: NEW_HIRE or RECURRING
            phases: Custom ordered phase list (default: the category template)
            start_date: Journey start (default: now)

        Returns:
            UUID of the new journey

        Raises:
            UserNotFoundError: user_id does not exist
            PhaseConfigError: empty phase list or non-positive duration
        """
        start_date = start_date or datetime.now(UTC)

        async with self._transaction():
            journey = await self._create_journey(
                user_id=user_id,
                employee_category=employee_category,
                phases=phases,
                start_date=start_date,
                cycle_number=1,
            )

        logger.info(
            "journey_initialized",
            journey_id=str(journey.id),
            user_id=str(user_id),
            employee_category=employee_category.value,
            cycle_number=journey.cycle_number,
        )
        return journey.id

    async def _create_journey(
        self,
        user_id: uuid.UUID,
        employee_category: EmployeeCategory,
        phases: list[PhaseConfig] | None,
        start_date: datetime,
        cycle_number: int,
    ) -> EmployeeJourney:
        """Insert journey, phases, projection and JOURNEY_STARTED. Caller commits."""
        user = await self._get_user(user_id)

        configs = list(phases) if phases is not None else default_phases_for(employee_category)
        try:
            validate_phase_configs(configs)
        except ValueError as e:
            raise PhaseConfigError(str(e)) from e

        journey = EmployeeJourney(
            id=uuid.uuid4(),
            user_id=user_id,
            employee_category=employee_category,
            status=JourneyStatus.IN_PROGRESS,
            cycle_number=cycle_number,
            started_at=start_date,
        )
        self.session.add(journey)

        first_phase: JourneyPhase | None = None
        for scheduled in build_schedule(configs, start_date):
            phase = JourneyPhase(
                id=uuid.uuid4(),
                journey_id=journey.id,
                phase_number=scheduled.phase_number,
                phase_type=scheduled.config.phase_type,
                title=scheduled.config.title,
                description=scheduled.config.description,
                duration_days=scheduled.config.duration_days,
                status=scheduled.status,
                started_at=scheduled.started_at,
                due_date=scheduled.due_date,
                mentor_id=scheduled.config.mentor_id,
            )
            self.session.add(phase)
            if first_phase is None:
                first_phase = phase

        user.employee_category = employee_category
        user.journey_status = JourneyStatus.IN_PROGRESS
        user.current_phase_id = first_phase.id

        label = "New employee" if employee_category == EmployeeCategory.NEW_HIRE else "Existing employee"
        await self._log_activity(
            journey,
            ActivityType.JOURNEY_STARTED,
            title="Journey Started",
            description=f"{label} journey initiated",
            detail={"cycle_number": cycle_number, "phase_count": len(configs)},
            actor_user_id=user_id,
        )
        return journey

    # ──────────────────────────────────────────────────────────────────────
    # Transition engine
    # ──────────────────────────────────────────────────────────────────────

    async def auto_advance_phase(
        self,
        journey_id: uuid.UUID,
        trigger: Trigger,
        detail: dict[str, Any] | None = None,
        *,
        expected_phase_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Complete the active phase and start the next one (or finish the journey).

        Args:
            journey_id: Journey to advance
            trigger: Why the phase is being completed
            detail: Extra payload stored on the PHASE_AUTO_COMPLETED activity
            expected_phase_id: Only advance if this phase is the active one
            now: Current time (for deterministic testing)

        Returns:
            True if a phase was completed, False if nothing was active (no-op)

        Raises:
            JourneyNotFoundError: journey_id does not exist
            JourneyInvariantError: the aggregate is corrupt (e.g. two active phases)
            InvalidTransitionError: journey is paused, or expected_phase_id is not the active phase

        Completing the last phase of a RECURRING journey starts the next cycle
        (cycle_number + 1) in the same transaction.
        """
        now = now or datetime.now(UTC)
        completed_journey: EmployeeJourney | None = None
        renewed: EmployeeJourney | None = None

        async with self._transaction():
            journey = await self._lock_journey(journey_id)
            phases = await self._load_phases(journey.id)
            current = self._active_phase(journey, phases)

            if expected_phase_id is not None and (current is None or current.id != expected_phase_id):
                target = next((p for p in phases if p.id == expected_phase_id), None)
                if target is None:
                    raise PhaseNotFoundError(expected_phase_id)
                if PhaseStatus(target.status) == PhaseStatus.COMPLETED:
                    return False
                raise InvalidTransitionError(
                    "Phase",
                    PhaseStatus(target.status).value,
                    PhaseStatus.COMPLETED.value,
                    "only the active phase can be completed",
                )

            if current is None:
                logger.info("journey_advance_noop", journey_id=str(journey_id), trigger=trigger.kind)
                return False

            if JourneyStatus(journey.status) == JourneyStatus.PAUSED:
                raise InvalidTransitionError(
                    "Journey", JourneyStatus.PAUSED.value, "advance", "Resume the journey first"
                )

            self._transition_phase(current, PhaseStatus.COMPLETED)
            current.completed_at = now

            activity_detail: dict[str, Any] = {"trigger": trigger.to_detail()}
            if detail:
                activity_detail["metadata"] = detail
            await self._log_activity(
                journey,
                ActivityType.PHASE_AUTO_COMPLETED,
                title=f"{current.title} Completed",
                description=f"Phase auto-completed by {trigger.describe()}",
                phase_number=current.phase_number,
                detail=activity_detail,
                actor_user_id=journey.user_id,
                now=now,
            )

            user = await self._get_user(journey.user_id)
            next_phase = next((p for p in phases if p.phase_number == current.phase_number + 1), None)

            if next_phase is not None:
                self._transition_phase(next_phase, PhaseStatus.IN_PROGRESS)
                next_phase.started_at = now
                user.current_phase_id = next_phase.id

                await self._log_activity(
                    journey,
                    ActivityType.PHASE_STARTED,
                    title=f"{next_phase.title} Started",
                    description="Phase automatically started after previous phase completion",
                    phase_number=next_phase.phase_number,
                    actor_user_id=journey.user_id,
                    now=now,
                )
            else:
                self._transition_journey(journey, JourneyStatus.COMPLETED)
                journey.completed_at = now
                user.journey_status = JourneyStatus.COMPLETED
                user.current_phase_id = None

                await self._log_activity(
                    journey,
                    ActivityType.JOURNEY_COMPLETED,
                    title="Journey Completed",
                    description="All phases completed successfully",
                    detail={"cycle_number": journey.cycle_number},
                    actor_user_id=journey.user_id,
                    now=now,
                )
                completed_journey = journey

                if EmployeeCategory(journey.employee_category) == EmployeeCategory.RECURRING:
                    renewed = await self._create_journey(
                        user_id=journey.user_id,
                        employee_category=EmployeeCategory.RECURRING,
                        phases=None,
                        start_date=now,
                        cycle_number=journey.cycle_number + 1,
                    )

        logger.info(
            "journey_phase_advanced",
            journey_id=str(journey_id),
            completed_phase=current.phase_number,
            next_phase=next_phase.phase_number if next_phase else None,
            trigger=trigger.kind,
        )

        if completed_journey is not None:
            logger.info(
                "journey_completed",
                journey_id=str(journey_id),
                cycle_number=completed_journey.cycle_number,
                renewed_journey_id=str(renewed.id) if renewed else None,
            )
            await safe_notify(
                self.notifier.journey_completed(
                    completed_journey.id, completed_journey.user_id, completed_journey.cycle_number
                )
            )

        return True

    async def manually_complete_phase(
        self,
        phase_id: uuid.UUID,
        completed_by: str,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Admin override: complete a phase and advance its journey.

        Args:
            phase_id: Phase to complete; must be the journey's active phase
            completed_by: Id of the acting administrator
            notes: Optional notes stored with the activity

        Returns:
            True if the phase was completed, False if it already was

        Raises:
            PhaseNotFoundError: phase_id does not exist
            InvalidTransitionError: phase is not the active one, or the journey is paused
        """
        phase = await self.session.get(JourneyPhase, phase_id)
        if phase is None:
            raise PhaseNotFoundError(phase_id)

        return await self.auto_advance_phase(
            phase.journey_id,
            ManualOverride(by=str(completed_by), notes=notes),
            {"notes": notes} if notes else None,
            expected_phase_id=phase.id,
            now=now,
        )

    async def advance_for_assessment(
        self, assessment_id: str, user_id: uuid.UUID | None = None, now: datetime | None = None
    ) -> bool:
        """Advance journeys whose active phase is linked to a completed assessment.

        Args:
            assessment_id: Assessment whose attempt just completed
            user_id: Restrict to this employee's journeys (the attempt owner)

        Returns:
            True if at least one phase advanced
        """
        query = (
            select(JourneyPhase.id, JourneyPhase.journey_id)
            .join(EmployeeJourney, EmployeeJourney.id == JourneyPhase.journey_id)
            .where(
                JourneyPhase.assessment_id == assessment_id,
                JourneyPhase.status.in_(list(ACTIVE_PHASE_STATUSES)),
            )
        )
        if user_id is not None:
            query = query.where(EmployeeJourney.user_id == user_id)
        return await self._advance_linked(query, AssessmentCompleted(assessment_id=assessment_id), now)

    async def advance_for_training(self, training_assignment_id: str, now: datetime | None = None) -> bool:
        """Advance the journey whose active phase is linked to a completed training assignment."""
        query = select(JourneyPhase.id, JourneyPhase.journey_id).where(
            JourneyPhase.training_assignment_id == training_assignment_id,
            JourneyPhase.status.in_(list(ACTIVE_PHASE_STATUSES)),
        )
        return await self._advance_linked(
            query, TrainingCompleted(training_assignment_id=training_assignment_id), now
        )

    async def _advance_linked(self, query, trigger: Trigger, now: datetime | None) -> bool:
        result = await self.session.execute(query)
        linked = result.all()
        if not linked:
            logger.info("linked_completion_no_active_phase", trigger=trigger.to_detail())
            return False

        # Each journey commits on its own. A journey that refuses the advance
        # (paused, inconsistent) is logged and skipped. Database conflicts propagate.
        advanced = False
        for phase_id, journey_id in linked:
            try:
                if await self.auto_advance_phase(journey_id, trigger, expected_phase_id=phase_id, now=now):
                    advanced = True
            except SkillLoopError as e:
                logger.warning(
                    "linked_advance_failed",
                    journey_id=str(journey_id),
                    phase_id=str(phase_id),
                    trigger=trigger.to_detail(),
                    error=str(e),
                    error_type=type(e).__name__,
                )
        return advanced

    # ──────────────────────────────────────────────────────────────────────
    # Overdue marking (one phase per call; the sweeper loops)
    # ──────────────────────────────────────────────────────────────────────

    async def mark_phase_overdue(self, phase_id: uuid.UUID, now: datetime | None = None) -> bool:
        """Flag one phase OVERDUE if it is still in progress, past due, and its journey is not paused.

        Returns:
            True if the phase was flagged, False if it no longer qualifies
        """
        now = now or datetime.now(UTC)
        phase = await self.session.get(JourneyPhase, phase_id)
        if phase is None:
            raise PhaseNotFoundError(phase_id)

        flagged: JourneyPhase | None = None
        async with self._transaction():
            journey = await self._lock_journey(phase.journey_id)
            await self.session.refresh(phase)

            if (
                PhaseStatus(phase.status) != PhaseStatus.IN_PROGRESS
                or phase.due_date is None
                or phase.due_date >= now
                or JourneyStatus(journey.status) == JourneyStatus.PAUSED
            ):
                return False

            self._transition_phase(phase, PhaseStatus.OVERDUE)
            await self._log_activity(
                journey,
                ActivityType.PHASE_OVERDUE,
                title=f"{phase.title} Overdue",
                description=f"Phase became overdue on {now:%a %b %d %Y}",
                phase_number=phase.phase_number,
                detail={"due_date": phase.due_date.isoformat()},
                actor_user_id=journey.user_id,
                now=now,
            )
            flagged = phase
            user_id = journey.user_id

        logger.info("journey_phase_overdue", journey_id=str(flagged.journey_id), phase_number=flagged.phase_number)
        await safe_notify(
            self.notifier.phase_overdue(
                flagged.journey_id,
                user_id,
                flagged.phase_number,
                flagged.title,
                flagged.due_date,
                flagged.mentor_id,
            )
        )
        return True

    # ──────────────────────────────────────────────────────────────────────
    # Progress
    # ──────────────────────────────────────────────────────────────────────

    async def calculate_phase_progress(self, journey_id: uuid.UUID, now: datetime | None = None) -> JourneyProgress:
        """Compute progress for a journey. Read-only.

        Raises:
            JourneyNotFoundError: journey_id does not exist
        """
        journey = await self.session.get(EmployeeJourney, journey_id)
        if journey is None:
            raise JourneyNotFoundError(journey_id)
        phases = await self._load_phases(journey.id, lock=False)
        return compute_journey_progress(
            phases,
            EmployeeCategory(journey.employee_category),
            journey.started_at,
            now or datetime.now(UTC),
        )

    # ──────────────────────────────────────────────────────────────────────
    # Control operations
    # ──────────────────────────────────────────────────────────────────────

    async def pause_journey(self, journey_id: uuid.UUID, reason: str | None = None) -> None:
        """Pause an in-progress journey. Phase state is left untouched.

        Raises:
            JourneyNotFoundError, InvalidTransitionError
        """
        async with self._transaction():
            journey = await self._lock_journey(journey_id)
            self._transition_journey(journey, JourneyStatus.PAUSED)

            user = await self._get_user(journey.user_id)
            user.journey_status = JourneyStatus.PAUSED

            await self._log_activity(
                journey,
                ActivityType.JOURNEY_PAUSED,
                title="Journey Paused",
                description=reason or "Journey paused by administrator",
                detail={"reason": reason},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_paused", journey_id=str(journey_id), reason=reason)

    async def resume_journey(self, journey_id: uuid.UUID) -> None:
        """Resume a paused journey.

        Raises:
            JourneyNotFoundError, InvalidTransitionError
        """
        async with self._transaction():
            journey = await self._lock_journey(journey_id)
            self._transition_journey(journey, JourneyStatus.IN_PROGRESS)

            user = await self._get_user(journey.user_id)
            user.journey_status = JourneyStatus.IN_PROGRESS

            await self._log_activity(
                journey,
                ActivityType.JOURNEY_RESUMED,
                title="Journey Resumed",
                description="Journey resumed by administrator",
                actor_user_id=journey.user_id,
            )

        logger.info("journey_resumed", journey_id=str(journey_id))

    async def link_assessment_to_phase(self, phase_id: uuid.UUID, assessment_id: str) -> None:
        """Attach an assessment to a phase. Metadata only; no transition."""
        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            phase.assessment_id = assessment_id
            await self._log_activity(
                journey,
                ActivityType.ASSESSMENT_LINKED,
                title="Assessment Linked",
                description=f"Assessment {assessment_id} linked to {phase.title}",
                phase_number=phase.phase_number,
                detail={"assessment_id": assessment_id},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_assessment_linked", phase_id=str(phase_id), assessment_id=assessment_id)

    async def link_training_to_phase(self, phase_id: uuid.UUID, training_assignment_id: str) -> None:
        """Attach a training assignment to a phase. Metadata only; no transition."""
        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            phase.training_assignment_id = training_assignment_id
            await self._log_activity(
                journey,
                ActivityType.TRAINING_LINKED,
                title="Training Linked",
                description=f"Training assignment {training_assignment_id} linked to {phase.title}",
                phase_number=phase.phase_number,
                detail={"training_assignment_id": training_assignment_id},
                actor_user_id=journey.user_id,
            )

        logger.info(
            "journey_training_linked", phase_id=str(phase_id), training_assignment_id=training_assignment_id
        )

    # ──────────────────────────────────────────────────────────────────────
    # Internals shared with JourneyAdminService
    # ──────────────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        """Commit on success; roll back and re-raise on any error."""
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def _lock_journey(self, journey_id: uuid.UUID) -> EmployeeJourney:
        result = await self.session.execute(
            select(EmployeeJourney)
            .where(EmployeeJourney.id == journey_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        journey = result.scalar_one_or_none()
        if journey is None:
            raise JourneyNotFoundError(journey_id)
        return journey

    async def _lock_phase(self, phase_id: uuid.UUID) -> tuple[JourneyPhase, EmployeeJourney]:
        phase = await self.session.get(JourneyPhase, phase_id)
        if phase is None:
            raise PhaseNotFoundError(phase_id)
        journey = await self._lock_journey(phase.journey_id)
        await self.session.refresh(phase)
        return phase, journey

    async def _load_phases(self, journey_id: uuid.UUID, lock: bool = True) -> list[JourneyPhase]:
        query = (
            select(JourneyPhase)
            .where(JourneyPhase.journey_id == journey_id)
            .order_by(JourneyPhase.phase_number)
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _get_user(self, user_id: uuid.UUID) -> User:
        """Lock and reload the user so its projection version is current."""
        result = await self.session.execute(
            select(User).where(User.id == user_id).with_for_update().execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _active_phase(self, journey: EmployeeJourney, phases: list[JourneyPhase]) -> JourneyPhase | None:
        """Return the active phase after checking the aggregate's invariants."""
        try:
            check_phase_numbering([p.phase_number for p in phases])
            return find_active_phase(phases)
        except ValueError as e:
            logger.error("journey_invariant_violated", journey_id=str(journey.id), problem=str(e))
            raise JourneyInvariantError(journey.id, str(e)) from e

    def _transition_phase(self, phase: JourneyPhase, target: PhaseStatus) -> None:
        current = PhaseStatus(phase.status)
        result = validate_phase_transition(current, target)
        if not result.allowed:
            raise InvalidTransitionError("Phase", current.value, target.value, result.reason)
        phase.status = target

    def _transition_journey(self, journey: EmployeeJourney, target: JourneyStatus) -> None:
        current = JourneyStatus(journey.status)
        result = validate_journey_transition(current, target)
        if not result.allowed:
            raise InvalidTransitionError("Journey", current.value, target.value, result.reason)
        journey.status = target

    async def _log_activity(
        self,
        journey: EmployeeJourney,
        activity_type: ActivityType,
        title: str,
        description: str | None = None,
        phase_number: int | None = None,
        detail: dict[str, Any] | None = None,
        actor_user_id: uuid.UUID | None = None,
        now: datetime | None = None,
    ) -> JourneyActivity:
        """Append an activity after the journey's latest one.

        created_at never goes backwards within a journey, even when a caller
        passes an earlier `now`. Also bumps the journey's version, so a
        concurrent writer holding a stale copy of the journey fails at flush.
        """
        result = await self.session.execute(
            select(JourneyActivity.sequence, JourneyActivity.created_at)
            .where(JourneyActivity.journey_id == journey.id)
            .order_by(JourneyActivity.sequence.desc())
            .limit(1)
        )
        last = result.one_or_none()
        created_at = now or datetime.now(UTC)
        sequence = 1
        if last is not None:
            sequence = last.sequence + 1
            created_at = max(created_at, last.created_at)

        journey.updated_at = datetime.now(UTC)
        activity = JourneyActivity(
            journey_id=journey.id,
            sequence=sequence,
            phase_number=phase_number,
            activity_type=activity_type,
            title=title,
            description=description,
            detail=detail or {},
            actor_user_id=actor_user_id,
            created_at=created_at,
        )
        self.session.add(activity)
        await self.session.flush()
        return activity


def _is_retryable(exc: BaseException) -> bool:
    """Lock and serialization conflicts are worth another attempt."""
    if isinstance(exc, (OperationalError, StaleDataError)):
        return True
    if isinstance(exc, DBAPIError):
        code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
        return code in _RETRYABLE_SQLSTATES
    return False


async def run_with_conflict_retry(
    session_factory: async_sessionmaker[AsyncSession],
    operation: Callable[[JourneyService], Awaitable[_T]],
    *,
    service_class: type[JourneyService] = JourneyService,
    notifier: JourneyNotifier | None = None,
    **log_context: Any,
) -> _T:
    """Run one service call in a fresh session, retrying on lock conflicts.

    Every attempt gets a new session and a new service, so it re-reads the
    journey. Operations passed here must turn into a no-op (or a domain
    error) once their target phase has been completed by someone else.

    Args:
        session_factory: Opens one session per attempt
        operation: Receives the service and performs a single public call
        service_class: JourneyService or a subclass such as JourneyAdminService
        notifier: Passed to the service
        **log_context: Added to the retry warning
    """
    settings = get_settings()
    async for attempt in AsyncRetrying(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(settings.advance_retry_attempts),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        reraise=True,
        before_sleep=lambda rs: logger.warning(
            "journey_advance_conflict_retrying",
            attempt=rs.attempt_number,
            error_type=type(rs.outcome.exception()).__name__,
            **log_context,
        ),
    ):
        with attempt:
            async with session_factory() as session:
                return await operation(service_class(session, notifier))
    raise RuntimeError("retry loop exited without a result")


async def advance_journey(
    session_factory: async_sessionmaker[AsyncSession],
    journey_id: uuid.UUID,
    trigger: Trigger,
    detail: dict[str, Any] | None = None,
    *,
    notifier: JourneyNotifier | None = None,
    expected_phase_id: uuid.UUID | None = None,
) -> bool:
    """Run auto_advance_phase with conflict retries.

    The phase to complete is pinned before the first attempt, so a retry
    after a concurrent advance finds the pinned phase already completed and
    returns False instead of advancing the next one.
    """
    if expected_phase_id is None:
        async with session_factory() as session:
            result = await session.execute(
                select(JourneyPhase.id)
                .where(
                    JourneyPhase.journey_id == journey_id,
                    JourneyPhase.status.in_(list(ACTIVE_PHASE_STATUSES)),
                )
                .order_by(JourneyPhase.phase_number)
                .limit(1)
            )
            expected_phase_id = result.scalar_one_or_none()

    return await run_with_conflict_retry(
        session_factory,
        lambda service: service.auto_advance_phase(journey_id, trigger, detail, expected_phase_id=expected_phase_id),
        notifier=notifier,
        journey_id=str(journey_id),
    )
