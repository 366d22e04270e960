"""JourneyAdminService: administrator edits to a running journey.

Structural edits (add, delete) are limited to NEW_HIRE journeys; recurring
journeys always follow the default cycle. Edits never move an existing
phase's due date except when its own duration changes.
"""

import uuid
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import select

from skill_loop.core.exceptions import (
    ActiveJourneyExistsError,
    InvalidTransitionError,
    PhaseConfigError,
    PhaseEditNotAllowedError,
    PhaseNotFoundError,
    UserNotFoundError,
)
from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.db.models.user import User
from skill_loop.domain.journeys import (
    OPEN_JOURNEY_STATUSES,
    ActivityType,
    EmployeeCategory,
    JourneyStatus,
    PhaseSkipped,
    PhaseStatus,
)
from skill_loop.domain.templates import PhaseConfig
from skill_loop.services.journey import JourneyService
from skill_loop.services.notification_service import safe_notify

logger = structlog.get_logger(__name__)


class JourneyAdminService(JourneyService):
    """Admin operations layered on the journey state machine.

    Shares the locking, transaction and activity-log helpers of
    JourneyService, so every edit is audited and atomic the same way.
    """

    async def create_journey(
        self,
        user_id: uuid.UUID,
        employee_category: EmployeeCategory,
        phases: list[PhaseConfig] | None = None,
        start_date: datetime | None = None,
    ) -> uuid.UUID:
        """Start a journey unless the user already has an open one.

        The user row is locked before the check, so two concurrent creates
        for the same user cannot both pass it.

        Raises:
            UserNotFoundError: user_id does not exist
            ActiveJourneyExistsError: user has a NOT_STARTED, IN_PROGRESS or PAUSED journey
            PhaseConfigError: empty phase list or non-positive duration
        """
        start_date = start_date or datetime.now(UTC)

        async with self._transaction():
            await self._get_user(user_id)

            result = await self.session.execute(
                select(EmployeeJourney.id)
                .where(
                    EmployeeJourney.user_id == user_id,
                    EmployeeJourney.status.in_(list(OPEN_JOURNEY_STATUSES)),
                )
                .limit(1)
            )
            existing = result.scalar_one_or_none()
            if existing is not None:
                raise ActiveJourneyExistsError(user_id, existing)

            journey = await self._create_journey(
                user_id=user_id,
                employee_category=employee_category,
                phases=phases,
                start_date=start_date,
                cycle_number=1,
            )

        logger.info(
            "journey_created",
            journey_id=str(journey.id),
            user_id=str(user_id),
            employee_category=employee_category.value,
        )
        return journey.id

    async def add_phase(
        self,
        journey_id: uuid.UUID,
        config: PhaseConfig,
        insert_after: int | None = None,
        now: datetime | None = None,
    ) -> uuid.UUID:
        """Insert a NOT_STARTED phase, shifting later phase numbers up by one.

        Args:
            journey_id: NEW_HIRE journey to edit
            config: The new phase
            insert_after: Phase number to insert after (None appends, 0 inserts first)

        Returns:
            UUID of the new phase

        Raises:
            PhaseEditNotAllowedError: recurring or completed journey, or the slot
                is before a phase that has already started
            PhaseConfigError: non-positive duration or insert_after out of range
        """
        if config.duration_days <= 0:
            raise PhaseConfigError("Phase duration must be at least one day")
        now = now or datetime.now(UTC)

        async with self._transaction():
            journey = await self._lock_journey(journey_id)
            self._require_structural_edit(journey)
            phases = await self._load_phases(journey.id)

            position = len(phases) if insert_after is None else insert_after
            if position > len(phases):
                raise PhaseConfigError(f"insert_after must be between 0 and {len(phases)}")

            started = [p.phase_number for p in phases if PhaseStatus(p.status) != PhaseStatus.NOT_STARTED]
            if started and position < max(started):
                raise PhaseEditNotAllowedError("New phases can only be inserted after the active phase")

            new_number = position + 1
            previous = next((p for p in phases if p.phase_number == position), None)
            anchor = previous.due_date if previous is not None and previous.due_date is not None else now

            await self._renumber({p: p.phase_number + 1 for p in phases if p.phase_number >= new_number})

            phase = JourneyPhase(
                id=uuid.uuid4(),
                journey_id=journey.id,
                phase_number=new_number,
                phase_type=config.phase_type,
                title=config.title,
                description=config.description,
                duration_days=config.duration_days,
                status=PhaseStatus.NOT_STARTED,
                due_date=anchor + timedelta(days=config.duration_days),
                mentor_id=config.mentor_id,
            )
            self.session.add(phase)

            await self._log_activity(
                journey,
                ActivityType.PHASE_ADDED,
                title="Phase Added",
                description=f"New phase '{config.title}' added at position {new_number}",
                phase_number=new_number,
                detail={"phase_type": config.phase_type.value, "duration_days": config.duration_days},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_phase_added", journey_id=str(journey_id), phase_number=new_number)
        return phase.id

    async def delete_phase(self, phase_id: uuid.UUID) -> None:
        """Delete a NOT_STARTED phase of a NEW_HIRE journey and close the numbering gap.

        Raises:
            PhaseNotFoundError, PhaseEditNotAllowedError
        """
        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            self._require_structural_edit(journey)
            if PhaseStatus(phase.status) != PhaseStatus.NOT_STARTED:
                raise PhaseEditNotAllowedError("Only phases that have not started can be deleted")

            phases = await self._load_phases(journey.id)
            if len(phases) == 1:
                raise PhaseEditNotAllowedError("A journey needs at least one phase")

            deleted_number = phase.phase_number
            deleted_title = phase.title
            await self.session.delete(phase)
            await self.session.flush()

            await self._renumber({p: p.phase_number - 1 for p in phases if p.phase_number > deleted_number})

            await self._log_activity(
                journey,
                ActivityType.PHASE_DELETED,
                title="Phase Deleted",
                description=f"Phase '{deleted_title}' removed from journey",
                detail={"phase_number": deleted_number, "title": deleted_title},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_phase_deleted", journey_id=str(journey.id), phase_number=deleted_number)

    async def skip_phase(
        self,
        journey_id: uuid.UUID,
        phase_number: int,
        skipped_by: str | None = None,
        reason: str | None = None,
    ) -> bool:
        """Complete the active phase without its work being done, and advance.

        Raises:
            PhaseNotFoundError: no phase with that number
            InvalidTransitionError: phase is completed, not yet active, or the journey is paused
        """
        result = await self.session.execute(
            select(JourneyPhase).where(
                JourneyPhase.journey_id == journey_id,
                JourneyPhase.phase_number == phase_number,
            )
        )
        phase = result.scalar_one_or_none()
        if phase is None:
            raise PhaseNotFoundError(f"{journey_id}#{phase_number}")
        if PhaseStatus(phase.status) == PhaseStatus.COMPLETED:
            raise InvalidTransitionError(
                "Phase", PhaseStatus.COMPLETED.value, PhaseStatus.COMPLETED.value, "Phase is already completed"
            )

        return await self.auto_advance_phase(
            journey_id,
            PhaseSkipped(by=skipped_by, reason=reason),
            {"skipped": True, "reason": reason},
            expected_phase_id=phase.id,
        )

    async def update_phase_details(
        self,
        phase_id: uuid.UUID,
        title: str | None = None,
        description: str | None = None,
        duration_days: int | None = None,
        now: datetime | None = None,
    ) -> None:
        """Edit a phase that has not completed.

        A new duration on a started phase moves its due date to
        started_at + duration_days. Other phases keep their due dates. An
        OVERDUE phase whose new due date is after `now` goes back to
        IN_PROGRESS; one still past due stays OVERDUE.

        Raises:
            PhaseNotFoundError, PhaseEditNotAllowedError, PhaseConfigError
        """
        if duration_days is not None and duration_days <= 0:
            raise PhaseConfigError("Phase duration must be at least one day")
        now = now or datetime.now(UTC)

        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            if PhaseStatus(phase.status) == PhaseStatus.COMPLETED:
                raise PhaseEditNotAllowedError("Completed phases cannot be edited")

            changes: dict[str, object] = {}
            if title is not None and title != phase.title:
                changes["title"] = title
                phase.title = title
            if description is not None and description != phase.description:
                changes["description"] = description
                phase.description = description
            if duration_days is not None and duration_days != phase.duration_days:
                changes["duration_days"] = duration_days
                phase.duration_days = duration_days
                if phase.started_at is not None:
                    phase.due_date = phase.started_at + timedelta(days=duration_days)
                    changes["due_date"] = phase.due_date.isoformat()
                    if PhaseStatus(phase.status) == PhaseStatus.OVERDUE and phase.due_date > now:
                        self._transition_phase(phase, PhaseStatus.IN_PROGRESS)
                        changes["status"] = PhaseStatus.IN_PROGRESS.value

            if not changes:
                return

            await self._log_activity(
                journey,
                ActivityType.PHASE_UPDATED,
                title="Phase Updated",
                description=f"Phase '{phase.title}' details updated",
                phase_number=phase.phase_number,
                detail=changes,
                actor_user_id=journey.user_id,
            )

        logger.info("journey_phase_updated", phase_id=str(phase_id), fields=sorted(changes))

    async def assign_mentor(self, phase_id: uuid.UUID, mentor_id: uuid.UUID, notify: bool = True) -> None:
        """Assign a mentor to a phase; the mentor is notified after commit.

        Raises:
            PhaseNotFoundError, UserNotFoundError
        """
        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            mentor = await self.session.get(User, mentor_id)
            if mentor is None:
                raise UserNotFoundError(mentor_id)

            phase.mentor_id = mentor.id
            await self._log_activity(
                journey,
                ActivityType.MENTOR_ASSIGNED,
                title="Mentor Assigned",
                description=f"{mentor.name or mentor.email} assigned as mentor for {phase.title}",
                phase_number=phase.phase_number,
                detail={"mentor_id": str(mentor.id)},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_mentor_assigned", phase_id=str(phase_id), mentor_id=str(mentor_id))
        if notify:
            await safe_notify(
                self.notifier.mentor_assigned(
                    journey.id,
                    journey.user_id,
                    mentor.id,
                    phase.title,
                    phase.started_at,
                    phase.duration_days,
                )
            )

    async def remove_mentor(self, phase_id: uuid.UUID) -> None:
        """Clear a phase's mentor. No-op if none is assigned.

        Raises:
            PhaseNotFoundError
        """
        async with self._transaction():
            phase, journey = await self._lock_phase(phase_id)
            if phase.mentor_id is None:
                return

            previous = phase.mentor_id
            phase.mentor_id = None
            await self._log_activity(
                journey,
                ActivityType.MENTOR_REMOVED,
                title="Mentor Removed",
                description=f"Mentor removed from {phase.title}",
                phase_number=phase.phase_number,
                detail={"mentor_id": str(previous)},
                actor_user_id=journey.user_id,
            )

        logger.info("journey_mentor_removed", phase_id=str(phase_id))

    def _require_structural_edit(self, journey: EmployeeJourney) -> None:
        if EmployeeCategory(journey.employee_category) != EmployeeCategory.NEW_HIRE:
            raise PhaseEditNotAllowedError("Phases can only be added or removed on new hire journeys")
        if JourneyStatus(journey.status) == JourneyStatus.COMPLETED:
            raise PhaseEditNotAllowedError("Journey is already completed")

    async def _renumber(self, new_numbers: dict[JourneyPhase, int]) -> None:
        """Move phases to new numbers without tripping the (journey_id, phase_number) unique constraint.

        Parks every moved phase on a negative number first, then sets the final ones.
        """
        if not new_numbers:
            return
        for phase, number in new_numbers.items():
            phase.phase_number = -number
        await self.session.flush()
        for phase, number in new_numbers.items():
            phase.phase_number = number
        await self.session.flush()
