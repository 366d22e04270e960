"""JourneyQueryService: read models for the admin, employee and mentor views."""

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skill_loop.core.exceptions import JourneyNotFoundError, UserNotFoundError
from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_activity import JourneyActivity
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.db.models.user import User
from skill_loop.domain.journeys import ACTIVE_PHASE_STATUSES, EmployeeCategory, JourneyStatus, PhaseStatus
from skill_loop.domain.progress import compute_journey_progress
from skill_loop.domain.templates import default_phases_for
from skill_loop.schemas.journeys import (
    ActivityResponse,
    JourneyDetailResponse,
    JourneyResponse,
    JourneyStatisticsResponse,
    JourneySummaryResponse,
    MentorPhaseResponse,
    PhaseConfigOut,
    PhaseResponse,
    ProgressResponse,
    UserSummary,
)

logger = structlog.get_logger(__name__)

RECENT_ACTIVITY_LIMIT = 50
STATISTICS_ACTIVITY_LIMIT = 10


class JourneyQueryService:
    """Read-only journey views. Never writes."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with dependency injection.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self.session_factory = session_factory

    async def get_employee_journey(self, user_id: uuid.UUID, now: datetime | None = None) -> JourneyDetailResponse:
        """Return the user's latest journey with phases, recent activity and progress.

        Raises:
            UserNotFoundError: user_id does not exist
            JourneyNotFoundError: the user has never had a journey
        """
        now = now or datetime.now(UTC)
        async with self.session_factory() as session:
            user = await session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            result = await session.execute(
                select(EmployeeJourney)
                .where(EmployeeJourney.user_id == user_id)
                .order_by(EmployeeJourney.cycle_number.desc(), EmployeeJourney.created_at.desc())
                .limit(1)
            )
            journey = result.scalar_one_or_none()
            if journey is None:
                raise JourneyNotFoundError(f"user:{user_id}")

            phases = await self._phases(session, journey.id)

            result = await session.execute(
                select(JourneyActivity)
                .where(JourneyActivity.journey_id == journey.id)
                .order_by(JourneyActivity.created_at.desc(), JourneyActivity.sequence.desc())
                .limit(RECENT_ACTIVITY_LIMIT)
            )
            activities = result.scalars().all()

            return JourneyDetailResponse(
                journey=JourneyResponse.model_validate(journey),
                user=UserSummary.model_validate(user),
                phases=[PhaseResponse.model_validate(p) for p in phases],
                activities=[ActivityResponse.model_validate(a) for a in activities],
                progress=self._progress(journey, phases, now),
            )

    async def list_journeys(
        self,
        employee_category: EmployeeCategory | None = None,
        status: JourneyStatus | None = None,
        search: str | None = None,
        now: datetime | None = None,
    ) -> list[JourneySummaryResponse]:
        """List journeys newest first, optionally filtered.

        Args:
            employee_category: Only this category
            status: Only this journey status
            search: Case-insensitive substring of the employee's name or email
        """
        now = now or datetime.now(UTC)
        query = (
            select(EmployeeJourney, User)
            .join(User, User.id == EmployeeJourney.user_id)
            .order_by(EmployeeJourney.created_at.desc())
        )
        if employee_category is not None:
            query = query.where(EmployeeJourney.employee_category == employee_category)
        if status is not None:
            query = query.where(EmployeeJourney.status == status)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))

        async with self.session_factory() as session:
            rows = (await session.execute(query)).all()
            journey_ids = [journey.id for journey, _ in rows]

            phases_by_journey: dict[uuid.UUID, list[JourneyPhase]] = {jid: [] for jid in journey_ids}
            if journey_ids:
                result = await session.execute(
                    select(JourneyPhase)
                    .where(JourneyPhase.journey_id.in_(journey_ids))
                    .order_by(JourneyPhase.journey_id, JourneyPhase.phase_number)
                )
                for phase in result.scalars().all():
                    phases_by_journey[phase.journey_id].append(phase)

        summaries = []
        for journey, user in rows:
            phases = phases_by_journey[journey.id]
            current = next((p for p in phases if PhaseStatus(p.status) in ACTIVE_PHASE_STATUSES), None)
            summaries.append(
                JourneySummaryResponse(
                    journey=JourneyResponse.model_validate(journey),
                    user=UserSummary.model_validate(user),
                    current_phase=PhaseResponse.model_validate(current) if current else None,
                    progress=self._progress(journey, phases, now),
                )
            )
        return summaries

    async def get_statistics(self) -> JourneyStatisticsResponse:
        """Journey counts by status, active journeys by category, OVERDUE phases and latest activity."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(EmployeeJourney.status, EmployeeJourney.employee_category, func.count())
                .group_by(EmployeeJourney.status, EmployeeJourney.employee_category)
            )
            by_status: dict[JourneyStatus, int] = {}
            active_by_category: dict[EmployeeCategory, int] = {}
            total = 0
            for status, category, count in result.all():
                status = JourneyStatus(status)
                by_status[status] = by_status.get(status, 0) + count
                if status == JourneyStatus.IN_PROGRESS:
                    category = EmployeeCategory(category)
                    active_by_category[category] = active_by_category.get(category, 0) + count
                total += count

            overdue = await session.scalar(
                select(func.count()).select_from(JourneyPhase).where(JourneyPhase.status == PhaseStatus.OVERDUE)
            )

            result = await session.execute(
                select(JourneyActivity)
                .order_by(JourneyActivity.created_at.desc(), JourneyActivity.sequence.desc())
                .limit(STATISTICS_ACTIVITY_LIMIT)
            )
            recent = result.scalars().all()

        return JourneyStatisticsResponse(
            total=total,
            in_progress=by_status.get(JourneyStatus.IN_PROGRESS, 0),
            completed=by_status.get(JourneyStatus.COMPLETED, 0),
            paused=by_status.get(JourneyStatus.PAUSED, 0),
            new_hires=active_by_category.get(EmployeeCategory.NEW_HIRE, 0),
            recurring=active_by_category.get(EmployeeCategory.RECURRING, 0),
            overdue_phases=overdue or 0,
            recent_activities=[ActivityResponse.model_validate(a) for a in recent],
        )

    def get_default_phase_configs(self, employee_category: EmployeeCategory) -> list[PhaseConfigOut]:
        """The template a new journey of this category gets when no phases are given."""
        return [PhaseConfigOut.from_config(c) for c in default_phases_for(employee_category)]

    async def get_mentor_phases(self, mentor_id: uuid.UUID) -> list[MentorPhaseResponse]:
        """Phases assigned to a mentor, soonest due first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(JourneyPhase, User)
                .join(EmployeeJourney, EmployeeJourney.id == JourneyPhase.journey_id)
                .join(User, User.id == EmployeeJourney.user_id)
                .where(JourneyPhase.mentor_id == mentor_id)
                .order_by(JourneyPhase.due_date)
            )
            rows = result.all()

        return [
            MentorPhaseResponse(
                phase=PhaseResponse.model_validate(phase),
                journey_id=phase.journey_id,
                mentee=UserSummary.model_validate(mentee),
            )
            for phase, mentee in rows
        ]

    async def _phases(self, session: AsyncSession, journey_id: uuid.UUID) -> list[JourneyPhase]:
        result = await session.execute(
            select(JourneyPhase).where(JourneyPhase.journey_id == journey_id).order_by(JourneyPhase.phase_number)
        )
        return list(result.scalars().all())

    def _progress(self, journey: EmployeeJourney, phases: list[JourneyPhase], now: datetime) -> ProgressResponse:
        progress = compute_journey_progress(
            phases, EmployeeCategory(journey.employee_category), journey.started_at, now
        )
        return ProgressResponse.from_progress(progress)
