"""Overdue sweeper: flags in-progress phases whose due date has passed.

Invoked by the cron route (once a day in production) or, when
OVERDUE_SWEEP_ENABLED is set, by a background task started in the app
lifespan. Each phase is flagged in its own transaction so a failure part
way through leaves earlier phases committed; the failed ones are picked up
again on the next run.
"""

import asyncio
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skill_loop.core.exceptions import SkillLoopError
from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.domain.journeys import JourneyStatus, PhaseStatus
from skill_loop.services.journey import JourneyService
from skill_loop.services.notification_service import JourneyNotifier

logger = structlog.get_logger(__name__)


async def check_overdue_phases(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
    notifier: JourneyNotifier | None = None,
) -> int:
    """Mark every qualifying phase OVERDUE.

    A phase qualifies when it is IN_PROGRESS, its due_date is before `now`,
    and its journey is not PAUSED. Already-OVERDUE phases are not touched, so
    running the sweep twice is harmless.

    Args:
        session_factory: Opens one session per phase
        now: Injectable current time for testing
        notifier: Receives one phase_overdue call per flagged phase

    Returns:
        Number of phases flagged by this run
    """
    if now is None:
        now = datetime.now(UTC)

    async with session_factory() as session:
        result = await session.execute(
            select(JourneyPhase.id)
            .join(EmployeeJourney, EmployeeJourney.id == JourneyPhase.journey_id)
            .where(
                JourneyPhase.status == PhaseStatus.IN_PROGRESS,
                JourneyPhase.due_date < now,
                EmployeeJourney.status != JourneyStatus.PAUSED,
            )
            .order_by(JourneyPhase.due_date)
        )
        candidates = list(result.scalars().all())

    if not candidates:
        logger.info("no_overdue_phases", now=now.isoformat())
        return 0

    flagged = 0
    failed = 0
    for phase_id in candidates:
        try:
            async with session_factory() as session:
                service = JourneyService(session, notifier)
                if await service.mark_phase_overdue(phase_id, now=now):
                    flagged += 1
        except (SQLAlchemyError, SkillLoopError) as e:
            failed += 1
            logger.warning(
                "overdue_phase_mark_failed",
                phase_id=str(phase_id),
                error=str(e),
                error_type=type(e).__name__,
            )

    logger.info("overdue_sweep_complete", candidates=len(candidates), flagged=flagged, failed=failed)
    return flagged


async def run_overdue_sweeper_forever(
    session_factory: async_sessionmaker[AsyncSession],
    interval_seconds: int,
    notifier: JourneyNotifier | None = None,
) -> None:
    """Run check_overdue_phases every interval_seconds until cancelled.

    Intended to run as: ``asyncio.create_task(run_overdue_sweeper_forever(...))``
    """
    logger.info("overdue_sweeper_started", interval_seconds=interval_seconds)
    while True:
        try:
            await check_overdue_phases(session_factory, notifier=notifier)
        except SQLAlchemyError as e:
            # Database unavailable: try again next interval
            logger.error("overdue_sweep_failed", error=str(e), error_type=type(e).__name__)
        await asyncio.sleep(interval_seconds)
