"""Journey notification trigger points.

Delivery (email, in-app) belongs to the host application. The engine calls a
JourneyNotifier after the triggering transaction has committed; the default
implementation only records the event in the structured log.
"""

import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class JourneyNotifier(Protocol):
    """Receives journey events that should reach the employee or mentor."""

    async def phase_overdue(
        self,
        journey_id: uuid.UUID,
        user_id: uuid.UUID,
        phase_number: int,
        phase_title: str,
        due_date: datetime | None,
        mentor_id: uuid.UUID | None,
    ) -> None: ...

    async def journey_completed(self, journey_id: uuid.UUID, user_id: uuid.UUID, cycle_number: int) -> None: ...

    async def mentor_assigned(
        self,
        journey_id: uuid.UUID,
        user_id: uuid.UUID,
        mentor_id: uuid.UUID,
        phase_title: str,
        started_at: datetime | None,
        duration_days: int,
    ) -> None: ...


class LoggingNotifier:
    """JourneyNotifier that only logs."""

    async def phase_overdue(self, journey_id, user_id, phase_number, phase_title, due_date, mentor_id) -> None:
        logger.info(
            "notify_phase_overdue",
            journey_id=str(journey_id),
            user_id=str(user_id),
            phase_number=phase_number,
            phase_title=phase_title,
            due_date=due_date.isoformat() if due_date else None,
            mentor_id=str(mentor_id) if mentor_id else None,
        )

    async def journey_completed(self, journey_id, user_id, cycle_number) -> None:
        logger.info(
            "notify_journey_completed",
            journey_id=str(journey_id),
            user_id=str(user_id),
            cycle_number=cycle_number,
        )

    async def mentor_assigned(self, journey_id, user_id, mentor_id, phase_title, started_at, duration_days) -> None:
        logger.info(
            "notify_mentor_assigned",
            journey_id=str(journey_id),
            user_id=str(user_id),
            mentor_id=str(mentor_id),
            phase_title=phase_title,
            started_at=started_at.isoformat() if started_at else None,
            duration_days=duration_days,
        )


async def safe_notify(coro) -> None:
    """Await a notifier call; delivery failures are logged, never raised.

    The state change has already committed by the time notifications go out.
    """
    try:
        await coro
    except Exception as e:
        logger.warning("journey_notification_failed", error=str(e), error_type=type(e).__name__)
