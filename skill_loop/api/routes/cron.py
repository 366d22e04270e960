"""Scheduler-only endpoints, guarded by the CRON_SECRET bearer token."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends

from skill_loop.api.routes.journeys import get_notifier
from skill_loop.core.auth import require_cron_secret
from skill_loop.db.base import get_session_factory
from skill_loop.schemas.journeys import CronSweepResponse
from skill_loop.services.notification_service import JourneyNotifier
from skill_loop.services.overdue_sweeper import check_overdue_phases

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/journey-reminders", response_model=CronSweepResponse, dependencies=[Depends(require_cron_secret)])
async def journey_reminders(notifier: JourneyNotifier = Depends(get_notifier)):
    """Run the overdue sweep. Intended to be called once a day."""
    now = datetime.now(UTC)
    flagged = await check_overdue_phases(get_session_factory(), now=now, notifier=notifier)
    logger.info("cron_journey_reminders_complete", flagged=flagged)
    return CronSweepResponse(overdue_phases_checked=flagged, timestamp=now)
