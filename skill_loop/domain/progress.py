"""Deterministic journey progress computation.

Pure functions with no external dependencies.
"""

import math
from dataclasses import dataclass
from datetime import datetime

from skill_loop.domain.journeys import ACTIVE_PHASE_STATUSES, EmployeeCategory, PhaseStatus

SECONDS_PER_DAY = 86_400


@dataclass
class JourneyProgress:
    """Read-only progress view over a journey's phases.

    The day-based fields are only populated for NEW_HIRE journeys.
    """

    total_phases: int
    completed_phases: int
    current_phase_number: int
    progress_percentage: int
    days_elapsed: int | None = None
    days_remaining: int | None = None
    expected_completion_date: datetime | None = None


def _whole_days(start: datetime, end: datetime) -> int:
    return math.floor((end - start).total_seconds() / SECONDS_PER_DAY)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (Python's round() is banker's rounding)."""
    return math.floor(value + 0.5)


def compute_journey_progress(
    phases: list,
    category: EmployeeCategory,
    started_at: datetime | None,
    now: datetime,
) -> JourneyProgress:
    """Compute progress for a journey.

    Args:
        phases: Phase rows (anything with phase_number, status, due_date), ordered by phase_number
        category: Journey employee category
        started_at: Journey start timestamp
        now: Current time

    Returns:
        JourneyProgress; percentage is 0-100, current_phase_number is 0 when no phase is active
    """
    total = len(phases)
    completed = sum(1 for p in phases if PhaseStatus(p.status) == PhaseStatus.COMPLETED)
    current = next(
        (p.phase_number for p in phases if PhaseStatus(p.status) in ACTIVE_PHASE_STATUSES),
        0,
    )
    percentage = round_half_up(100 * completed / total) if total else 0

    progress = JourneyProgress(
        total_phases=total,
        completed_phases=completed,
        current_phase_number=current,
        progress_percentage=percentage,
    )

    if category != EmployeeCategory.NEW_HIRE or started_at is None or not phases:
        return progress

    last_due = phases[-1].due_date
    if last_due is None:
        return progress

    days_elapsed = _whole_days(started_at, now)
    total_days = _whole_days(started_at, last_due)

    progress.days_elapsed = days_elapsed
    progress.days_remaining = max(0, total_days - days_elapsed)
    progress.expected_completion_date = last_due
    return progress
