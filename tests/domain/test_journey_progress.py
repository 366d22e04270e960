"""Tests for journey progress computation."""
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace

import pytest

from skill_loop.domain.journeys import EmployeeCategory, PhaseStatus
from skill_loop.domain.progress import compute_journey_progress, round_half_up

pytestmark = pytest.mark.unit

START = datetime(2024, 1, 1, tzinfo=UTC)


def _phases(*statuses: PhaseStatus, days: int = 5):
    return [
        SimpleNamespace(phase_number=i, status=s, due_date=START + timedelta(days=days * i))
        for i, s in enumerate(statuses, start=1)
    ]


class TestRounding:
    @pytest.mark.parametrize("value,expected", [(42.5, 43), (42.49, 42), (0.5, 1), (2.5, 3), (100.0, 100)])
    def test_half_rounds_up(self, value, expected):
        assert round_half_up(value) == expected


class TestComputeJourneyProgress:
    def test_fresh_journey(self):
        phases = _phases(PhaseStatus.IN_PROGRESS, PhaseStatus.NOT_STARTED, PhaseStatus.NOT_STARTED)
        progress = compute_journey_progress(phases, EmployeeCategory.RECURRING, START, START)
        assert progress.total_phases == 3
        assert progress.completed_phases == 0
        assert progress.current_phase_number == 1
        assert progress.progress_percentage == 0

    def test_percentage_rounds_half_up(self):
        # 3 of 7 = 42.857 -> 43
        statuses = [PhaseStatus.COMPLETED] * 3 + [PhaseStatus.IN_PROGRESS] + [PhaseStatus.NOT_STARTED] * 3
        progress = compute_journey_progress(_phases(*statuses), EmployeeCategory.NEW_HIRE, START, START)
        assert progress.progress_percentage == 43

    def test_overdue_phase_is_current(self):
        phases = _phases(PhaseStatus.COMPLETED, PhaseStatus.OVERDUE, PhaseStatus.NOT_STARTED)
        progress = compute_journey_progress(phases, EmployeeCategory.RECURRING, START, START)
        assert progress.current_phase_number == 2

    def test_completed_journey_has_no_current_phase(self):
        phases = _phases(PhaseStatus.COMPLETED, PhaseStatus.COMPLETED)
        progress = compute_journey_progress(phases, EmployeeCategory.NEW_HIRE, START, START)
        assert progress.current_phase_number == 0
        assert progress.progress_percentage == 100

    def test_recurring_has_no_day_fields(self):
        phases = _phases(PhaseStatus.IN_PROGRESS)
        progress = compute_journey_progress(phases, EmployeeCategory.RECURRING, START, START + timedelta(days=3))
        assert progress.days_elapsed is None
        assert progress.days_remaining is None
        assert progress.expected_completion_date is None

    def test_new_hire_day_fields(self):
        phases = _phases(PhaseStatus.IN_PROGRESS, PhaseStatus.NOT_STARTED, days=10)
        now = START + timedelta(days=7, hours=20)
        progress = compute_journey_progress(phases, EmployeeCategory.NEW_HIRE, START, now)
        assert progress.days_elapsed == 7
        assert progress.days_remaining == 13
        assert progress.expected_completion_date == START + timedelta(days=20)

    def test_days_remaining_never_negative(self):
        phases = _phases(PhaseStatus.OVERDUE, days=2)
        progress = compute_journey_progress(phases, EmployeeCategory.NEW_HIRE, START, START + timedelta(days=30))
        assert progress.days_elapsed == 30
        assert progress.days_remaining == 0

    def test_empty_phase_list(self):
        progress = compute_journey_progress([], EmployeeCategory.NEW_HIRE, START, START)
        assert progress.total_phases == 0
        assert progress.progress_percentage == 0
        assert progress.days_elapsed is None
