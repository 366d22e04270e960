"""Tests for journey/phase enums, transition validation and trigger reasons."""
from types import SimpleNamespace

import pytest

from skill_loop.domain.journeys import (
    ACTIVE_PHASE_STATUSES,
    AssessmentCompleted,
    JourneyStatus,
    ManualOverride,
    PhaseSkipped,
    PhaseStatus,
    SystemTrigger,
    TrainingCompleted,
    check_phase_numbering,
    find_active_phase,
    validate_journey_transition,
    validate_phase_transition,
)

pytestmark = pytest.mark.unit


def _phase(number: int, status: PhaseStatus):
    return SimpleNamespace(phase_number=number, status=status)


class TestPhaseTransitions:
    """Phase status changes follow NOT_STARTED -> IN_PROGRESS -> (OVERDUE) -> COMPLETED.

    An OVERDUE phase may return to IN_PROGRESS when its due date is extended.
    """

    @pytest.mark.parametrize(
        "current,target",
        [
            (PhaseStatus.NOT_STARTED, PhaseStatus.IN_PROGRESS),
            (PhaseStatus.IN_PROGRESS, PhaseStatus.COMPLETED),
            (PhaseStatus.IN_PROGRESS, PhaseStatus.OVERDUE),
            (PhaseStatus.OVERDUE, PhaseStatus.COMPLETED),
            (PhaseStatus.OVERDUE, PhaseStatus.IN_PROGRESS),
        ],
    )
    def test_allowed(self, current, target):
        assert validate_phase_transition(current, target).allowed is True

    @pytest.mark.parametrize("target", [PhaseStatus.NOT_STARTED, PhaseStatus.IN_PROGRESS, PhaseStatus.OVERDUE])
    def test_completed_never_reverts(self, target):
        result = validate_phase_transition(PhaseStatus.COMPLETED, target)
        assert result.allowed is False
        assert result.reason == "Completed phases never revert"

    def test_not_started_cannot_become_overdue(self):
        result = validate_phase_transition(PhaseStatus.NOT_STARTED, PhaseStatus.OVERDUE)
        assert result.allowed is False
        assert "in-progress" in result.reason

    def test_not_started_cannot_skip_to_completed(self):
        assert validate_phase_transition(PhaseStatus.NOT_STARTED, PhaseStatus.COMPLETED).allowed is False

    def test_overdue_cannot_go_back_to_not_started(self):
        assert validate_phase_transition(PhaseStatus.OVERDUE, PhaseStatus.NOT_STARTED).allowed is False

    def test_overdue_counts_as_active(self):
        assert PhaseStatus.OVERDUE in ACTIVE_PHASE_STATUSES
        assert PhaseStatus.IN_PROGRESS in ACTIVE_PHASE_STATUSES
        assert PhaseStatus.NOT_STARTED not in ACTIVE_PHASE_STATUSES


class TestJourneyTransitions:
    def test_pause_and_resume(self):
        assert validate_journey_transition(JourneyStatus.IN_PROGRESS, JourneyStatus.PAUSED).allowed
        assert validate_journey_transition(JourneyStatus.PAUSED, JourneyStatus.IN_PROGRESS).allowed

    def test_pause_twice_rejected(self):
        result = validate_journey_transition(JourneyStatus.PAUSED, JourneyStatus.PAUSED)
        assert result.allowed is False
        assert result.reason == "Journey is already PAUSED"

    def test_paused_journey_cannot_complete(self):
        result = validate_journey_transition(JourneyStatus.PAUSED, JourneyStatus.COMPLETED)
        assert result.allowed is False
        assert result.reason == "Resume the journey first"

    @pytest.mark.parametrize("target", [JourneyStatus.IN_PROGRESS, JourneyStatus.PAUSED])
    def test_completed_is_terminal(self, target):
        result = validate_journey_transition(JourneyStatus.COMPLETED, target)
        assert result.allowed is False
        assert result.reason == "Journey is already completed"

    def test_resume_requires_paused(self):
        assert validate_journey_transition(JourneyStatus.IN_PROGRESS, JourneyStatus.IN_PROGRESS).allowed is False


class TestAggregateChecks:
    def test_find_active_phase_returns_the_in_progress_one(self):
        phases = [_phase(1, PhaseStatus.COMPLETED), _phase(2, PhaseStatus.IN_PROGRESS), _phase(3, PhaseStatus.NOT_STARTED)]
        assert find_active_phase(phases).phase_number == 2

    def test_find_active_phase_accepts_overdue(self):
        phases = [_phase(1, PhaseStatus.OVERDUE), _phase(2, PhaseStatus.NOT_STARTED)]
        assert find_active_phase(phases).phase_number == 1

    def test_find_active_phase_none_when_all_completed(self):
        assert find_active_phase([_phase(1, PhaseStatus.COMPLETED)]) is None

    def test_two_active_phases_rejected(self):
        phases = [_phase(1, PhaseStatus.IN_PROGRESS), _phase(2, PhaseStatus.OVERDUE)]
        with pytest.raises(ValueError, match="phases 1, 2 are active"):
            find_active_phase(phases)

    def test_contiguous_numbering_passes(self):
        check_phase_numbering([3, 1, 2])

    @pytest.mark.parametrize("numbers", [[], [1, 3], [2, 3], [1, 1, 2]])
    def test_bad_numbering_rejected(self, numbers):
        with pytest.raises(ValueError):
            check_phase_numbering(numbers)


class TestTriggers:
    def test_assessment_trigger_detail(self):
        trigger = AssessmentCompleted(assessment_id="asmt-1")
        assert trigger.kind == "assessment_completion"
        assert trigger.to_detail() == {"kind": "assessment_completion", "assessment_id": "asmt-1"}
        assert trigger.describe() == "assessment asmt-1 completion"

    def test_training_trigger_detail(self):
        trigger = TrainingCompleted(training_assignment_id="ta-9")
        assert trigger.to_detail()["training_assignment_id"] == "ta-9"

    def test_manual_override_records_actor_and_notes(self):
        trigger = ManualOverride(by="admin-1", notes="done offline")
        assert trigger.to_detail() == {"kind": "manual_completion", "by": "admin-1", "notes": "done offline"}
        assert trigger.describe() == "manual completion by admin-1"

    def test_skip_without_actor(self):
        assert PhaseSkipped().describe() == "phase skipped"

    def test_system_trigger_describes_source(self):
        assert SystemTrigger(source="hr-sync").describe() == "hr-sync"

    def test_kind_is_not_constructor_argument(self):
        with pytest.raises(TypeError):
            SystemTrigger(source="x", kind="other")
