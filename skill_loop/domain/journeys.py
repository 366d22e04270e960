"""Journey and phase enums, transition rules, and trigger reasons.

Pure domain logic with no external dependencies.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EmployeeCategory(str, Enum):
    """Which template family a journey follows."""

    NEW_HIRE = "NEW_HIRE"
    RECURRING = "RECURRING"  # restarts with cycle_number + 1 on completion


class JourneyStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"


class PhaseStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


class PhaseType(str, Enum):
    """Kinds of journey phases used by the default templates."""

    # New hire onboarding
    INDUCTION_INITIAL_ASSESSMENT = "INDUCTION_INITIAL_ASSESSMENT"
    INDUCTION_TRAINING = "INDUCTION_TRAINING"
    SKILL_ASSESSMENT = "SKILL_ASSESSMENT"
    TNA_GENERATION = "TNA_GENERATION"
    PROGRESS_TRACKING = "PROGRESS_TRACKING"
    FEEDBACK_COLLECTION = "FEEDBACK_COLLECTION"
    POST_ASSESSMENT = "POST_ASSESSMENT"

    # Recurring development cycle
    ROLE_ASSESSMENT = "ROLE_ASSESSMENT"
    TRAINING_ASSIGNMENT = "TRAINING_ASSIGNMENT"
    TRAINING_EXECUTION = "TRAINING_EXECUTION"
    RE_ASSESSMENT = "RE_ASSESSMENT"
    MATRIX_UPDATE = "MATRIX_UPDATE"


class ActivityType(str, Enum):
    """Audit log event kinds."""

    JOURNEY_STARTED = "JOURNEY_STARTED"
    JOURNEY_COMPLETED = "JOURNEY_COMPLETED"
    JOURNEY_PAUSED = "JOURNEY_PAUSED"
    JOURNEY_RESUMED = "JOURNEY_RESUMED"
    PHASE_STARTED = "PHASE_STARTED"
    PHASE_AUTO_COMPLETED = "PHASE_AUTO_COMPLETED"
    PHASE_OVERDUE = "PHASE_OVERDUE"
    PHASE_ADDED = "PHASE_ADDED"
    PHASE_DELETED = "PHASE_DELETED"
    PHASE_UPDATED = "PHASE_UPDATED"
    ASSESSMENT_LINKED = "ASSESSMENT_LINKED"
    TRAINING_LINKED = "TRAINING_LINKED"
    MENTOR_ASSIGNED = "MENTOR_ASSIGNED"
    MENTOR_REMOVED = "MENTOR_REMOVED"


# OVERDUE is a sub-state of "active": the phase is still the one being worked on
ACTIVE_PHASE_STATUSES = frozenset({PhaseStatus.IN_PROGRESS, PhaseStatus.OVERDUE})

# Journeys in these states block creating another journey for the same user.
# PAUSED counts: resuming it must not leave the user with two live journeys.
OPEN_JOURNEY_STATUSES = frozenset({JourneyStatus.NOT_STARTED, JourneyStatus.IN_PROGRESS, JourneyStatus.PAUSED})

PHASE_TRANSITIONS: dict[PhaseStatus, frozenset[PhaseStatus]] = {
    PhaseStatus.NOT_STARTED: frozenset({PhaseStatus.IN_PROGRESS}),
    PhaseStatus.IN_PROGRESS: frozenset({PhaseStatus.COMPLETED, PhaseStatus.OVERDUE}),
    # Back to IN_PROGRESS only when an admin moves the due date into the future
    PhaseStatus.OVERDUE: frozenset({PhaseStatus.COMPLETED, PhaseStatus.IN_PROGRESS}),
    PhaseStatus.COMPLETED: frozenset(),  # Terminal
}

JOURNEY_TRANSITIONS: dict[JourneyStatus, frozenset[JourneyStatus]] = {
    JourneyStatus.NOT_STARTED: frozenset({JourneyStatus.IN_PROGRESS}),
    JourneyStatus.IN_PROGRESS: frozenset({JourneyStatus.PAUSED, JourneyStatus.COMPLETED}),
    JourneyStatus.PAUSED: frozenset({JourneyStatus.IN_PROGRESS}),
    JourneyStatus.COMPLETED: frozenset(),  # Terminal
}


@dataclass
class TransitionResult:
    """Result of a transition check."""

    allowed: bool
    reason: str = ""


def validate_phase_transition(current: PhaseStatus, target: PhaseStatus) -> TransitionResult:
    """Check a phase status change against PHASE_TRANSITIONS.

    Pure function -- no side effects, no DB access.
    """
    if target in PHASE_TRANSITIONS[current]:
        return TransitionResult(True)
    if current == PhaseStatus.COMPLETED:
        return TransitionResult(False, "Completed phases never revert")
    if target == PhaseStatus.OVERDUE:
        return TransitionResult(False, "Only an in-progress phase can become overdue")
    return TransitionResult(False, f"{current.value} -> {target.value} is not a phase transition")


def validate_journey_transition(current: JourneyStatus, target: JourneyStatus) -> TransitionResult:
    """Check a journey status change against JOURNEY_TRANSITIONS.

    Pure function -- no side effects, no DB access.
    """
    if target in JOURNEY_TRANSITIONS[current]:
        return TransitionResult(True)
    if current == JourneyStatus.COMPLETED:
        return TransitionResult(False, "Journey is already completed")
    if current == target:
        return TransitionResult(False, f"Journey is already {current.value}")
    if current == JourneyStatus.PAUSED:
        return TransitionResult(False, "Resume the journey first")
    return TransitionResult(False, f"{current.value} -> {target.value} is not a journey transition")


def find_active_phase(phases: list):
    """Return the single active phase of an ordered phase list, or None.

    Raises:
        ValueError: more than one phase is active
    """
    active = [p for p in phases if PhaseStatus(p.status) in ACTIVE_PHASE_STATUSES]
    if len(active) > 1:
        numbers = ", ".join(str(p.phase_number) for p in active)
        raise ValueError(f"phases {numbers} are active at the same time")
    return active[0] if active else None


def check_phase_numbering(phase_numbers: list[int]) -> None:
    """Verify phase numbers are exactly 1..N.

    Raises:
        ValueError: gaps, duplicates, or an empty journey
    """
    if not phase_numbers:
        raise ValueError("journey has no phases")
    expected = list(range(1, len(phase_numbers) + 1))
    if sorted(phase_numbers) != expected:
        raise ValueError(f"phase numbers {sorted(phase_numbers)} are not contiguous from 1")


# ──────────────────────────────────────────────────────────────────────────────
# Trigger reasons
#
# Why a phase was completed. Stored on PHASE_AUTO_COMPLETED activities as
# structured detail under the "trigger" key.
# ──────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class AssessmentCompleted:
    assessment_id: str
    kind: str = field(default="assessment_completion", init=False)

    def describe(self) -> str:
        return f"assessment {self.assessment_id} completion"

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "assessment_id": self.assessment_id}


@dataclass(frozen=True)
class TrainingCompleted:
    training_assignment_id: str
    kind: str = field(default="training_completion", init=False)

    def describe(self) -> str:
        return f"training assignment {self.training_assignment_id} completion"

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "training_assignment_id": self.training_assignment_id}


@dataclass(frozen=True)
class ManualOverride:
    by: str
    notes: str | None = None
    kind: str = field(default="manual_completion", init=False)

    def describe(self) -> str:
        return f"manual completion by {self.by}"

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "by": self.by, "notes": self.notes}


@dataclass(frozen=True)
class PhaseSkipped:
    by: str | None = None
    reason: str | None = None
    kind: str = field(default="phase_skipped", init=False)

    def describe(self) -> str:
        return f"phase skipped by {self.by}" if self.by else "phase skipped"

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "by": self.by, "reason": self.reason}


@dataclass(frozen=True)
class SystemTrigger:
    source: str
    kind: str = field(default="system", init=False)

    def describe(self) -> str:
        return self.source

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind, "source": self.source}


Trigger = AssessmentCompleted | TrainingCompleted | ManualOverride | PhaseSkipped | SystemTrigger
