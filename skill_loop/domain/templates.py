"""Default phase templates and journey scheduling.

A template is an ordered list of PhaseConfig. Due dates are laid out once, when
the journey starts, by accumulating each phase's duration from the start date.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from skill_loop.domain.journeys import EmployeeCategory, PhaseStatus, PhaseType


@dataclass(frozen=True)
class PhaseConfig:
    """One phase of a journey template."""

    phase_type: PhaseType
    title: str
    duration_days: int
    description: str | None = None
    mentor_id: uuid.UUID | None = None


@dataclass(frozen=True)
class ScheduledPhase:
    """A PhaseConfig placed on the calendar."""

    phase_number: int
    config: PhaseConfig
    status: PhaseStatus
    started_at: datetime | None
    due_date: datetime


# New hires: 45-day onboarding
DEFAULT_NEW_HIRE_PHASES: tuple[PhaseConfig, ...] = (
    PhaseConfig(
        phase_type=PhaseType.INDUCTION_INITIAL_ASSESSMENT,
        title="Initial Assessment",
        description="Baseline skills assessment for new employee",
        duration_days=2,
    ),
    PhaseConfig(
        phase_type=PhaseType.INDUCTION_TRAINING,
        title="Induction Training",
        description="Company orientation and initial training",
        duration_days=15,
    ),
    PhaseConfig(
        phase_type=PhaseType.SKILL_ASSESSMENT,
        title="Skill Assessment",
        description="Comprehensive skill evaluation",
        duration_days=3,
    ),
    PhaseConfig(
        phase_type=PhaseType.TNA_GENERATION,
        title="TNA Generation",
        description="Training Needs Analysis and planning",
        duration_days=5,
    ),
    PhaseConfig(
        phase_type=PhaseType.PROGRESS_TRACKING,
        title="Training Execution & Progress Tracking",
        description="Execute training plan and track progress",
        duration_days=15,
    ),
    PhaseConfig(
        phase_type=PhaseType.FEEDBACK_COLLECTION,
        title="Feedback Collection",
        description="Collect feedback on training effectiveness",
        duration_days=2,
    ),
    PhaseConfig(
        phase_type=PhaseType.POST_ASSESSMENT,
        title="Post-Assessment",
        description="Final assessment to validate skill acquisition",
        duration_days=3,
    ),
)

# Existing employees: repeating development cycle
DEFAULT_RECURRING_PHASES: tuple[PhaseConfig, ...] = (
    PhaseConfig(
        phase_type=PhaseType.ROLE_ASSESSMENT,
        title="Role Assessment",
        description="Assess skills against role requirements",
        duration_days=3,
    ),
    PhaseConfig(
        phase_type=PhaseType.TRAINING_ASSIGNMENT,
        title="Training Assignment",
        description="Assign training based on skill gaps",
        duration_days=2,
    ),
    PhaseConfig(
        phase_type=PhaseType.TRAINING_EXECUTION,
        title="Training Execution",
        description="Complete assigned training",
        duration_days=30,
    ),
    PhaseConfig(
        phase_type=PhaseType.RE_ASSESSMENT,
        title="Re-Assessment",
        description="Validate skill improvement",
        duration_days=2,
    ),
    PhaseConfig(
        phase_type=PhaseType.MATRIX_UPDATE,
        title="Matrix Update",
        description="Update skill matrix with new proficiency levels",
        duration_days=1,
    ),
)


def default_phases_for(category: EmployeeCategory) -> list[PhaseConfig]:
    """Return the default template for an employee category."""
    if category == EmployeeCategory.NEW_HIRE:
        return list(DEFAULT_NEW_HIRE_PHASES)
    return list(DEFAULT_RECURRING_PHASES)


def validate_phase_configs(phases: list[PhaseConfig]) -> None:
    """Boundary check for caller-supplied templates.

    Raises:
        ValueError: empty list or a non-positive duration
    """
    if not phases:
        raise ValueError("A journey needs at least one phase")
    for index, phase in enumerate(phases, start=1):
        if phase.duration_days <= 0:
            raise ValueError(f"Phase {index} ({phase.title}) must last at least one day")


def build_schedule(phases: list[PhaseConfig], start_date: datetime) -> list[ScheduledPhase]:
    """Lay phases out back to back from start_date.

    Phase 1 starts immediately (IN_PROGRESS); the rest wait (NOT_STARTED).
    Each due date is the previous due date plus the phase duration.

    Pure function -- no side effects, no DB access.
    """
    schedule: list[ScheduledPhase] = []
    cursor = start_date
    for index, config in enumerate(phases, start=1):
        due_date = cursor + timedelta(days=config.duration_days)
        first = index == 1
        schedule.append(
            ScheduledPhase(
                phase_number=index,
                config=config,
                status=PhaseStatus.IN_PROGRESS if first else PhaseStatus.NOT_STARTED,
                started_at=start_date if first else None,
                due_date=due_date,
            )
        )
        cursor = due_date
    return schedule
