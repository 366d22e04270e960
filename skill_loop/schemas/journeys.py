"""Journey Pydantic schemas for API requests and responses."""

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from skill_loop.domain.journeys import (
    ActivityType,
    EmployeeCategory,
    JourneyStatus,
    PhaseStatus,
    PhaseType,
)
from skill_loop.domain.progress import JourneyProgress
from skill_loop.domain.templates import PhaseConfig


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes from clients are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ──────────────────────────────────────────────────────────────────────────────
# Requests
# ──────────────────────────────────────────────────────────────────────────────


class PhaseConfigIn(BaseModel):
    """One phase of a custom journey template."""

    phase_type: PhaseType
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    duration_days: int = Field(gt=0)
    mentor_id: uuid.UUID | None = None

    def to_config(self) -> PhaseConfig:
        return PhaseConfig(
            phase_type=self.phase_type,
            title=self.title,
            duration_days=self.duration_days,
            description=self.description,
            mentor_id=self.mentor_id,
        )


class CreateJourneyRequest(BaseModel):
    """Start a journey for an employee. Omit phases to use the category template."""

    user_id: uuid.UUID
    employee_category: EmployeeCategory
    phases: list[PhaseConfigIn] | None = Field(default=None, min_length=1)
    start_date: datetime | None = None

    @field_validator("start_date")
    @classmethod
    def start_date_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class AdvanceJourneyRequest(BaseModel):
    """Advance a journey's active phase on behalf of an external system."""

    source: str = Field(default="api", min_length=1)
    detail: dict | None = None


class PauseJourneyRequest(BaseModel):
    reason: str | None = None


class CompletePhaseRequest(BaseModel):
    completed_by: str = Field(min_length=1)
    notes: str | None = None


class SkipPhaseRequest(BaseModel):
    skipped_by: str | None = None
    reason: str | None = None


class AddPhaseRequest(BaseModel):
    """Insert a phase into a NEW_HIRE journey. insert_after=None appends."""

    phase: PhaseConfigIn
    insert_after: int | None = Field(default=None, ge=0)


class UpdatePhaseRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    duration_days: int | None = Field(default=None, gt=0)


class AssignMentorRequest(BaseModel):
    mentor_id: uuid.UUID
    notify: bool = True


class LinkAssessmentRequest(BaseModel):
    assessment_id: str = Field(min_length=1, max_length=64)


class LinkTrainingRequest(BaseModel):
    training_assignment_id: str = Field(min_length=1, max_length=64)


class AssessmentCompletedEvent(BaseModel):
    """Posted by the assessment subsystem when an attempt completes."""

    assessment_id: str = Field(min_length=1, max_length=64)
    user_id: uuid.UUID


class TrainingCompletedEvent(BaseModel):
    """Posted by the training subsystem when an assignment completes."""

    training_assignment_id: str = Field(min_length=1, max_length=64)


# ──────────────────────────────────────────────────────────────────────────────
# Responses
# ──────────────────────────────────────────────────────────────────────────────


class CreateJourneyResponse(BaseModel):
    journey_id: uuid.UUID


class AdvanceResponse(BaseModel):
    """advanced=False means there was nothing to do (no active phase, or already completed)."""

    advanced: bool


class JourneyStatusResponse(BaseModel):
    journey_id: uuid.UUID
    status: JourneyStatus


class CronSweepResponse(BaseModel):
    success: bool = True
    overdue_phases_checked: int
    timestamp: datetime


class ProgressResponse(BaseModel):
    total_phases: int
    completed_phases: int
    current_phase_number: int
    progress_percentage: int
    days_elapsed: int | None = None
    days_remaining: int | None = None
    expected_completion_date: datetime | None = None

    @classmethod
    def from_progress(cls, progress: JourneyProgress) -> "ProgressResponse":
        return cls(
            total_phases=progress.total_phases,
            completed_phases=progress.completed_phases,
            current_phase_number=progress.current_phase_number,
            progress_percentage=progress.progress_percentage,
            days_elapsed=progress.days_elapsed,
            days_remaining=progress.days_remaining,
            expected_completion_date=progress.expected_completion_date,
        )


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str


class PhaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    journey_id: uuid.UUID
    phase_number: int
    phase_type: PhaseType
    title: str
    description: str | None = None
    duration_days: int
    status: PhaseStatus
    started_at: datetime | None = None
    due_date: datetime | None = None
    completed_at: datetime | None = None
    mentor_id: uuid.UUID | None = None
    assessment_id: str | None = None
    training_assignment_id: str | None = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    sequence: int
    phase_number: int | None = None
    activity_type: ActivityType
    title: str
    description: str | None = None
    detail: dict = Field(default_factory=dict)
    actor_user_id: uuid.UUID | None = None
    created_at: datetime


class JourneyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    employee_category: EmployeeCategory
    status: JourneyStatus
    cycle_number: int
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime


class JourneyDetailResponse(BaseModel):
    """A journey with its phases, newest activities first, and progress."""

    journey: JourneyResponse
    user: UserSummary
    phases: list[PhaseResponse]
    activities: list[ActivityResponse]
    progress: ProgressResponse


class JourneySummaryResponse(BaseModel):
    """Row of the admin journey list."""

    journey: JourneyResponse
    user: UserSummary
    current_phase: PhaseResponse | None = None
    progress: ProgressResponse


class JourneyStatisticsResponse(BaseModel):
    """Dashboard counters. new_hires and recurring count IN_PROGRESS journeys only."""

    total: int
    in_progress: int
    completed: int
    paused: int
    new_hires: int
    recurring: int
    overdue_phases: int
    recent_activities: list[ActivityResponse] = Field(default_factory=list)


class MentorPhaseResponse(BaseModel):
    """A phase a mentor is assigned to, with its mentee."""

    phase: PhaseResponse
    journey_id: uuid.UUID
    mentee: UserSummary


class PhaseConfigOut(BaseModel):
    phase_type: PhaseType
    title: str
    description: str | None = None
    duration_days: int

    @classmethod
    def from_config(cls, config: PhaseConfig) -> "PhaseConfigOut":
        return cls(
            phase_type=config.phase_type,
            title=config.title,
            description=config.description,
            duration_days=config.duration_days,
        )
