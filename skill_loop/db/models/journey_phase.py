"""JourneyPhase model: one ordered step of a journey."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy import Enum as SqlEnum

from skill_loop.db.base import Base
from skill_loop.db.types import UTCDateTime
from skill_loop.domain.journeys import PhaseStatus, PhaseType


class JourneyPhase(Base):
    __tablename__ = "journey_phases"
    __table_args__ = (UniqueConstraint("journey_id", "phase_number", name="uq_journey_phase_number"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    journey_id = Column(
        Uuid, ForeignKey("employee_journeys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    phase_number = Column(Integer, nullable=False)  # 1..N, contiguous

    phase_type = Column(SqlEnum(PhaseType, native_enum=False, length=64), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_days = Column(Integer, nullable=False)

    status = Column(
        SqlEnum(PhaseStatus, native_enum=False, length=32),
        nullable=False,
        default=PhaseStatus.NOT_STARTED,
        index=True,
    )
    started_at = Column(UTCDateTime, nullable=True)
    due_date = Column(UTCDateTime, nullable=True, index=True)  # fixed when the journey is scheduled
    completed_at = Column(UTCDateTime, nullable=True)

    mentor_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)
    # Weak references into the assessment and training subsystems
    assessment_id = Column(String(64), nullable=True, index=True)
    training_assignment_id = Column(String(64), nullable=True, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )
