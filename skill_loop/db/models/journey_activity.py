"""JourneyActivity model: append-only journey audit log."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, event
from sqlalchemy import Enum as SqlEnum

from skill_loop.db.base import Base
from skill_loop.db.types import JSONType, UTCDateTime
from skill_loop.domain.journeys import ActivityType


class JourneyActivity(Base):
    __tablename__ = "journey_activities"
    __table_args__ = (UniqueConstraint("journey_id", "sequence", name="uq_journey_activity_sequence"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    journey_id = Column(
        Uuid, ForeignKey("employee_journeys.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sequence = Column(Integer, nullable=False)  # insertion order within the journey
    phase_number = Column(Integer, nullable=True)  # null for journey-level events

    activity_type = Column(SqlEnum(ActivityType, native_enum=False, length=64), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    detail = Column(JSONType, nullable=False, default=dict)  # event-specific payload
    actor_user_id = Column(Uuid, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), index=True)
    # NO updated_at -- activities are immutable (append-only)


@event.listens_for(JourneyActivity, "before_update")
def _reject_activity_update(mapper, connection, target):
    raise RuntimeError("JourneyActivity rows are append-only")


@event.listens_for(JourneyActivity, "before_delete")
def _reject_activity_delete(mapper, connection, target):
    raise RuntimeError("JourneyActivity rows are append-only")
