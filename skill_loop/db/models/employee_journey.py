"""EmployeeJourney model: one employee's onboarding or development cycle."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, ForeignKey, Integer, Uuid
from sqlalchemy import Enum as SqlEnum

from skill_loop.db.base import Base
from skill_loop.db.types import UTCDateTime
from skill_loop.domain.journeys import EmployeeCategory, JourneyStatus


class EmployeeJourney(Base):
    __tablename__ = "employee_journeys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    employee_category = Column(SqlEnum(EmployeeCategory, native_enum=False, length=32), nullable=False)
    status = Column(
        SqlEnum(JourneyStatus, native_enum=False, length=32),
        nullable=False,
        default=JourneyStatus.NOT_STARTED,
        index=True,
    )
    cycle_number = Column(Integer, nullable=False, default=1)  # RECURRING journeys count up per renewal

    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), index=True)
    updated_at = Column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    # Bumped by every journey mutation; a stale writer fails with StaleDataError
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
