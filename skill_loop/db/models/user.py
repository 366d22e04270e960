"""User model: journey-facing projection of an employee."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Column, Integer, String, Uuid
from sqlalchemy import Enum as SqlEnum

from skill_loop.db.base import Base
from skill_loop.db.types import UTCDateTime
from skill_loop.domain.journeys import EmployeeCategory, JourneyStatus


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=False, default="")

    # Mirrors of the current journey, written only alongside the journey change itself
    employee_category = Column(SqlEnum(EmployeeCategory, native_enum=False, length=32), nullable=True)
    journey_status = Column(SqlEnum(JourneyStatus, native_enum=False, length=32), nullable=True)
    current_phase_id = Column(Uuid, nullable=True)  # weak pointer, no FK (phases reference users)

    created_at = Column(UTCDateTime, nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        UTCDateTime, nullable=False, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC)
    )

    # Bumped whenever the projection changes; two concurrent journey creations
    # for one user cannot both commit
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
