"""Re-export all models so Base.metadata sees them."""

from skill_loop.db.models.employee_journey import EmployeeJourney
from skill_loop.db.models.journey_activity import JourneyActivity
from skill_loop.db.models.journey_phase import JourneyPhase
from skill_loop.db.models.user import User

__all__ = [
    "EmployeeJourney",
    "JourneyActivity",
    "JourneyPhase",
    "User",
]
