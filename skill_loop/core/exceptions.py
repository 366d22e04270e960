class SkillLoopError(Exception):
    """Base exception for the Skill Loop journey engine."""

    status_code: int = 500


class NotFoundError(SkillLoopError):
    """Raised when a referenced record does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class JourneyNotFoundError(NotFoundError):
    """Raised when a journey id does not resolve."""

    def __init__(self, journey_id: object):
        super().__init__("Journey", journey_id)


class PhaseNotFoundError(NotFoundError):
    """Raised when a phase id (or journey + phase number) does not resolve."""

    def __init__(self, phase_id: object):
        super().__init__("Phase", phase_id)


class UserNotFoundError(NotFoundError):
    """Raised when a user id does not resolve."""

    def __init__(self, user_id: object):
        super().__init__("User", user_id)


class JourneyInvariantError(SkillLoopError):
    """Raised when a journey aggregate is internally inconsistent.

    Examples: two active phases at once, gaps in phase numbering. The engine
    refuses to guess a repair.
    """

    def __init__(self, journey_id: object, problem: str):
        self.journey_id = journey_id
        self.problem = problem
        super().__init__(f"Journey {journey_id} is inconsistent: {problem}")


class InvalidTransitionError(SkillLoopError):
    """Raised when a requested state change is not allowed."""

    status_code = 409

    def __init__(self, entity: str, current: str, target: str, reason: str = ""):
        self.entity = entity
        self.current = current
        self.target = target
        self.reason = reason
        message = f"{entity} cannot move from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ActiveJourneyExistsError(SkillLoopError):
    """Raised when creating a journey for a user who already has an open one."""

    status_code = 409

    def __init__(self, user_id: object, journey_id: object):
        self.user_id = user_id
        self.journey_id = journey_id
        super().__init__(f"User {user_id} already has an active journey ({journey_id})")


class PhaseEditNotAllowedError(SkillLoopError):
    """Raised when a structural phase edit is refused (wrong category or status)."""

    status_code = 409


class PhaseConfigError(SkillLoopError):
    """Raised when a phase configuration list is invalid."""

    status_code = 422
