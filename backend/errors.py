"""
Error taxonomy shared by the fantasy core and the HTTP layer.
"""

from enum import Enum


class SquadViolation(str, Enum):
    PLAYERS_NOT_FOUND = "players_not_found"
    SQUAD_SIZE = "squad_size"
    GOALKEEPER_COUNT = "goalkeeper_count"
    DEFENDER_COUNT = "defender_count"
    MIDFIELDER_COUNT = "midfielder_count"
    FORWARD_COUNT = "forward_count"
    TEAM_CAP = "team_cap"
    BUDGET = "budget"


class FantasyError(Exception):
    status_code = 500
    reason = "error"

    def __init__(self, message: str, reason=None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason.value if isinstance(reason, Enum) else reason


class ValidationError(FantasyError):
    status_code = 400
    reason = "invalid"


class DeadlinePassedError(ValidationError):
    status_code = 403
    reason = "deadline_passed"


class NotFoundError(FantasyError):
    status_code = 404
    reason = "not_found"


class AuthorizationError(FantasyError):
    status_code = 403
    reason = "forbidden"


class ConflictError(FantasyError):
    status_code = 409
    reason = "conflict"
