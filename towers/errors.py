"""
Error types raised by the rules engine.
"""


class TowersError(Exception):
    """Base class for rules engine errors."""


class ValidationError(TowersError):
    """An attempted operation violates a precondition.

    The operation is rejected and the prior GameState stays current;
    `reason` is meant for display to the player.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InvariantViolation(TowersError):
    """Internal inconsistency in a game state or catalog reference."""
