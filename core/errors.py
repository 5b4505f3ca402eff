"""
Error taxonomy for the aggregation core.

Soft outcomes (duplicate, non-clan) are not errors; they are reported via
core.engine.Status. Persistence and notification failures are logged at the
dispatch boundary and never surface here.
"""


class MadnessError(Exception):
    """Base class for all core errors."""


class InvalidInput(MadnessError, ValueError):
    """Missing or malformed names, amounts or periods."""


class StateConflict(MadnessError, RuntimeError):
    """Command rejected because it conflicts with current state."""


class DuplicateOrInvalidName(StateConflict):
    """Event name is empty, reserved, or already in use."""
