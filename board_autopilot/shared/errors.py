"""
Exception hierarchy for board_autopilot.
"""


class AutopilotError(Exception):
    """Base class for all board_autopilot errors."""


class ClassificationError(AutopilotError):
    """A classification cycle could not label all 64 cells."""


class SyncError(AutopilotError):
    """The remote decision service could not be reached or rejected a request."""


class MoveParseError(AutopilotError):
    """A move or square string is not valid board notation."""


class StoreError(AutopilotError):
    """The shared state store could not be read or written."""
