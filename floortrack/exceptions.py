"""
Error taxonomy for tracker operations.

Both subclasses are user-facing: the message is the reason returned to the
client with an HTTP 400.
"""


class TrackerError(ValueError):
    """Base class for rejected tracker operations."""
    pass


class ValidationError(TrackerError):
    """Malformed input (dates, times, offsets, missing fields, bad ranges)."""
    pass


class StateConflictError(TrackerError):
    """The request is well-formed but conflicts with the user's current clock state."""
    pass
