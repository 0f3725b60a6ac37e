"""
errors.py - exception types shared by the tracker, store adapters and UI.

The UI catches TrackerError around every mutation and shows the message, so
a failed write is never reported to the user as a success.
"""


class TrackerError(Exception):
    """Base class for every error raised by the tracker."""


class ValidationError(TrackerError):
    """Input rejected before any write was attempted."""


class StoreError(TrackerError):
    """A store backend failed to read or write records."""


class ConfigError(TrackerError):
    """The deployment configuration is unusable."""
