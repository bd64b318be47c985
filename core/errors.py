"""Tracker exception types."""


class TrackerError(Exception):
    """Base class for tracker failures surfaced to callers."""


class InvalidIdentifier(TrackerError):
    """A channel reference was empty or unusable before any lookup."""


class ProviderError(TrackerError):
    """A platform API call failed, timed out, or returned malformed data."""


class ConfigError(TrackerError):
    """Required configuration (sink channel, credentials) is missing."""
