"""Exception hierarchy for IntonationLab."""


class IntonationLabError(Exception):
    """Base exception for IntonationLab errors"""
    pass


class ConfigurationError(IntonationLabError, ValueError):
    """Raised when an engine configuration is invalid"""
    pass


class AudioSourceError(IntonationLabError):
    """Raised by hosts when the audio acquisition collaborator fails.

    The engine never wraps exceptions coming out of a frame source; hosts
    that want a single exception type for acquisition failures can raise
    this one themselves.
    """
    pass
