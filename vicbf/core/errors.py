"""
Exception types raised by the VI-CBF library.
"""


class VICBFError(Exception):
    """Base class for all errors raised by this library."""


class ConfigurationError(VICBFError, ValueError):
    """Raised when a filter is constructed with invalid parameters."""


class NotPresentError(VICBFError, LookupError):
    """
    Raised by remove() when the current counters cannot substantiate that the
    key was ever inserted.
    """


class FormatError(VICBFError, ValueError):
    """Raised when bytes cannot be decoded as (or a filter encoded to) a dump."""
