"""
Core functionality for vicbf.
"""

from vicbf.core.base import MembershipFilter
from vicbf.core.errors import (
    ConfigurationError,
    FormatError,
    NotPresentError,
    VICBFError,
)
from vicbf.core.hash import calculate_increment, calculate_slot, key_to_bytes

__all__ = [
    # Base classes
    "MembershipFilter",
    # Errors
    "VICBFError",
    "ConfigurationError",
    "NotPresentError",
    "FormatError",
    # Utility functions
    "calculate_slot",
    "calculate_increment",
    "key_to_bytes",
]
