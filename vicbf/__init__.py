"""
vicbf - Variable-Increment Counting Bloom Filter

vicbf is a Python library implementing the Variable-Increment Counting Bloom
Filter, an approximate set membership structure supporting insertion, query and
deletion, with a compact binary dump format shared with other implementations.
"""

__version__ = "0.1.0"

# Import main classes to make them available at the top level
from vicbf.algorithms.bloom import VICBF, DumpMode, VariableIncrementCountingBloomFilter
from vicbf.core.base import MembershipFilter
from vicbf.core.errors import (
    ConfigurationError,
    FormatError,
    NotPresentError,
    VICBFError,
)

__all__ = [
    # Core base classes
    "MembershipFilter",
    # Errors
    "VICBFError",
    "ConfigurationError",
    "NotPresentError",
    "FormatError",
    # Algorithm implementations
    "VariableIncrementCountingBloomFilter",
    "VICBF",
    "DumpMode",
]
