"""
Algorithm implementations for vicbf.
"""

from vicbf.algorithms.bloom import VICBF, VariableIncrementCountingBloomFilter

__all__ = [
    "VariableIncrementCountingBloomFilter",
    "VICBF",
]
