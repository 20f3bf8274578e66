"""
Bloom Filter implementations for vicbf.

This includes:
- VariableIncrementCountingBloomFilter: counting Bloom filter with variable
  increments, supporting deletion with a lower false positive rate
- SparseCounterStore / DenseCounterStore: counter storage backends
- codec: the binary full/partial dump format
"""

from vicbf.algorithms.bloom.codec import DumpMode
from vicbf.algorithms.bloom.counters import DenseCounterStore, SparseCounterStore
from vicbf.algorithms.bloom.variable import VICBF, VariableIncrementCountingBloomFilter

__all__ = [
    "VariableIncrementCountingBloomFilter",
    "VICBF",
    "DumpMode",
    "SparseCounterStore",
    "DenseCounterStore",
]
