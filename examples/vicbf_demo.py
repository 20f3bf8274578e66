"""
Variable-Increment Counting Bloom Filter Demo for vicbf.

This example demonstrates how to use the VI-CBF for set membership testing
with deletion, how saturated counters behave, and how to move a filter
between processes using the binary dump format.
"""

import logging
import random

from vicbf import DumpMode, NotPresentError, VariableIncrementCountingBloomFilter


def demonstrate_basic_operations():
    """Insert, query and remove a handful of keys."""
    print("\n=== VI-CBF Basics ===")

    vicbf = VariableIncrementCountingBloomFilter(slot_count=10000, hash_count=3)
    print(f"Filter: {vicbf!r}")

    words = ["decafbad", "deadbeef", "carebearstare"]
    for word in words:
        vicbf.insert(word)
        print(f"  Inserted '{word}'")

    print("\nChecking membership:")
    for word in words + ["deafbeet", "cafebabe"]:
        print(f"  '{word}' in filter: {word in vicbf}")

    print("\nRemoving 'decafbad'...")
    vicbf.remove("decafbad")
    for word in words:
        print(f"  '{word}' in filter: {word in vicbf}")

    print("\nRemoving a key that was never inserted...")
    try:
        vicbf.remove("cafebabe")
    except NotPresentError as e:
        print(f"  Rejected: {e}")
    print(f"  Element count unchanged: {vicbf.element_count}")


def demonstrate_false_positive_rate():
    """Compare the observed false positive rate with the counting-filter estimate."""
    print("\n=== False Positive Rate ===")

    vicbf = VariableIncrementCountingBloomFilter.create_from_capacity(
        expected_items=1000, false_positive_rate=0.05
    )
    print(f"Sized for 1,000 keys at 5%: m={vicbf.slot_count}, k={vicbf.hash_count}")

    for i in range(1000):
        vicbf.insert(f"member-{i}")

    trials = 20000
    false_positives = sum(1 for i in range(trials) if vicbf.query(f"outsider-{i}"))
    print(f"  Counting filter estimate: {vicbf.false_positive_probability():.4f}")
    print(f"  Observed VI-CBF rate:     {false_positives / trials:.4f}")

    stats = vicbf.get_stats()
    print(f"  Occupied slots: {stats['occupied_slots']:,} ({stats['fill_ratio']:.1%})")
    print(f"  Memory usage:   {stats['memory_bytes']:,} bytes")


def demonstrate_saturation():
    """Show that saturated counters are frozen."""
    print("\n=== Counter Saturation ===")

    vicbf = VariableIncrementCountingBloomFilter(slot_count=4, hash_count=2, base_increment=15)
    keys = [f"hot-{i}" for i in range(40)]
    for key in keys:
        vicbf.insert(key)

    print(f"  Counters after 40 inserts into 4 slots: {vicbf.counters()}")
    print(f"  Saturated slots: {vicbf.saturated_slots()}")

    for key in random.Random(7).sample(keys, 10):
        vicbf.remove(key)
    print(f"  Counters after 10 removes: {vicbf.counters()}")


def demonstrate_serialization():
    """Dump a filter and load it back."""
    print("\n=== Serialization ===")

    vicbf = VariableIncrementCountingBloomFilter(slot_count=10000, hash_count=3)
    vicbf.insert("123")
    vicbf.insert("126")

    partial = vicbf.to_bytes(DumpMode.PARTIAL)
    full = vicbf.to_bytes(DumpMode.FULL)
    print(f"  Partial dump: {len(partial)} bytes -> {partial.hex()}")
    print(f"  Full dump:    {len(full):,} bytes")

    restored = VariableIncrementCountingBloomFilter.from_bytes(partial)
    print(f"  Restored: {restored!r}")
    print(f"  '123' in restored: {'123' in restored}")
    print(f"  '1337' in restored: {'1337' in restored}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    demonstrate_basic_operations()
    demonstrate_false_positive_rate()
    demonstrate_saturation()
    demonstrate_serialization()
