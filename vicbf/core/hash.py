"""
Hash derivation for the Variable-Increment Counting Bloom Filter.

Slot indices and increments are both truncations of a SHA-1 digest read as an
unsigned big-endian integer. Slots hash the key followed by the index, while
increments hash the negated index followed by the key, so that slot and
increment selection are independent of each other. Outputs must be stable
across processes and across implementations, since serialized filters are
exchanged with other runtimes.
"""

import hashlib
from typing import Union

KeyLike = Union[bytes, bytearray, memoryview, str]


def key_to_bytes(key: KeyLike) -> bytes:
    """
    Normalize a key to the raw bytes that get hashed.

    Args:
        key: A byte sequence, or a str which is encoded as UTF-8.

    Returns:
        The key as bytes.

    Raises:
        TypeError: If the key is neither bytes-like nor str.
    """
    if isinstance(key, bytes):
        return key
    if isinstance(key, (bytearray, memoryview)):
        return bytes(key)
    if isinstance(key, str):
        return key.encode("utf-8")
    raise TypeError(f"Keys must be bytes or str, got {type(key).__name__}")


def _digest_as_int(data: bytes) -> int:
    # All 20 digest bytes are magnitude, never a sign bit
    return int.from_bytes(hashlib.sha1(data).digest(), "big")


def calculate_slot(key: bytes, index: int, slot_count: int) -> int:
    """
    Derive the slot that hash function `index` assigns to `key`.

    The digest input is the key followed by the ASCII decimal form of the index.

    Args:
        key: Raw key bytes.
        index: Hash function index (0 <= index < k).
        slot_count: Number of slots in the filter (m).

    Returns:
        A slot index in [0, slot_count).
    """
    return _digest_as_int(key + str(index).encode("utf-8")) % slot_count


def calculate_increment(key: bytes, index: int, base_increment: int) -> int:
    """
    Derive the counter increment that hash function `index` assigns to `key`.

    The digest input is the decimal form of -index followed by the key, so
    index 0 hashes "0" + key and index 1 hashes "-1" + key.

    Args:
        key: Raw key bytes.
        index: Hash function index (0 <= index < k).
        base_increment: The base increment L.

    Returns:
        An increment in [L, 2L - 1].
    """
    digest = _digest_as_int(str(-index).encode("utf-8") + key)
    return digest % base_increment + base_increment
