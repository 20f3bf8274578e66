"""
Counter storage backends for the Variable-Increment Counting Bloom Filter.

A counter store maps slot indices to 8-bit counter values. Absent slots read
as zero and a store never reports a zero-valued slot as occupied. No counter
arithmetic happens here; saturation and validation are the filter's job.

Two backends are provided:
- SparseCounterStore: dict keyed by slot, memory proportional to occupied slots.
- DenseCounterStore: one byte per slot, cheaper when m is small or the filter
  is expected to be well filled.
"""

import abc
import array
import sys
from typing import Dict, Iterator, Tuple


class CounterStore(abc.ABC):
    """Abstract sparse array of 8-bit counters indexed by slot."""

    def __init__(self, slot_count: int):
        self._slot_count = slot_count

    @property
    def slot_count(self) -> int:
        return self._slot_count

    @abc.abstractmethod
    def get(self, slot: int) -> int:
        """Return the counter at `slot`, or 0 if the slot is unoccupied."""
        pass

    @abc.abstractmethod
    def set(self, slot: int, value: int) -> None:
        """
        Store `value` at `slot`.

        Setting a slot to 0 is equivalent to removing it.
        """
        pass

    @abc.abstractmethod
    def remove(self, slot: int) -> None:
        """Reset `slot` to the unoccupied state. Unoccupied slots are ignored."""
        pass

    @abc.abstractmethod
    def items(self) -> Iterator[Tuple[int, int]]:
        """Yield (slot, value) pairs for occupied slots in ascending slot order."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Reset every slot."""
        pass

    @abc.abstractmethod
    def __len__(self) -> int:
        """Number of occupied (non-zero) slots."""
        pass

    def __contains__(self, slot: object) -> bool:
        return isinstance(slot, int) and self.get(slot) != 0

    def to_dict(self) -> Dict[int, int]:
        """Snapshot of the occupied slots."""
        return dict(self.items())

    def estimate_size(self) -> int:
        return sys.getsizeof(self)


class SparseCounterStore(CounterStore):
    """Counter store backed by a dict holding only non-zero slots."""

    def __init__(self, slot_count: int):
        super().__init__(slot_count)
        self._counters: Dict[int, int] = {}

    def get(self, slot: int) -> int:
        return self._counters.get(slot, 0)

    def set(self, slot: int, value: int) -> None:
        if value == 0:
            self._counters.pop(slot, None)
        else:
            self._counters[slot] = value

    def remove(self, slot: int) -> None:
        self._counters.pop(slot, None)

    def items(self) -> Iterator[Tuple[int, int]]:
        for slot in sorted(self._counters):
            yield slot, self._counters[slot]

    def clear(self) -> None:
        self._counters.clear()

    def __len__(self) -> int:
        return len(self._counters)

    def estimate_size(self) -> int:
        size = super().estimate_size() + sys.getsizeof(self._counters)
        # Keys and values are small ints, mostly cached by the interpreter
        size += len(self._counters) * 2 * sys.getsizeof(0)
        return size


class DenseCounterStore(CounterStore):
    """Counter store backed by a flat unsigned byte array with one entry per slot."""

    def __init__(self, slot_count: int):
        super().__init__(slot_count)
        # 'B' typecode gives unsigned char (8 bits, 0 to 255)
        self._bytes = array.array("B", bytes(slot_count))
        self._occupied = 0

    def get(self, slot: int) -> int:
        return self._bytes[slot]

    def set(self, slot: int, value: int) -> None:
        current = self._bytes[slot]
        if current == 0 and value != 0:
            self._occupied += 1
        elif current != 0 and value == 0:
            self._occupied -= 1
        self._bytes[slot] = value

    def remove(self, slot: int) -> None:
        self.set(slot, 0)

    def items(self) -> Iterator[Tuple[int, int]]:
        for slot, value in enumerate(self._bytes):
            if value:
                yield slot, value

    def clear(self) -> None:
        self._bytes = array.array("B", bytes(self._slot_count))
        self._occupied = 0

    def __len__(self) -> int:
        return self._occupied

    def estimate_size(self) -> int:
        return super().estimate_size() + sys.getsizeof(self._bytes)


STORAGE_BACKENDS = {
    "sparse": SparseCounterStore,
    "dense": DenseCounterStore,
}


def create_counter_store(storage: str, slot_count: int) -> CounterStore:
    """
    Build the counter store named by `storage`.

    Args:
        storage: One of the keys of STORAGE_BACKENDS.
        slot_count: Number of slots (m).

    Returns:
        An empty counter store.

    Raises:
        KeyError: If the storage name is unknown.
    """
    return STORAGE_BACKENDS[storage](slot_count)
