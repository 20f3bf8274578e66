"""
Binary dump format for Variable-Increment Counting Bloom Filters.

All multi-byte integers are big-endian.

    byte 0      bit 7: dump mode (1 = partial, 0 = full), bits 6-0: k
    bytes 1-4   m, unsigned 32-bit
    bytes 5-8   element count, 32-bit
    byte 9      high nibble: L, low nibble: counter width in bits (always 8)
    body        full:    m counter bytes, one per slot
                partial: records of (slot index, counter byte) until end of
                         input, with the index stored in the fewest whole bytes
                         that can address m slots

The format is shared with implementations in other languages, so byte layout
must not change.
"""

import binascii
import enum
import logging
import struct
from typing import TYPE_CHECKING, Iterator, Optional, Tuple, Type

from vicbf.algorithms.bloom.counters import STORAGE_BACKENDS
from vicbf.core.errors import ConfigurationError, FormatError

if TYPE_CHECKING:
    from vicbf.algorithms.bloom.variable import VariableIncrementCountingBloomFilter

logger = logging.getLogger(__name__)

HEADER = struct.Struct(">BIiB")
PARTIAL_FLAG = 0x80
COUNTER_BITS = 8
MAX_INDEX_BYTES = 4


class DumpMode(enum.Enum):
    """Body encoding of a dump."""

    FULL = "full"
    PARTIAL = "partial"


def bits_needed_for(slot_count: int) -> int:
    """Number of bits needed to address every slot in [0, slot_count), i.e. ceil(log2(m))."""
    return (slot_count - 1).bit_length()


def index_width(slot_count: int) -> int:
    """
    Number of bytes used for a slot index in partial dump records.

    Raises:
        FormatError: If the index would need more than 4 bytes.
    """
    # A single-slot filter needs no index bytes; every record addresses slot 0
    width = (bits_needed_for(slot_count) + 7) // 8
    if width > MAX_INDEX_BYTES:
        raise FormatError(
            f"Slot count {slot_count} needs {width}-byte indices, "
            f"at most {MAX_INDEX_BYTES} are supported"
        )
    return width


def _choose_mode(vicbf: "VariableIncrementCountingBloomFilter") -> DumpMode:
    partial_size = vicbf.occupied_slots() * (index_width(vicbf.slot_count) + 1)
    return DumpMode.PARTIAL if partial_size < vicbf.slot_count else DumpMode.FULL


def _encode_header(
    vicbf: "VariableIncrementCountingBloomFilter", mode: DumpMode
) -> bytes:
    if not (-(1 << 31) <= vicbf.element_count < (1 << 31)):
        raise FormatError(
            f"Element count {vicbf.element_count} does not fit in 32 bits"
        )
    flags = PARTIAL_FLAG if mode is DumpMode.PARTIAL else 0
    return HEADER.pack(
        flags | vicbf.hash_count,
        vicbf.slot_count,
        vicbf.element_count,
        (vicbf.base_increment << 4) | COUNTER_BITS,
    )


def serialize(
    vicbf: "VariableIncrementCountingBloomFilter",
    dump_mode: Optional[DumpMode] = None,
) -> bytes:
    """
    Encode a filter as a full or partial dump.

    Args:
        vicbf: The filter to encode.
        dump_mode: DumpMode.FULL, DumpMode.PARTIAL, or None to use whichever
                   encoding is shorter (full on a tie).

    Returns:
        The encoded filter.

    Raises:
        FormatError: If the element count does not fit the header, or the slot
                     count is too large for a partial dump.
    """
    if dump_mode is None:
        dump_mode = _choose_mode(vicbf)
    dump_mode = DumpMode(dump_mode)

    out = bytearray(_encode_header(vicbf, dump_mode))
    if dump_mode is DumpMode.FULL:
        body = bytearray(vicbf.slot_count)
        for slot, value in vicbf.counters().items():
            body[slot] = value
        out += body
    else:
        width = index_width(vicbf.slot_count)
        for slot, value in vicbf.counters().items():
            out += slot.to_bytes(width, "big")
            out.append(value)
    return bytes(out)


def _read_full_body(body: bytes, slot_count: int) -> Iterator[Tuple[int, int]]:
    if len(body) != slot_count:
        raise FormatError(
            f"Full dump body has {len(body)} bytes, expected {slot_count}"
        )
    for slot, value in enumerate(body):
        if value:
            yield slot, value


def _read_partial_body(body: bytes, slot_count: int) -> Iterator[Tuple[int, int]]:
    width = index_width(slot_count)
    record_size = width + 1
    if len(body) % record_size:
        raise FormatError(
            f"Partial dump ends mid-record ({len(body) % record_size} of "
            f"{record_size} bytes)"
        )
    for offset in range(0, len(body), record_size):
        slot = int.from_bytes(body[offset : offset + width], "big")
        value = body[offset + width]
        if slot >= slot_count:
            raise FormatError(f"Slot index {slot} out of range for {slot_count} slots")
        yield slot, value


def deserialize(
    data: bytes,
    storage: str = "sparse",
    filter_cls: Optional[Type["VariableIncrementCountingBloomFilter"]] = None,
) -> "VariableIncrementCountingBloomFilter":
    """
    Decode a full or partial dump.

    The element count is taken from the header as-is; it is not checked
    against the counters.

    Args:
        data: The encoded filter.
        storage: Counter storage backend for the decoded filter.
        filter_cls: Filter class to instantiate, defaults to
                    VariableIncrementCountingBloomFilter.

    Returns:
        The decoded filter.

    Raises:
        ConfigurationError: If the storage backend is unknown.
        FormatError: If the data is truncated, uses an unsupported counter
                     width, or describes an impossible filter.
    """
    if storage not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"Unknown storage {storage!r}, expected one of {sorted(STORAGE_BACKENDS)}"
        )

    if filter_cls is None:
        from vicbf.algorithms.bloom.variable import VariableIncrementCountingBloomFilter

        filter_cls = VariableIncrementCountingBloomFilter

    data = bytes(data)
    if len(data) < HEADER.size:
        raise FormatError(
            f"Dump has {len(data)} bytes, the header alone needs {HEADER.size}"
        )

    flags_and_k, slot_count, element_count, widths = HEADER.unpack_from(data)
    partial = bool(flags_and_k & PARTIAL_FLAG)
    hash_count = flags_and_k & 0x7F
    base_increment = widths >> 4
    counter_bits = widths & 0x0F

    if counter_bits != COUNTER_BITS:
        raise FormatError(
            f"Unsupported counter width {counter_bits}, expected {COUNTER_BITS}"
        )

    body = data[HEADER.size :]
    if partial:
        records = list(_read_partial_body(body, slot_count))
    else:
        records = list(_read_full_body(body, slot_count))

    logger.debug(
        "Decoding %s dump: m=%d k=%d L=%d elements=%d",
        "partial" if partial else "full",
        slot_count,
        hash_count,
        base_increment,
        element_count,
    )

    try:
        return filter_cls._from_state(
            slot_count=slot_count,
            hash_count=hash_count,
            base_increment=base_increment,
            element_count=element_count,
            counters=records,
            storage=storage,
        )
    except ConfigurationError as e:
        raise FormatError(f"Header describes an invalid filter: {e}") from e


def to_hex(
    vicbf: "VariableIncrementCountingBloomFilter",
    dump_mode: Optional[DumpMode] = None,
) -> str:
    """Encode a filter and render the dump as lowercase hex digits."""
    return serialize(vicbf, dump_mode).hex()


def from_hex(
    text: str,
    storage: str = "sparse",
    filter_cls: Optional[Type["VariableIncrementCountingBloomFilter"]] = None,
) -> "VariableIncrementCountingBloomFilter":
    """
    Decode a hex-encoded dump.

    Raises:
        FormatError: If the text is not valid hex or not a valid dump.
    """
    try:
        data = binascii.unhexlify(text.strip())
    except (binascii.Error, ValueError) as e:
        raise FormatError(f"Invalid hex dump: {e}") from e
    return deserialize(data, storage=storage, filter_cls=filter_cls)
