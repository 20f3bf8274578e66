"""
Unit tests for the binary dump format.
"""

import struct
import unittest

from vicbf.algorithms.bloom import codec
from vicbf.algorithms.bloom.codec import DumpMode
from vicbf.algorithms.bloom.variable import VariableIncrementCountingBloomFilter
from vicbf.core.errors import ConfigurationError, FormatError

# Full dump of a filter with 1000 slots holding the keys "0" to "499"
LEGACY_FULL_DUMP = (
    "03000003e8000001f44806100a0009070612000c050000000b0400040507060f0d00160c"
    "1200000c0504040905050f00050400100c0005110700070c0d120e0011000b0d0517000b"
    "090600040009060c0b071d0e0004141000061006140700060506140c14090b0d1109050c"
    "09040c060c070004120005040b060e0005050a050f0c070507211a0606090006150a0c0d"
    "0c000000040b0005090a060a0004050006130505070000170b0d0b08090006061115000f"
    "070d0900051a070008060b10050008001211000711060c0800040e0f040507000d060b0c"
    "0012060005000418000008141206071a0000040f00040600000704000005071014050b18"
    "0a0c0411000b000b051205050b0b0d0b100004000606141a1200000006120e07000c000b"
    "00130e040a040500000a000700000d0c0008050908000807000c0e10070507001c0f0c0d"
    "0d070e17111a18060c0000050b09050e11180c0007050405060d00040b00000b0906000e"
    "190c000b000b00140e0d06000c171100040e1100050000000c090a06000c0b0b0c0e0b00"
    "210c000c0b0607060c0e09250b0406000d0413000c0808000c002210040b05070400060b"
    "00140a050c050c0d05170a04200016000a1006080705070012120a14041100100007070e"
    "000905120b07000005000404040806040d0000190504060b060e04000900050007051305"
    "050607060e101907080000050008130b001205050700001911040600060b0f1c10001607"
    "0b0b041b0505040b0b040d16070000140700120500040704000c15070e0a26070c0a0d06"
    "0a000914001c00051007000d0015040e160513041a06000405040005060412000c000d06"
    "1507050a07050b0009120d1d070f07000a0709050b0000071e0018040f160a0700050b12"
    "0d13000b181b0019000b0009130a0e0515090705150a10000005050005000d1304001305"
    "000006040608060c000c0e0c001407140e0e070c05060906060011000d0f00080b000b06"
    "070507040d12000a000006060b0819140006071106000900060011000d070000060b0404"
    "0b0f000a000a000900001904001105040a0d150a000b1106060b000000050c1700000605"
    "0a041822050007000713041117110e0c04000c0b15060410050005000c0e0c0000070004"
    "050700000409060407070604040a00040f00101700060505050b0515050c0e050b001104"
    "0504000d00080c0b13000b1b04060b0d040a07070b000705000610050b06050004041004"
    "050f00000f000404060004000a0000050c050900050f000007050b04070e00000d070b04"
    "070a07130005050d000b0d05070a050c07000c0009080d050b0e000f13000c001207000a"
    "04110c13000e141606000008051507060c0400160b040500040000090b0c05110b040e06"
    "0700"
)

# Partial dump of a filter with 10000 slots holding the keys "123" and "126"
LEGACY_PARTIAL_DUMP = "830000271000000002482663070f850419ab0701b20525b505069a07"


class TestLegacyDumps(unittest.TestCase):
    """Dumps produced by other implementations must decode identically."""

    def test_deserialize_full(self):
        vicbf = codec.from_hex(LEGACY_FULL_DUMP)
        self.assertEqual(vicbf.slot_count, 1000)
        self.assertEqual(vicbf.hash_count, 3)
        self.assertEqual(vicbf.base_increment, 4)
        self.assertEqual(vicbf.element_count, 500)

        for i in range(500):
            self.assertTrue(vicbf.query(str(i)), f"Key {i} should be present")
        self.assertFalse(vicbf.query("501"))

        vicbf.insert("501")
        self.assertTrue(vicbf.query("501"))
        self.assertEqual(vicbf.element_count, 501)

    def test_deserialize_full_dense_storage(self):
        vicbf = VariableIncrementCountingBloomFilter.from_hex(
            LEGACY_FULL_DUMP, storage="dense"
        )
        self.assertEqual(vicbf.storage, "dense")
        for i in range(500):
            self.assertTrue(vicbf.query(str(i)))
        self.assertFalse(vicbf.query("501"))

    def test_reserialize_full_is_byte_identical(self):
        vicbf = codec.from_hex(LEGACY_FULL_DUMP)
        self.assertEqual(codec.to_hex(vicbf, DumpMode.FULL), LEGACY_FULL_DUMP)

    def test_deserialize_partial(self):
        vicbf = codec.from_hex(LEGACY_PARTIAL_DUMP)
        self.assertEqual(vicbf.slot_count, 10000)
        self.assertEqual(vicbf.hash_count, 3)
        self.assertEqual(vicbf.element_count, 2)
        self.assertEqual(
            vicbf.counters(),
            {
                0x2663: 7,
                0x0F85: 4,
                0x19AB: 7,
                0x01B2: 5,
                0x25B5: 5,
                0x069A: 7,
            },
        )

        self.assertTrue(vicbf.query("123"))
        self.assertTrue(vicbf.query("126"))
        self.assertFalse(vicbf.query("1337"))

        vicbf.insert("1337")
        self.assertTrue(vicbf.query("1337"))
        self.assertEqual(vicbf.element_count, 3)

    def test_rebuilt_filter_matches_partial_dump(self):
        """Inserting the same keys locally reproduces the decoded counters."""
        vicbf = VariableIncrementCountingBloomFilter(10000, 3)
        vicbf.insert("123")
        vicbf.insert("126")
        self.assertEqual(vicbf.counters(), codec.from_hex(LEGACY_PARTIAL_DUMP).counters())

    def test_rebuilt_filter_matches_full_dump(self):
        vicbf = VariableIncrementCountingBloomFilter(1000, 3)
        for i in range(500):
            vicbf.insert(str(i))
        self.assertEqual(vicbf.to_hex(DumpMode.FULL), LEGACY_FULL_DUMP)


class TestHeader(unittest.TestCase):
    def test_partial_header_layout(self):
        vicbf = VariableIncrementCountingBloomFilter(10000, 3)
        data = codec.serialize(vicbf, DumpMode.PARTIAL)
        self.assertEqual(data, bytes.fromhex("83" "00002710" "00000000" "48"))

    def test_full_header_layout(self):
        vicbf = VariableIncrementCountingBloomFilter(16, 5, base_increment=9)
        vicbf.insert("x")
        vicbf.insert("y")
        data = codec.serialize(vicbf, DumpMode.FULL)
        self.assertEqual(len(data), 10 + 16)
        self.assertEqual(data[0], 5)
        self.assertEqual(struct.unpack(">I", data[1:5])[0], 16)
        self.assertEqual(struct.unpack(">I", data[5:9])[0], 2)
        self.assertEqual(data[9], 0x98)

    def test_element_count_out_of_range(self):
        vicbf = VariableIncrementCountingBloomFilter(10, 1)
        vicbf._element_count = 2**31
        with self.assertRaises(FormatError):
            codec.serialize(vicbf)

    def test_negative_element_count(self):
        vicbf = VariableIncrementCountingBloomFilter(10, 1)
        vicbf._element_count = -1
        data = codec.serialize(vicbf, DumpMode.PARTIAL)
        self.assertEqual(data[5:9], b"\xff\xff\xff\xff")
        self.assertEqual(codec.deserialize(data).element_count, -1)


class TestIndexWidth(unittest.TestCase):
    def test_bits_needed_for(self):
        self.assertEqual(codec.bits_needed_for(1), 0)
        self.assertEqual(codec.bits_needed_for(2), 1)
        self.assertEqual(codec.bits_needed_for(256), 8)
        self.assertEqual(codec.bits_needed_for(257), 9)
        self.assertEqual(codec.bits_needed_for(10000), 14)

    def test_index_width(self):
        self.assertEqual(codec.index_width(1), 0)
        self.assertEqual(codec.index_width(2), 1)
        self.assertEqual(codec.index_width(256), 1)
        self.assertEqual(codec.index_width(257), 2)
        self.assertEqual(codec.index_width(10000), 2)
        self.assertEqual(codec.index_width(65537), 3)
        self.assertEqual(codec.index_width(2**32 - 1), 4)
        with self.assertRaises(FormatError):
            codec.index_width(2**32 + 1)

    def test_partial_record_width(self):
        vicbf = VariableIncrementCountingBloomFilter(70000, 1)
        vicbf.insert("only")
        data = codec.serialize(vicbf, DumpMode.PARTIAL)
        self.assertEqual(len(data), 10 + 3 + 1)
        slot = vicbf.calculate_slot("only", 0)
        self.assertEqual(int.from_bytes(data[10:13], "big"), slot)
        self.assertEqual(data[13], vicbf.calculate_increment("only", 0))

    def test_single_slot_records_have_no_index(self):
        """With one slot a partial record is just the counter byte."""
        vicbf = VariableIncrementCountingBloomFilter(1, 1)
        vicbf.insert("only")
        data = codec.serialize(vicbf, DumpMode.PARTIAL)
        self.assertEqual(len(data), 10 + 1)
        self.assertEqual(data[10], vicbf.get_counter(0))

        restored = codec.deserialize(data)
        self.assertEqual(restored.counters(), vicbf.counters())
        self.assertTrue(restored.query("only"))

    def test_single_slot_legacy_record(self):
        data = bytes.fromhex("81" "00000001" "00000001" "48" "06")
        self.assertEqual(codec.deserialize(data).counters(), {0: 6})


class TestRoundTrip(unittest.TestCase):
    def _build(self, slot_count=5000, hash_count=4, base_increment=4, storage="sparse"):
        vicbf = VariableIncrementCountingBloomFilter(
            slot_count, hash_count, base_increment, storage
        )
        for i in range(300):
            vicbf.insert(f"key-{i}")
        for i in range(0, 300, 7):
            vicbf.remove(f"key-{i}")
        return vicbf

    def assertSameFilter(self, a, b):
        self.assertEqual(a.slot_count, b.slot_count)
        self.assertEqual(a.hash_count, b.hash_count)
        self.assertEqual(a.base_increment, b.base_increment)
        self.assertEqual(a.element_count, b.element_count)
        self.assertEqual(a.counters(), b.counters())

    def test_full_round_trip(self):
        vicbf = self._build()
        data = codec.serialize(vicbf, DumpMode.FULL)
        self.assertEqual(data[0] & 0x80, 0)
        self.assertSameFilter(vicbf, codec.deserialize(data))

    def test_partial_round_trip(self):
        vicbf = self._build()
        data = codec.serialize(vicbf, DumpMode.PARTIAL)
        self.assertEqual(data[0] & 0x80, 0x80)
        self.assertSameFilter(vicbf, codec.deserialize(data))

    def test_round_trip_keeps_base_increment(self):
        vicbf = self._build(base_increment=11)
        for mode in (DumpMode.FULL, DumpMode.PARTIAL):
            restored = codec.deserialize(codec.serialize(vicbf, mode))
            self.assertSameFilter(vicbf, restored)
            self.assertTrue(restored.query("key-1"))

    def test_round_trip_saturated(self):
        vicbf = VariableIncrementCountingBloomFilter(2, 1, base_increment=15)
        for i in range(40):
            vicbf.insert(str(i))
        for mode in ("full", "partial"):
            self.assertSameFilter(vicbf, codec.deserialize(codec.serialize(vicbf, mode)))

    def test_round_trip_dense_storage(self):
        vicbf = self._build(storage="dense")
        restored = codec.deserialize(codec.serialize(vicbf), storage="dense")
        self.assertEqual(restored.storage, "dense")
        self.assertSameFilter(vicbf, restored)

    def test_auto_mode(self):
        sparse_filter = VariableIncrementCountingBloomFilter(10000, 3)
        sparse_filter.insert("one")
        self.assertEqual(codec.serialize(sparse_filter)[0] & 0x80, 0x80)

        crowded = VariableIncrementCountingBloomFilter(64, 3)
        for i in range(100):
            crowded.insert(str(i))
        data = codec.serialize(crowded)
        self.assertEqual(data[0] & 0x80, 0)
        self.assertEqual(len(data), 10 + 64)

    def test_empty_filter(self):
        vicbf = VariableIncrementCountingBloomFilter(300, 2)
        for mode in (DumpMode.FULL, DumpMode.PARTIAL):
            restored = codec.deserialize(codec.serialize(vicbf, mode))
            self.assertSameFilter(vicbf, restored)
            self.assertTrue(restored.is_empty())

    def test_filter_methods(self):
        vicbf = self._build()
        self.assertSameFilter(
            vicbf, VariableIncrementCountingBloomFilter.from_bytes(vicbf.to_bytes())
        )
        self.assertSameFilter(
            vicbf, VariableIncrementCountingBloomFilter.from_hex(vicbf.to_hex())
        )


class TestMalformedInput(unittest.TestCase):
    def test_truncated_header(self):
        for length in range(10):
            with self.assertRaises(FormatError):
                codec.deserialize(bytes.fromhex(LEGACY_PARTIAL_DUMP)[:length])

    def test_unsupported_counter_width(self):
        data = bytearray(bytes.fromhex(LEGACY_PARTIAL_DUMP))
        data[9] = 0x44
        with self.assertRaises(FormatError):
            codec.deserialize(bytes(data))

    def test_partial_record_cut_short(self):
        data = bytes.fromhex(LEGACY_PARTIAL_DUMP)
        with self.assertRaises(FormatError):
            codec.deserialize(data[:-1])
        with self.assertRaises(FormatError):
            codec.deserialize(data[:-2])
        # Dropping a whole record is a clean end of stream
        self.assertEqual(len(codec.deserialize(data[:-3]).counters()), 5)

    def test_partial_without_records(self):
        vicbf = codec.deserialize(bytes.fromhex("83" "00002710" "00000007" "48"))
        self.assertTrue(vicbf.is_empty())
        self.assertEqual(vicbf.element_count, 7)

    def test_partial_index_out_of_range(self):
        data = bytes.fromhex("81" "00000010" "00000001" "48" "1005")
        with self.assertRaises(FormatError):
            codec.deserialize(data)

    def test_partial_zero_records_skipped(self):
        data = bytes.fromhex("81" "00000010" "00000001" "48" "0300" "0406")
        self.assertEqual(codec.deserialize(data).counters(), {4: 6})

    def test_full_body_length_mismatch(self):
        data = bytes.fromhex(LEGACY_FULL_DUMP)
        with self.assertRaises(FormatError):
            codec.deserialize(data[:-1])
        with self.assertRaises(FormatError):
            codec.deserialize(data + b"\x00")

    def test_impossible_parameters(self):
        # k = 0
        with self.assertRaises(FormatError):
            codec.deserialize(bytes.fromhex("80" "00000010" "00000000" "48"))
        # m = 0
        with self.assertRaises(FormatError):
            codec.deserialize(bytes.fromhex("83" "00000000" "00000000" "48"))
        # L = 0
        with self.assertRaises(FormatError):
            codec.deserialize(bytes.fromhex("83" "00000010" "00000000" "08"))

    def test_unknown_storage_is_not_a_format_error(self):
        """A bad storage argument is the caller's mistake, not a corrupt dump."""
        data = bytes.fromhex(LEGACY_PARTIAL_DUMP)
        with self.assertRaises(ConfigurationError) as ctx:
            codec.deserialize(data, storage="tree")
        self.assertNotIsInstance(ctx.exception, FormatError)

        with self.assertRaises(ConfigurationError) as ctx:
            codec.from_hex(LEGACY_PARTIAL_DUMP, storage="tree")
        self.assertNotIsInstance(ctx.exception, FormatError)

    def test_invalid_hex(self):
        with self.assertRaises(FormatError):
            codec.from_hex("zz")
        with self.assertRaises(FormatError):
            codec.from_hex("abc")

    def test_format_error_is_value_error(self):
        with self.assertRaises(ValueError):
            codec.deserialize(b"")


if __name__ == "__main__":
    unittest.main()
