"""Tests for the MemoryAccessor helpers and the in-memory ProcessImage."""

import struct

import pytest

from luamem.memory import ProcessImage, ReadResult, ReadStatus


def _image(pointer_width: int = 8) -> ProcessImage:
    image = ProcessImage(pointer_width=pointer_width)
    image.map(0x1000, bytes(range(64)))
    return image


class TestProcessImage:
    def test_rejects_unsupported_pointer_width(self):
        with pytest.raises(ValueError):
            ProcessImage(pointer_width=2)

    def test_rejects_unknown_byte_order(self):
        with pytest.raises(ValueError):
            ProcessImage(byte_order="middle")

    def test_full_read_inside_region(self):
        image = _image()
        assert image.read_bytes(0x1004, 4) == bytes([4, 5, 6, 7])

    def test_read_of_unmapped_address_fails(self):
        image = _image()
        assert image.read_bytes(0x5000, 4) is None

    def test_read_past_region_end_fails_without_partial(self):
        image = _image()
        assert image.read_bytes(0x1000 + 60, 8) is None

    def test_partial_read_returns_readable_prefix(self):
        image = _image()
        assert image.read_bytes(0x1000 + 60, 8, allow_partial=True) == bytes(
            [60, 61, 62, 63]
        )

    def test_partial_read_with_nothing_readable_fails(self):
        image = _image()
        assert image.read_bytes(0x9000, 8, allow_partial=True) is None

    def test_read_spans_adjacent_regions(self):
        image = _image()
        image.map(0x1040, b"\xaa\xbb")
        assert image.read_bytes(0x103F, 3) == b"\x3f\xaa\xbb"

    def test_reads_are_recorded(self):
        image = _image()
        image.read_bytes(0x1000, 3)
        image.read_bytes(0x2000, 5)
        assert image.reads == [(0x1000, 3), (0x2000, 5)]

    def test_write_updates_memory(self):
        image = _image()
        assert image.write_bytes(0x1000, b"\xff\xfe")
        assert image.read_bytes(0x1000, 2) == b"\xff\xfe"

    def test_write_to_unmapped_memory_fails(self):
        image = _image()
        assert not image.write_bytes(0x1000 + 63, b"\x01\x02")
        assert image.read_bytes(0x1000 + 63, 1) == bytes([63])

    def test_unmap_makes_region_unreadable(self):
        image = _image()
        image.unmap(0x1000)
        assert image.read_bytes(0x1000, 1) is None


class TestCString:
    def test_reads_up_to_terminator(self):
        image = ProcessImage()
        image.map(0x2000, b"hello\x00world")
        assert image.read_cstring(0x2000, 64) == b"hello"

    def test_empty_string_is_present(self):
        image = ProcessImage()
        image.map(0x2000, b"\x00")
        assert image.read_cstring(0x2000, 64) == b""

    def test_unreadable_start_fails(self):
        image = ProcessImage()
        assert image.read_cstring(0x2000, 64) is None

    def test_unterminated_string_returns_partial(self):
        image = ProcessImage()
        image.map(0x2000, b"abc")
        assert image.read_cstring(0x2000, 64) == b"abc"

    def test_max_length_bounds_result(self):
        image = ProcessImage()
        image.map(0x2000, b"abcdef\x00")
        assert image.read_cstring(0x2000, 3) == b"abc"

    def test_read_string_decodes_utf8(self):
        image = ProcessImage()
        image.map(0x2000, "héllo".encode("utf-8") + b"\x00")
        assert image.read_string(0x2000, 64) == "héllo"


class TestTypedAccess:
    def test_signed_and_unsigned_reads(self):
        image = ProcessImage()
        image.map(0x3000, struct.pack("<i", -2) + struct.pack("<h", -3))
        assert image.read_int(0x3000) == -2
        assert image.read_uint(0x3000) == 0xFFFFFFFE
        assert image.read_short(0x3004) == -3

    def test_double_read(self):
        image = ProcessImage()
        image.map(0x3000, struct.pack("<d", 2.25))
        assert image.read_double(0x3000) == 2.25

    def test_float_round_trip(self):
        image = ProcessImage()
        image.map(0x3000, bytes(4))
        assert image.write_float(0x3000, 0.75)
        assert image.read_float(0x3000) == 0.75

    def test_failed_typed_read_is_none_not_zero(self):
        image = ProcessImage()
        assert image.read_long(0x3000) is None

    def test_big_endian_target(self):
        image = ProcessImage(byte_order="big")
        image.map(0x3000, b"\x00\x00\x01\x02")
        assert image.read_int(0x3000) == 0x0102

    def test_pointer_read_on_32_bit_target_reads_4_bytes(self):
        image = ProcessImage(pointer_width=4)
        image.map(0x3000, struct.pack("<Q", 0x1122334455667788))
        assert image.read_pointer(0x3000) == 0x55667788
        assert image.reads == [(0x3000, 4)]

    def test_pointer_read_on_64_bit_target_reads_8_bytes(self):
        image = ProcessImage(pointer_width=8)
        image.map(0x3000, struct.pack("<Q", 0x1122334455667788))
        assert image.read_pointer(0x3000) == 0x1122334455667788
        assert image.reads == [(0x3000, 8)]

    def test_pointer_write_sizes_follow_pointer_width(self):
        narrow = ProcessImage(pointer_width=4)
        narrow.map(0x3000, bytes(8))
        wide = ProcessImage(pointer_width=8)
        wide.map(0x3000, bytes(8))

        assert narrow.write_pointer(0x3000, 0xDEADBEEF)
        assert wide.write_pointer(0x3000, 0xDEADBEEF)

        assert narrow.writes == [(0x3000, 4)]
        assert wide.writes == [(0x3000, 8)]
        assert narrow.read_uint(0x3000) == 0xDEADBEEF

    def test_write_of_out_of_range_value_fails(self):
        image = ProcessImage()
        image.map(0x3000, bytes(4))
        assert not image.write_byte(0x3000, 300)
        assert image.writes == []


class TestReadResult:
    def test_ok_carries_value(self):
        result = ReadResult.ok("x")
        assert result.is_ok
        assert result.value == "x"

    def test_failure_and_absence_are_distinct(self):
        assert ReadResult.read_failed().status == ReadStatus.READ_FAILED
        assert ReadResult.not_present().status == ReadStatus.NOT_PRESENT
        assert ReadResult.read_failed() != ReadResult.not_present()
        assert not ReadResult.not_present().is_ok
