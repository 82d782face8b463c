"""Tests for protobuf wire-format walking."""

import pytest
from djmd_helpers import key, len_field, varint

from osv_extract.processing.protowire import (
    WireType,
    iter_fields,
    iter_length_delimited,
    read_varint,
    split_key,
)


class TestReadVarint:
    """Tests for read_varint."""

    def test_single_byte(self):
        assert read_varint(b"\x05", 0) == (5, 1)

    def test_multi_byte_is_little_endian_groups(self):
        # 300 = 0b10_0101100 -> 0xAC 0x02
        assert read_varint(b"\xac\x02", 0) == (300, 2)

    def test_starts_at_offset(self):
        assert read_varint(b"\xff\xac\x02\x00", 1) == (300, 2)

    def test_offset_past_end(self):
        assert read_varint(b"\x01", 1) == (0, 0)

    def test_truncated_continuation(self):
        assert read_varint(b"\x80\x80", 0) == (0, 0)

    def test_max_uint64(self):
        data = b"\xff" * 9 + b"\x01"
        assert read_varint(data, 0) == (2**64 - 1, 10)

    def test_overlong_varint_rejected(self):
        data = b"\x80" * 10 + b"\x01"
        assert read_varint(data, 0) == (0, 0)

    @pytest.mark.parametrize("value", [0, 1, 127, 128, 16384, 2**32, 2**63])
    def test_matches_encoder(self, value):
        encoded = varint(value)
        assert read_varint(encoded, 0) == (value, len(encoded))


def test_split_key():
    assert split_key(3 << 3 | 2) == (3, 2)
    assert split_key(0x1A) == (3, WireType.LENGTH_DELIMITED)


class TestIterFields:
    """Tests for iter_fields."""

    def test_all_wire_types(self):
        data = (
            key(1, 0)
            + varint(150)
            + key(2, 1)
            + bytes(range(8))
            + len_field(3, b"abc")
            + key(4, 5)
            + b"\x01\x02\x03\x04"
        )
        fields = list(iter_fields(data))
        assert [(f.field_number, f.wire_type) for f in fields] == [
            (1, WireType.VARINT),
            (2, WireType.FIXED64),
            (3, WireType.LENGTH_DELIMITED),
            (4, WireType.FIXED32),
        ]
        assert fields[0].value == 150
        assert fields[1].value == bytes(range(8))
        assert fields[2].value == b"abc"
        assert fields[3].value == b"\x01\x02\x03\x04"
        assert fields[-1].next_offset == len(data)

    def test_next_offset_tracks_position(self):
        data = len_field(1, b"xy") + len_field(2, b"")
        offsets = [f.next_offset for f in iter_fields(data)]
        assert offsets == [4, 6]

    def test_empty_buffer(self):
        assert list(iter_fields(b"")) == []

    def test_invalid_wire_type_at_start_yields_nothing(self):
        data = key(3, 6) + len_field(3, b"payload")
        assert list(iter_fields(data)) == []

    def test_invalid_wire_type_abandons_rest_of_buffer(self):
        # The field after the group start is well-formed but never reached
        data = len_field(1, b"a") + key(2, 3) + len_field(3, b"b")
        fields = list(iter_fields(data))
        assert [f.field_number for f in fields] == [1]

    def test_length_past_end_stops(self):
        data = len_field(1, b"ok") + key(2, 2) + varint(50) + b"short"
        assert [f.field_number for f in iter_fields(data)] == [1]

    def test_truncated_fixed32_stops(self):
        data = key(1, 5) + b"\x00\x00"
        assert list(iter_fields(data)) == []

    def test_truncated_fixed64_stops(self):
        data = key(1, 1) + bytes(7)
        assert list(iter_fields(data)) == []

    def test_truncated_varint_value_stops(self):
        data = key(1, 0) + b"\x80"
        assert list(iter_fields(data)) == []

    def test_truncated_key_stops(self):
        data = len_field(1, b"a") + b"\x80"
        assert [f.field_number for f in iter_fields(data)] == [1]


def test_iter_length_delimited_filters_by_field_and_type():
    data = (
        len_field(3, b"first")
        + key(3, 0)
        + varint(9)
        + len_field(2, b"other")
        + len_field(3, b"second")
    )
    assert list(iter_length_delimited(data, 3)) == [b"first", b"second"]
