"""
Protobuf wire-format walking for the OSV ``djmd`` telemetry track.

The ``djmd`` payloads are protobuf messages whose schema is not published.
Rather than compile a schema we walk the wire format directly: every field is
a varint *key* (``field_number << 3 | wire_type``) followed by a value whose
framing depends on the wire type.

Malformed input never raises.  If a key or length cannot be decoded, if a
field runs past the end of the buffer, or if the wire type is not one of the
four we know how to frame, the walk stops and the rest of the buffer is
ignored.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Iterator, NamedTuple

_MASK64 = (1 << 64) - 1
_MAX_SHIFT = 63


class WireType(IntEnum):
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    FIXED32 = 5


class TLVField(NamedTuple):
    """One decoded field.

    ``value`` is an ``int`` for :attr:`WireType.VARINT` and the raw payload
    ``bytes`` for every other wire type.
    """

    field_number: int
    wire_type: WireType
    value: int | bytes
    next_offset: int


def read_varint(data: bytes, pos: int) -> tuple[int, int]:
    """Decode an unsigned base-128 varint starting at *pos*.

    Returns ``(value, length)`` where *length* is the number of bytes
    consumed, or ``(0, 0)`` if the buffer ends before the terminating byte or
    the value would need more than 64 bits.
    """
    value = 0
    shift = 0
    start = pos
    length = len(data)
    while pos < length:
        b = data[pos]
        value |= (b & 0x7F) << shift
        pos += 1
        if b < 0x80:
            return value & _MASK64, pos - start
        shift += 7
        if shift > _MAX_SHIFT:
            break
    return 0, 0


def split_key(key: int) -> tuple[int, int]:
    """Split a field key into ``(field_number, wire_type)``."""
    return key >> 3, key & 0x7


def iter_fields(data: bytes) -> Iterator[TLVField]:
    """Yield every field of the message in *data*, in wire order."""
    pos = 0
    end = len(data)
    while pos < end:
        key, n = read_varint(data, pos)
        if n == 0:
            return
        pos += n
        field_number, raw_type = split_key(key)

        if raw_type == WireType.VARINT:
            value, m = read_varint(data, pos)
            if m == 0:
                return
            pos += m
            yield TLVField(field_number, WireType.VARINT, value, pos)

        elif raw_type == WireType.FIXED64:
            if pos + 8 > end:
                return
            pos += 8
            yield TLVField(field_number, WireType.FIXED64, data[pos - 8 : pos], pos)

        elif raw_type == WireType.LENGTH_DELIMITED:
            size, m = read_varint(data, pos)
            if m == 0 or pos + m + size > end:
                return
            pos += m + size
            yield TLVField(
                field_number,
                WireType.LENGTH_DELIMITED,
                data[pos - size : pos],
                pos,
            )

        elif raw_type == WireType.FIXED32:
            if pos + 4 > end:
                return
            pos += 4
            yield TLVField(field_number, WireType.FIXED32, data[pos - 4 : pos], pos)

        else:
            # Groups (3, 4) and reserved types (6, 7) have no usable framing
            return


def iter_length_delimited(data: bytes, field_number: int) -> Iterator[bytes]:
    """Yield the payloads of every length-delimited *field_number* in *data*."""
    for f in iter_fields(data):
        if f.field_number == field_number and f.wire_type == WireType.LENGTH_DELIMITED:
            assert isinstance(f.value, bytes)
            yield f.value
