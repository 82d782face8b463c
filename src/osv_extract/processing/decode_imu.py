"""
IMU telemetry decoding for the OSV ``djmd`` data track.

Every ``djmd`` packet is a protobuf message.  The IMU data sits two levels
down::

    packet
    └── field 3 (bytes)            IMU chunk, may repeat
        ├── field 2 (bytes)        header, >= 20 bytes; [0:4] = sample rate (u32 LE)
        └── field 3 (bytes)        record array, 24 bytes per record

Each 24-byte record is laid out as

| Bytes | Type | Contents |
|-------|------|----------|
| 0–3 | u32 LE | reserved (decoded, not interpreted) |
| 4–23 | 10 × i16 LE | channels ``Ch0`` … ``Ch9`` |

All other fields are skipped.  A trailing partial record is dropped.

#### Timing

Packet PTS values are not used.  Records from all packets of all ``djmd``
tracks (ascending stream index, then packet order) are concatenated and
renumbered from zero, and every timestamp is ``sample_index / sample_rate``
using the *last* header seen in the whole run (800 Hz if none), so a late
header re-times samples decoded before it.

#### Output CSV

| Column | Description |
|--------|-------------|
| ``Timestamp(s)`` | seconds since the first sample, 6 decimals |
| ``SampleIndex`` | 0-based position in the concatenated stream |
| ``Ch0`` … ``Ch9`` | raw signed 16-bit channel values |
"""

from __future__ import annotations

import logging
import struct
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Sequence

import numpy as np
import pandas as pd
import pandera.pandas as pa

from osv_extract.config import config
from osv_extract.processing.probe import PacketSource, decode_hex_dump, fetch_packets
from osv_extract.processing.protowire import (
    WireType,
    iter_fields,
    iter_length_delimited,
)

logger = logging.getLogger(__name__)

# Field numbers of the djmd message tree
_PACKET_IMU_FIELD = 3
_IMU_HEADER_FIELD = 2
_IMU_RECORDS_FIELD = 3

_HEADER_MIN_SIZE = 20
_CHANNEL_COUNT = 10

_RECORD_DTYPE = np.dtype([("reserved", "<u4"), ("channels", "<i2", (_CHANNEL_COUNT,))])
RECORD_SIZE = _RECORD_DTYPE.itemsize  # 24

CHANNEL_COLUMNS = [f"Ch{i}" for i in range(_CHANNEL_COUNT)]
CSV_COLUMNS = ["Timestamp(s)", "SampleIndex", *CHANNEL_COLUMNS]


class IMUDataNotFoundError(RuntimeError):
    """No IMU record could be decoded from any ``djmd`` packet."""


# ---------------------------------------------------------------------------
# Decoded data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IMUHeader:
    sample_rate: float = config.DEFAULT_SAMPLE_RATE  # Hz

    @classmethod
    def from_bytes(cls, data: bytes) -> IMUHeader | None:
        """Parse a header payload; ``None`` if it is too short or reports 0 Hz."""
        if len(data) < _HEADER_MIN_SIZE:
            return None
        (rate,) = struct.unpack_from("<I", data, 0)
        if rate == 0:
            return None
        return cls(sample_rate=float(rate))


@dataclass(frozen=True)
class IMURecordArray:
    """Records decoded from one record-array field."""

    reserved: np.ndarray  # shape (N,) uint32, leading 4 bytes of each record
    channels: np.ndarray  # shape (N, 10) int16
    sample_rate: float  # Hz, rate known when this array was decoded

    def __len__(self) -> int:
        return self.channels.shape[0]

    @property
    def sample_index(self) -> np.ndarray:
        """Local sample indices (0-based within this array)."""
        return np.arange(len(self), dtype=np.int64)

    @property
    def timestamps(self) -> np.ndarray:
        """Provisional timestamps; superseded by :meth:`IMUAggregator.finalize`."""
        return self.sample_index / self.sample_rate


@dataclass(frozen=True)
class IMUPacket:
    """Everything the decoder recovered from one ``djmd`` packet."""

    header: IMUHeader | None = None  # last valid header in the packet
    records: list[IMURecordArray] = field(default_factory=list)

    @property
    def n_records(self) -> int:
        return sum(len(r) for r in self.records)


class IMURecord(NamedTuple):
    timestamp: float
    sample_index: int
    channels: tuple[int, ...]


@dataclass(frozen=True)
class IMURecordSet:
    """The finalized, continuously indexed IMU series of one extraction run."""

    sample_rate: float
    sample_index: np.ndarray  # shape (N,) int64
    timestamps: np.ndarray  # shape (N,) float64
    channels: np.ndarray  # shape (N, 10) int16

    def __len__(self) -> int:
        return self.sample_index.shape[0]

    def records(self) -> Iterator[IMURecord]:
        for ts, idx, ch in zip(self.timestamps, self.sample_index, self.channels):
            yield IMURecord(float(ts), int(idx), tuple(int(v) for v in ch))

    def to_dataframe(self) -> pd.DataFrame:
        df = pd.DataFrame(self.channels, columns=CHANNEL_COLUMNS)
        df.insert(0, "SampleIndex", self.sample_index)
        df.insert(0, "Timestamp(s)", self.timestamps)
        return df


# ---------------------------------------------------------------------------
# Record arrays and packets
# ---------------------------------------------------------------------------


def decode_record_array(data: bytes, sample_rate: float) -> IMURecordArray:
    """Split *data* into 24-byte records; trailing bytes are dropped."""
    n = len(data) // RECORD_SIZE
    if n == 0:
        return IMURecordArray(
            reserved=np.empty(0, dtype=np.uint32),
            channels=np.empty((0, _CHANNEL_COUNT), dtype=np.int16),
            sample_rate=sample_rate,
        )
    rec = np.frombuffer(data, dtype=_RECORD_DTYPE, count=n)
    return IMURecordArray(
        reserved=rec["reserved"].astype(np.uint32),
        channels=rec["channels"].astype(np.int16),
        sample_rate=sample_rate,
    )


def decode_imu_packet(
    payload: bytes, sample_rate: float = config.DEFAULT_SAMPLE_RATE
) -> IMUPacket:
    """Decode the IMU chunks of one ``djmd`` packet.

    *sample_rate* is the rate known before this packet; a header inside the
    packet replaces it for the record arrays that follow the header.
    """
    header: IMUHeader | None = None
    records: list[IMURecordArray] = []

    for chunk in iter_length_delimited(payload, _PACKET_IMU_FIELD):
        chunk_records: IMURecordArray | None = None
        for f in iter_fields(chunk):
            if f.wire_type != WireType.LENGTH_DELIMITED:
                continue
            assert isinstance(f.value, bytes)
            if f.field_number == _IMU_HEADER_FIELD:
                parsed = IMUHeader.from_bytes(f.value)
                if parsed is not None:
                    header = parsed
                    sample_rate = parsed.sample_rate
            elif f.field_number == _IMU_RECORDS_FIELD:
                # One record array per chunk; a repeated field replaces it
                chunk_records = decode_record_array(f.value, sample_rate)
        if chunk_records is not None:
            records.append(chunk_records)

    return IMUPacket(header=header, records=records)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class IMUAggregator:
    """Concatenates decoded packets and finalizes them into an IMURecordSet.

    Packets must be added in processing order (ascending stream index, then
    packet order).  Sample indices and timestamps are assigned only in
    :meth:`finalize`, once the last header is known.
    """

    def __init__(self, default_sample_rate: float = config.DEFAULT_SAMPLE_RATE):
        self._default_sample_rate = default_sample_rate
        self._header: IMUHeader | None = None
        self._channels: list[np.ndarray] = []
        self._count = 0

    def __len__(self) -> int:
        return self._count

    @property
    def sample_rate(self) -> float:
        """The most recently observed header rate, or the default."""
        if self._header is None:
            return self._default_sample_rate
        return self._header.sample_rate

    def add_packet(self, packet: IMUPacket) -> int:
        """Append the records of *packet*; returns how many were added."""
        if packet.header is not None:
            self._header = packet.header
        added = 0
        for block in packet.records:
            if len(block):
                self._channels.append(block.channels)
                added += len(block)
        self._count += added
        return added

    def add_payload(self, payload: bytes) -> int:
        """Decode one raw packet payload and append its records."""
        return self.add_packet(decode_imu_packet(payload, self.sample_rate))

    def finalize(self) -> IMURecordSet:
        if self._count == 0:
            raise IMUDataNotFoundError("IMU data not found")
        channels = np.concatenate(self._channels, axis=0)
        sample_index = np.arange(channels.shape[0], dtype=np.int64)
        sample_rate = self.sample_rate
        return IMURecordSet(
            sample_rate=sample_rate,
            sample_index=sample_index,
            timestamps=sample_index / sample_rate,
            channels=channels,
        )


def aggregate_imu_packets(
    packets: Iterable[IMUPacket],
    default_sample_rate: float = config.DEFAULT_SAMPLE_RATE,
) -> IMURecordSet:
    """Concatenate *packets* (in processing order) into one record set."""
    aggregator = IMUAggregator(default_sample_rate)
    for packet in packets:
        aggregator.add_packet(packet)
    return aggregator.finalize()


# ---------------------------------------------------------------------------
# CSV output
# ---------------------------------------------------------------------------

imu_csv_schema = pa.DataFrameSchema(
    columns={
        "Timestamp(s)": pa.Column(
            float,
            checks=pa.Check(
                lambda s: s.is_monotonic_increasing,
                name="is_monotonic",
                error="Timestamp(s) must be monotonically increasing.",
            ),
            nullable=False,
        ),
        "SampleIndex": pa.Column(
            "int64",
            checks=pa.Check(
                lambda s: bool((s.to_numpy() == np.arange(len(s))).all()),
                name="is_contiguous",
                error="SampleIndex must count up from 0 without gaps.",
            ),
            nullable=False,
        ),
        **{name: pa.Column("int16", nullable=False) for name in CHANNEL_COLUMNS},
    },
    strict=True,
    ordered=True,
)


def write_imu_csv(record_set: IMURecordSet, out_path: Path) -> None:
    """Write *record_set* to *out_path*; :class:`OSError` propagates."""
    df = imu_csv_schema.validate(record_set.to_dataframe())
    df.to_csv(
        out_path,
        index=False,
        float_format="%.6f",
        lineterminator="\n",
        encoding="utf-8",
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode_imu_tracks(
    input_path: Path,
    stream_indices: Sequence[int],
    packet_source: PacketSource = fetch_packets,
) -> IMURecordSet:
    """Decode every ``djmd`` track of *input_path* into one record set.

    Raises
    ------
    IMUDataNotFoundError
        If no track yielded a single record.
    """
    aggregator = IMUAggregator()
    for stream_index in sorted(stream_indices):
        t0 = time.monotonic()
        packets = packet_source(input_path, stream_index)
        before = len(aggregator)
        for packet in packets:
            aggregator.add_payload(decode_hex_dump(packet.data))
        logger.debug(
            "Stream %d: %d packets, %d IMU records (%.2f s)",
            stream_index,
            len(packets),
            len(aggregator) - before,
            time.monotonic() - t0,
        )
    return aggregator.finalize()


def extract_imu_csv(
    input_path: Path,
    stream_indices: Sequence[int],
    out_path: Path,
    packet_source: PacketSource = fetch_packets,
) -> IMURecordSet:
    """Decode the ``djmd`` tracks of *input_path* and write them to *out_path*.

    Nothing is written when no IMU data is found.
    """
    record_set = decode_imu_tracks(input_path, stream_indices, packet_source)
    write_imu_csv(record_set, out_path)

    duration = float(record_set.timestamps[-1])
    logger.info(
        "Wrote IMU CSV: %s  (%d records, %.1f s at %.0f Hz)",
        out_path.name,
        len(record_set),
        duration,
        record_set.sample_rate,
    )
    return record_set
