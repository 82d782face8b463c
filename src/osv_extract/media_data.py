"""Data models for OSV container probing and extraction options.

The probe models mirror the JSON that ``ffprobe -print_format json`` emits,
keeping only the fields the extractor reads.  Unknown keys are retained
(``extra="allow"``) so the raw probe output can still be inspected.
"""

from __future__ import annotations

import pathlib
from enum import StrEnum

import pydantic

from osv_extract.config import config

# ---------------------------------------------------------------------------
# ffprobe stream / format models
# ---------------------------------------------------------------------------


class Disposition(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="allow")

    attached_pic: int = 0


class StreamInfo(pydantic.BaseModel):
    """One entry of ffprobe's ``streams`` array."""

    model_config = pydantic.ConfigDict(extra="allow")

    index: int
    codec_type: str | None = None
    codec_name: str | None = None
    codec_tag_string: str | None = None

    # Video only
    width: int | None = None
    height: int | None = None
    r_frame_rate: str | None = None

    disposition: Disposition = pydantic.Field(default_factory=Disposition)
    tags: dict[str, str] = pydantic.Field(default_factory=dict)

    @property
    def is_thumbnail(self) -> bool:
        return (
            self.disposition.attached_pic == 1
            or self.codec_name == config.THUMBNAIL_CODEC
        )


class FormatInfo(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="allow")

    duration: str | None = None
    tags: dict[str, str] = pydantic.Field(default_factory=dict)


class MediaProbe(pydantic.BaseModel):
    """Parsed ``ffprobe -show_streams [-show_format]`` output."""

    model_config = pydantic.ConfigDict(extra="allow")

    streams: list[StreamInfo] = pydantic.Field(default_factory=list)
    format: FormatInfo = pydantic.Field(default_factory=FormatInfo)


class PacketDump(pydantic.BaseModel):
    """One entry of ffprobe's ``packets`` array (``-show_packets -show_data``).

    ``data`` is ffprobe's hex dump of the packet payload.  ``pts_time`` is
    kept for reference only; IMU timing never uses it.
    """

    model_config = pydantic.ConfigDict(extra="allow")

    pts_time: str | None = None
    data: str = ""


class PacketList(pydantic.BaseModel):
    packets: list[PacketDump] = pydantic.Field(default_factory=list)


# ---------------------------------------------------------------------------
# Stream selection
# ---------------------------------------------------------------------------


class StreamSelection(pydantic.BaseModel):
    """Stream indices of an OSV container grouped by role (each ascending)."""

    video: list[int] = pydantic.Field(default_factory=list)
    audio: list[int] = pydantic.Field(default_factory=list)
    thumbnail: list[int] = pydantic.Field(default_factory=list)
    imu: list[int] = pydantic.Field(default_factory=list)
    debug: list[int] = pydantic.Field(default_factory=list)


# ---------------------------------------------------------------------------
# Extraction options
# ---------------------------------------------------------------------------


class MetaMode(StrEnum):
    RAW = "raw"
    DECODE = "decode"
    BOTH = "both"


class ExtractOptions(pydantic.BaseModel):
    """Options for one ``extract`` run (single file or directory)."""

    output_dir: pathlib.Path | None = None
    """Output root; ``None`` means the directory of each input file."""

    meta: MetaMode = MetaMode.DECODE
    mov: bool = True
    separate: bool = False
    csv: bool = False
    force: bool = False

    @property
    def write_raw_tracks(self) -> bool:
        return self.meta in (MetaMode.RAW, MetaMode.BOTH)

    @property
    def decode_tracks(self) -> bool:
        return self.meta in (MetaMode.DECODE, MetaMode.BOTH)
