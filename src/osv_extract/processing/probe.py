"""
ffprobe access for OSV containers.

OSV recordings are MP4-family containers holding two HEVC lens streams, AAC
audio, an MJPEG thumbnail and two DJI data tracks:

| codec_tag_string | Contents |
|------------------|----------|
| ``djmd`` | DJI metadata, including the IMU telemetry decoded by :mod:`decode_imu` |
| ``dbgi`` | device debug information, only ever dumped raw |

Packet payloads are read with ``ffprobe -show_packets -show_data``, which
prints each payload as a hex dump::

    00000000: 1a96 0c12 1420 0300 0000 0000 0000 0000  ..... ..........

:func:`decode_hex_dump` turns that text back into bytes.
"""

from __future__ import annotations

import logging
import re
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, Sequence

from osv_extract.config import config
from osv_extract.media_data import (
    MediaProbe,
    PacketDump,
    PacketList,
    StreamSelection,
)
from osv_extract.utils import format_frame_rate

logger = logging.getLogger(__name__)

# (path, stream_index) -> packets of that stream, in container order
PacketSource = Callable[[Path, int], Sequence[PacketDump]]

_HEX_DIGIT_RE = re.compile(r"[0-9a-fA-F]")


# ---------------------------------------------------------------------------
# Subprocess helpers
# ---------------------------------------------------------------------------


def run_tool(*args: str) -> bytes:
    """Run an external tool and return its stdout.

    Raises :class:`subprocess.CalledProcessError` on a non-zero exit status.
    """
    logger.debug("Running: %s", " ".join(args))
    result = subprocess.run(list(args), capture_output=True, check=True)
    return result.stdout


def _ffprobe(path: Path, *args: str) -> bytes:
    return run_tool(
        config.FFPROBE, "-v", "error", "-print_format", "json", *args, str(path)
    )


# ---------------------------------------------------------------------------
# Container probing
# ---------------------------------------------------------------------------


def probe_streams(path: Path, show_format: bool = False) -> MediaProbe:
    """Return the stream (and optionally format) description of *path*."""
    args = ["-show_streams"]
    if show_format:
        args.append("-show_format")
    raw = _ffprobe(path, *args)
    probe = MediaProbe.model_validate_json(raw)
    logger.debug("%s: %d streams", path.name, len(probe.streams))
    return probe


def select_streams(probe: MediaProbe) -> StreamSelection:
    """Group stream indices by role.

    A video stream can be both a lens stream and a thumbnail only if it is
    HEVC with the attached-picture flag set; both lists then contain it.
    """
    selection = StreamSelection()
    for s in probe.streams:
        if s.codec_type == "video":
            if s.codec_name == config.VIDEO_CODEC:
                selection.video.append(s.index)
            if s.is_thumbnail:
                selection.thumbnail.append(s.index)
        elif s.codec_type == "audio":
            selection.audio.append(s.index)
        elif s.codec_type == "data":
            if s.codec_tag_string == config.IMU_TAG:
                selection.imu.append(s.index)
            if s.codec_tag_string == config.DEBUG_TAG:
                selection.debug.append(s.index)

    for indices in (
        selection.video,
        selection.audio,
        selection.thumbnail,
        selection.imu,
        selection.debug,
    ):
        indices.sort()
    return selection


def summarize_probe(probe: MediaProbe) -> dict[str, Any]:
    """Condense a probe into the ``inspect`` report.

    Keys: ``container`` (format tags), ``video``, ``audio``, ``data`` and
    ``thumb`` (lists of per-stream dicts).  Thumbnails are listed only under
    ``thumb``.
    """
    summary: dict[str, Any] = {
        "container": dict(probe.format.tags),
        "video": [],
        "audio": [],
        "data": [],
        "thumb": [],
    }
    for s in probe.streams:
        entry: dict[str, Any] = {
            "index": s.index,
            "codec": s.codec_name,
            "type": s.codec_type,
        }
        if s.codec_type == "video":
            entry["w"] = s.width
            entry["h"] = s.height
            entry["r_frame_rate"] = s.r_frame_rate
            entry["fps"] = format_frame_rate(s.r_frame_rate)
            summary["thumb" if s.is_thumbnail else "video"].append(entry)
        elif s.codec_type == "audio":
            summary["audio"].append(entry)
        elif s.codec_type == "data":
            entry["tag"] = s.codec_tag_string
            summary["data"].append(entry)
    return summary


# ---------------------------------------------------------------------------
# Packet payloads
# ---------------------------------------------------------------------------


def fetch_packets(path: Path, stream_index: int) -> list[PacketDump]:
    """Return every packet of *stream_index* with its hex-dumped payload."""
    t0 = time.monotonic()
    raw = _ffprobe(
        path,
        "-show_packets",
        "-show_data",
        "-select_streams",
        str(stream_index),
    )
    packets = PacketList.model_validate_json(raw).packets
    logger.debug(
        "ffprobe returned %d packets for stream %d (%.2f s)",
        len(packets),
        stream_index,
        time.monotonic() - t0,
    )
    return packets


def decode_hex_dump(text: str) -> bytes:
    """Convert an ffprobe ``-show_data`` hex dump back into bytes.

    Only the text after the first colon of each line is scanned, and lines
    without a colon are ignored.  Every hex digit found there (the trailing
    ASCII column included) is kept; the digits are paired left to right and
    an unpaired final digit is dropped.
    """
    digits: list[str] = []
    for line in text.split("\n"):
        _offset, sep, rest = line.partition(":")
        if not sep:
            continue
        digits.extend(_HEX_DIGIT_RE.findall(rest))
    if len(digits) % 2:
        digits.pop()
    return bytes.fromhex("".join(digits))
