"""
OSV stream extraction: splits a DJI OSV recording into playable and
machine-readable files.

For each OSV file the streams are classified with ``ffprobe`` (see
:func:`osv_extract.processing.probe.select_streams`) and written into
``<output_dir>/<stem>/``:

#### MOV mode (default)

One QuickTime file per lens, video and audio stream-copied:

| File | Video | Audio |
|------|-------|-------|
| `{stem}_front.mov` | first HEVC stream | audio stream 0 |
| `{stem}_rear.mov` | second HEVC stream | audio stream 1 (or 0 if there is only one) |

#### Separate mode

| File | Source |
|------|--------|
| `{stem}_front.hevc.mp4` | first HEVC stream |
| `{stem}_rear.hevc.mp4` | second HEVC stream |
| `{stem}.aac.m4a` | first audio stream |
| `{stem}_thumb.jpg` | first thumbnail stream, one frame |
| `{stem}_djmd_{i}.bin` | raw ``djmd`` track *i* (meta mode ``raw`` / ``both``) |
| `{stem}_dbgi_{i}.bin` | raw ``dbgi`` track *i* (meta mode ``raw`` / ``both``) |

#### IMU CSV

With ``csv`` enabled and meta mode ``decode`` / ``both``, all ``djmd`` tracks
are decoded into `{stem}_djmd.csv` (see :mod:`decode_imu`).

Existing outputs are never overwritten unless ``force`` is set.
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from osv_extract.config import config
from osv_extract.media_data import ExtractOptions, StreamSelection
from osv_extract.osv_file import check_output_path, find_osv_files, resolve_output_dir
from osv_extract.processing.decode_imu import extract_imu_csv
from osv_extract.processing.probe import (
    PacketSource,
    fetch_packets,
    probe_streams,
    run_tool,
    select_streams,
)

logger = logging.getLogger(__name__)

_LENS_NAMES = ("front", "rear")


# ---------------------------------------------------------------------------
# ffmpeg helpers
# ---------------------------------------------------------------------------


def _ffmpeg(input_path: Path, *args: str) -> None:
    run_tool(config.FFMPEG, "-v", "error", "-y", "-i", str(input_path), *args)


def _copy_stream(
    input_path: Path, stream_index: int, out_path: Path, *extra: str
) -> None:
    _ffmpeg(input_path, "-map", f"0:{stream_index}", *extra, str(out_path))


# ---------------------------------------------------------------------------
# MOV / separate outputs
# ---------------------------------------------------------------------------


def create_mov_files(
    input_path: Path,
    subdir: Path,
    selection: StreamSelection,
    force: bool = False,
) -> list[Path]:
    """Mux each lens stream with its audio stream into a MOV file."""
    if not selection.video:
        raise ValueError(f"No video streams found in {input_path}")
    if not selection.audio:
        raise ValueError(f"No audio streams found in {input_path}")

    stem = input_path.stem
    written: list[Path] = []
    for i, (video_idx, lens) in enumerate(zip(selection.video, _LENS_NAMES)):
        audio_idx = (
            selection.audio[i] if i < len(selection.audio) else selection.audio[0]
        )
        out = check_output_path(subdir / f"{stem}_{lens}.mov", force)
        logger.debug(
            "Creating MOV file: %s (video: %d, audio: %d)",
            out.name,
            video_idx,
            audio_idx,
        )
        _ffmpeg(
            input_path,
            "-map",
            f"0:{video_idx}",
            "-map",
            f"0:{audio_idx}",
            "-c:v",
            "copy",
            "-c:a",
            "copy",
            "-f",
            "mov",
            str(out),
        )
        written.append(out)
    return written


def create_separate_files(
    input_path: Path,
    subdir: Path,
    selection: StreamSelection,
    options: ExtractOptions,
) -> list[Path]:
    """Write each stream to its own file (see the module docstring for names)."""
    stem = input_path.stem
    written: list[Path] = []

    for video_idx, lens in zip(selection.video, _LENS_NAMES):
        out = check_output_path(subdir / f"{stem}_{lens}.hevc.mp4", options.force)
        logger.debug("Creating video file: %s", out.name)
        _copy_stream(input_path, video_idx, out, "-c", "copy")
        written.append(out)

    if selection.audio:
        out = check_output_path(subdir / f"{stem}.aac.m4a", options.force)
        logger.debug("Creating audio file: %s", out.name)
        _copy_stream(input_path, selection.audio[0], out, "-c", "copy")
        written.append(out)

    if selection.thumbnail:
        out = check_output_path(subdir / f"{stem}_thumb.jpg", options.force)
        logger.debug("Creating thumbnail: %s", out.name)
        _copy_stream(input_path, selection.thumbnail[0], out, "-frames:v", "1")
        written.append(out)

    if options.write_raw_tracks:
        raw_tracks = (
            (config.IMU_TAG, selection.imu),
            (config.DEBUG_TAG, selection.debug),
        )
        for tag, indices in raw_tracks:
            for i, idx in enumerate(indices):
                out = check_output_path(subdir / f"{stem}_{tag}_{i}.bin", options.force)
                logger.debug("Creating %s data file: %s", tag, out.name)
                _copy_stream(input_path, idx, out, "-c", "copy", "-f", "data")
                written.append(out)

    return written


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def extract_osv(
    input_path: Path,
    options: ExtractOptions,
    packet_source: PacketSource = fetch_packets,
) -> list[Path]:
    """Extract the streams of one OSV file; returns the files written."""
    t_total = time.monotonic()
    subdir = resolve_output_dir(input_path, options.output_dir)
    subdir.mkdir(parents=True, exist_ok=True)
    logger.debug("Output directory: %s", subdir)

    probe = probe_streams(input_path)
    selection = select_streams(probe)
    logger.debug("Video streams: %s", selection.video)
    logger.debug("Audio streams: %s", selection.audio)
    logger.debug("Thumbnails: %s", selection.thumbnail)
    logger.debug("%s data: %s", config.IMU_TAG, selection.imu)
    logger.debug("%s data: %s", config.DEBUG_TAG, selection.debug)

    written: list[Path] = []
    # MOV files are the fallback when no other container output is requested
    if options.mov or not options.separate:
        written += create_mov_files(input_path, subdir, selection, options.force)
    if options.separate:
        written += create_separate_files(input_path, subdir, selection, options)

    if options.csv and options.decode_tracks:
        if selection.imu:
            out = check_output_path(
                subdir / f"{input_path.stem}_{config.IMU_TAG}.csv", options.force
            )
            extract_imu_csv(input_path, selection.imu, out, packet_source)
            written.append(out)
        else:
            logger.warning(
                "No %s track in %s, skipping IMU CSV",
                config.IMU_TAG,
                input_path.name,
            )

    logger.info(
        "Extracted %s: %d files in %.1f s",
        input_path.name,
        len(written),
        time.monotonic() - t_total,
    )
    return written


def process_input(
    input_path: Path,
    options: ExtractOptions,
    packet_source: PacketSource = fetch_packets,
) -> int:
    """Extract a single OSV file or every OSV file below a directory.

    Returns the number of files extracted successfully.  In directory mode a
    failing recording is logged and skipped; a single file's failure
    propagates.
    """
    if not input_path.exists():
        raise FileNotFoundError(f"Input path does not exist: {input_path}")
    if not input_path.is_dir():
        extract_osv(input_path, options, packet_source)
        return 1

    osv_files = find_osv_files(input_path)
    if not osv_files:
        raise FileNotFoundError(f"No OSV files found in directory: {input_path}")
    logger.info("Found %d OSV files in %s", len(osv_files), input_path)

    processed = 0
    for i, osv_file in enumerate(osv_files, start=1):
        logger.info("Processing (%d/%d): %s", i, len(osv_files), osv_file.name)
        try:
            extract_osv(osv_file, options, packet_source)
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode(errors="replace").strip() if exc.stderr else ""
            logger.warning(
                "Failed to process %s: %s failed: %s",
                osv_file.name,
                exc.cmd[0],
                stderr or exc,
            )
            continue
        except Exception as exc:
            logger.warning("Failed to process %s: %s", osv_file.name, exc)
            continue
        processed += 1

    logger.info(
        "Summary: %d processed, %d failed.", processed, len(osv_files) - processed
    )
    return processed
