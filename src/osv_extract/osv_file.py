"""
OSV File Finder Module

This module locates OSV recordings on disk and lays out the output files
produced for each of them:

    <output_dir>/<stem>/<stem>_front.mov
    <output_dir>/<stem>/<stem>_djmd.csv
    ...

where <stem> is the recording's file name without its extension.
"""

from pathlib import Path
from typing import List, Optional

from osv_extract.config import config


def is_osv_file(path: Path) -> bool:
    """
    Check whether a path names an OSV recording (case-insensitive suffix).

    Args:
        path: Path to check

    Returns:
        bool: True for regular files ending in .osv / .OSV
    """
    return path.is_file() and path.suffix.lower() == config.INPUT_SUFFIX.lower()


def find_osv_files(directory: Path) -> List[Path]:
    """
    Recursively find all OSV recordings below a directory.

    Args:
        directory: Directory to search

    Returns:
        List[Path]: Sorted list of OSV file paths

    Example:
        >>> find_osv_files(Path("/media/DCIM"))
        [PosixPath('/media/DCIM/100MEDIA/CAM_0001.OSV'),
         PosixPath('/media/DCIM/100MEDIA/CAM_0002.OSV')]
    """
    return sorted(p for p in directory.rglob("*") if is_osv_file(p))


def resolve_output_dir(input_path: Path, output_dir: Optional[Path] = None) -> Path:
    """
    Determine the per-recording output subdirectory.

    Args:
        input_path: OSV file being processed
        output_dir: Output root. Defaults to config.DIR.OUTPUT, and when that
                    is unset, to the directory holding the input file.

    Returns:
        Path: <output_root>/<stem>

    Example:
        >>> resolve_output_dir(Path("/media/CAM_0001.OSV"))
        PosixPath('/media/CAM_0001')
    """
    if output_dir is None:
        output_dir = config.DIR.OUTPUT
    if output_dir is None:
        output_dir = input_path.parent
    return output_dir / input_path.stem


def check_output_path(path: Path, force: bool) -> Path:
    """
    Enforce the overwrite policy for an output file.

    Args:
        path: Output file about to be written
        force: Allow overwriting an existing file

    Returns:
        Path: The same path, for chaining

    Raises:
        FileExistsError: If the file exists and force is False
    """
    if not force and path.exists():
        raise FileExistsError(
            f"File already exists: {path} (use --force to overwrite)"
        )
    return path
