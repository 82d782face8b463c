"""Utility helpers for the osv_extract package."""

from __future__ import annotations

import logging

import rich.console
import rich.logging


def setup_logging(verbose: bool = False) -> None:
    log_format = r"\[[bold]%(name)s[/bold]] %(message)s"
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=log_format,
        datefmt="[%X]",
        handlers=[
            rich.logging.RichHandler(
                console=rich.console.Console(color_system="auto", stderr=True),
                show_level=True,
                show_path=False,
                enable_link_path=False,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                markup=True,
            )
        ],
    )


def format_frame_rate(r_frame_rate: str | None) -> float | None:
    """Turn an ffprobe ``r_frame_rate`` fraction (``"30000/1001"``) into Hz."""
    if not r_frame_rate or "/" not in r_frame_rate:
        return None
    num, den = r_frame_rate.split("/", 1)
    try:
        return round(int(num) / int(den), 4)
    except (ValueError, ZeroDivisionError):
        return None
