"""
OSV Extract Scripts Package

This package contains command-line scripts for inspecting OSV recordings and
extracting their streams.

Available scripts:
- osv_extract: Inspect an OSV file or extract its video, audio and IMU data
"""

__all__ = ["osv_extract"]
