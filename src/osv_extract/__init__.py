"""
OSV Extract

Tools for pulling video, audio and IMU telemetry out of DJI OSV recordings.
"""

__version__ = "1.0.0"
