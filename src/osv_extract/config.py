import pathlib

import pydantic_settings

# Environment overrides are read as OSV_EXTRACT_<NAME>
_ENV_PREFIX = "OSV_EXTRACT_"


class OSVExtractDirs(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix=_ENV_PREFIX)

    # None writes next to each input file
    OUTPUT: pathlib.Path | None = None


class OSVExtractConfig(pydantic_settings.BaseSettings):
    model_config = pydantic_settings.SettingsConfigDict(env_prefix=_ENV_PREFIX)

    DIR: OSVExtractDirs = OSVExtractDirs()

    # External media tools
    FFPROBE: str = "ffprobe"
    FFMPEG: str = "ffmpeg"

    # Input files picked up in directory mode
    INPUT_SUFFIX: str = ".osv"

    # --- Stream classification ---
    VIDEO_CODEC: str = "hevc"
    THUMBNAIL_CODEC: str = "mjpeg"
    IMU_TAG: str = "djmd"  # IMU telemetry data track
    DEBUG_TAG: str = "dbgi"  # device debug data track

    # --- IMU decoding ---
    # Units: Hz. Used until a djmd header reports the device rate.
    DEFAULT_SAMPLE_RATE: float = 800.0


config = OSVExtractConfig()
