import os
from pathlib import Path

from . import utils
from .models import AppSettings

# Built-in defaults, overridable through environment variables
_DEFAULTS = {
    "DATA_DIR": "/quickdrop/data",
    "MAX_CHUNK_SIZE": "750kb",
    "MAX_TOTAL_SIZE": "100mb",
    "MAX_VALUE_SIZE": "1mb",
    "EXPIRY_TIME": "120",
    "CLEANUP_INTERVAL": "300",
    "LOG_LEVEL": "INFO",
}


def _env(key: str) -> str:
    return os.getenv(key, _DEFAULTS[key])


def load_settings() -> AppSettings:
    """Build the application settings from environment variables.

    Sizes accept units (``750kb``, ``100mb``) and times accept ``s``/``m``/``h``
    suffixes. Raises ``ValueError`` on malformed or inconsistent values.
    """
    return AppSettings(
        data_dir=Path(_env("DATA_DIR")),
        max_chunk_size=utils.parse_file_size(_env("MAX_CHUNK_SIZE")),
        max_total_size=utils.parse_file_size(_env("MAX_TOTAL_SIZE")),
        max_value_size=utils.parse_file_size(_env("MAX_VALUE_SIZE")),
        expiry_time=utils.parse_time(_env("EXPIRY_TIME")),
        cleanup_interval=utils.parse_time(_env("CLEANUP_INTERVAL")),
        log_level=_env("LOG_LEVEL").upper(),
    )
