import math
import re
import secrets

SIZE_UNITS = {'b': 1, 'kb': 1024, 'mb': 1024 ** 2, 'gb': 1024 ** 3}
TIME_UNITS = {'s': 1, 'm': 60, 'h': 3600}

def _parse_with_units(text, units: dict[str, int], kind: str) -> int:
    text = str(text).strip()
    if text.isdigit():
        return int(text)

    match = re.match(r'^(\d+(?:\.\d+)?)\s*([a-z]+)$', text, re.IGNORECASE)
    if not match or match.group(2).lower() not in units:
        raise ValueError(f"Invalid {kind} format: {text}")
    return int(float(match.group(1)) * units[match.group(2).lower()])

def parse_file_size(size_str: str) -> int:
    """Bytes from a size setting such as ``750kb`` or ``100MB`` (bare numbers are bytes)."""
    return _parse_with_units(size_str, SIZE_UNITS, "file size")

def parse_time(time_str: str) -> int:
    """Seconds from a duration setting such as ``90s`` or ``2m``."""
    return _parse_with_units(time_str, TIME_UNITS, "time")

def generate_handle() -> str:
    """Generate a random file handle: 6 uppercase hex characters."""
    return secrets.token_hex(3).upper()

def format_file_size(size: float) -> str:
    """Human-readable byte size, e.g. ``"3.75 KB"``."""
    if size <= 0:
        return "0 Bytes"
    for unit in ("Bytes", "KB", "MB"):
        if size < 1024:
            return f"{round(size, 2):g} {unit}"
        size /= 1024
    return f"{round(size, 2):g} GB"

def remaining_seconds(expires_at_ms: int, now: float) -> int:
    """Whole seconds left until ``expires_at_ms`` (epoch ms), rounded up."""
    return math.ceil((expires_at_ms - now * 1000) / 1000)
