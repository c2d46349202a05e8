"""
Chunk codec for encoded file payloads.

A payload is the character-encoded file as received from the client (a
data URL or raw base64). It is split into fragments of at most
``max_chunk_size`` characters so every fragment fits under the key-value
backend's per-value ceiling. Fragments carry no delimiter or length prefix:
the payload is rebuilt only by concatenating them in index order.
"""

import base64
import binascii
from typing import Iterable, Sequence

from .exceptions import MissingChunkError, RetrievalError, ValidationError
from .utils import format_file_size

# Slack on the early check, applied before chunking.
RAW_SIZE_SLACK = 2


def split(payload: str, max_chunk_size: int) -> list[str]:
    """Split *payload* into ordered fragments of at most *max_chunk_size* characters."""
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
    return [payload[i:i + max_chunk_size] for i in range(0, len(payload), max_chunk_size)]


def join(fragments: Iterable[str], expected_length: int | None = None) -> str:
    """Concatenate *fragments* in order.

    When *expected_length* is given, a result of any other length raises
    ``RetrievalError`` instead of handing back a truncated payload.
    """
    payload = "".join(fragments)
    if expected_length is not None and len(payload) != expected_length:
        raise RetrievalError(
            f"Reassembled payload is {len(payload)} characters, expected {expected_length}"
        )
    return payload


def collect(fetched: Iterable[str | None]) -> list[str]:
    """Check an index-ordered sequence of fetched fragments.

    ``None`` marks a fragment that was not found; the first one raises
    ``MissingChunkError`` with its index.
    """
    fragments = []
    for index, fragment in enumerate(fetched):
        if fragment is None:
            raise MissingChunkError(index)
        fragments.append(fragment)
    return fragments


def extract_base64(payload: str) -> str:
    """Strip a ``data:<mime>;base64,`` prefix if present."""
    _, sep, data = payload.partition(",")
    return data if sep and data else payload


def decoded_size(payload: str) -> int:
    """Exact decoded size in bytes of a padded data URL or base64 string."""
    data = extract_base64(payload)
    return len(data) * 3 // 4 - data[-2:].count("=")


def estimate_size(fragments: Sequence[str]) -> int:
    """Decoded size in bytes of the payload the fragments rebuild."""
    return decoded_size("".join(fragments))


def decode_payload(payload: str) -> bytes:
    """Decode a data URL or raw base64 string to bytes."""
    try:
        return base64.b64decode(extract_base64(payload), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid file encoding: {e}") from e


def check_raw_size(size: int, max_total_size: int) -> None:
    """Early rejection of grossly oversized uploads."""
    if size > max_total_size * RAW_SIZE_SLACK:
        raise ValidationError(
            f"File too large. Maximum size is {format_file_size(max_total_size)}"
        )


def check_chunked_size(fragments: Sequence[str], max_total_size: int) -> int:
    """Precise check on the chunked payload, before anything is stored.

    Returns the decoded size so callers can record it.
    """
    size = estimate_size(fragments)
    if size > max_total_size:
        raise ValidationError(
            f"File too large after processing. Maximum size is {format_file_size(max_total_size)}"
        )
    return size
