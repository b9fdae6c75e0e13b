"""Utility functions for Lyriq Notes."""

import base64
import time
import uuid


def now_ms() -> int:
    """
    Get the current time as milliseconds since the UNIX epoch.

    Returns:
        Milliseconds since 1970-01-01 UTC

    """
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """
    Build a new unique identifier.

    Args:
        prefix: Short resource prefix, e.g. ``"n"`` for notes

    Returns:
        Identifier like ``n_3f2a...``

    """
    return f"{prefix}_{uuid.uuid4().hex}"


def encode_audio(data: bytes) -> str:
    """
    Encode raw audio bytes as base64 text for durable storage.

    Args:
        data: Raw audio bytes

    Returns:
        ASCII base64 string

    """
    return base64.b64encode(data).decode("ascii")


def decode_audio(data: str) -> bytes:
    """
    Decode base64 audio text back to raw bytes.

    Args:
        data: Base64 string produced by :func:`encode_audio`

    Returns:
        Raw audio bytes

    """
    return base64.b64decode(data.encode("ascii"))
