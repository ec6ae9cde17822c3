"""Prefixed ID generation utility."""

import uuid

STREAM_ID_PREFIX = "strm_"


def generate_id(prefix: str = STREAM_ID_PREFIX) -> str:
    """Generate a prefixed unique ID.

    The random part is always 16 hex characters, so no two IDs with the same
    prefix can be prefixes of one another. Output file cleanup matches files by
    ID prefix and relies on this.

    Returns:
        A string like "strm_a1b2c3d4e5f6a7b8".
    """
    short_uuid = uuid.uuid4().hex[:16]
    return f"{prefix}{short_uuid}"
