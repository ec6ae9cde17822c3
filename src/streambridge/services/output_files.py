"""Filesystem helpers for a stream's manifests and segments.

All functions are blocking; async callers run them via ``asyncio.to_thread``.
"""

import logging
import os
from pathlib import Path

from streambridge.errors.exceptions import TeardownPartialFailure

logger = logging.getLogger(__name__)


def _stream_files(stream_id: str, directories: list[Path]) -> list[Path]:
    files: list[Path] = []
    for directory in directories:
        try:
            entries = list(os.scandir(directory))
        except FileNotFoundError:
            continue
        files.extend(
            Path(entry.path)
            for entry in entries
            if entry.name.startswith(stream_id) and entry.is_file(follow_symlinks=False)
        )
    return files


def remove_stream_files(stream_id: str, directories: list[Path]) -> int:
    """Delete every file in ``directories`` whose name starts with ``stream_id``.

    Files already gone are not failures. Every file is attempted; if any could
    not be removed, raises TeardownPartialFailure listing them after the rest
    were deleted. Returns the number of files removed.
    """
    removed = 0
    failures: dict[str, str] = {}
    for path in _stream_files(stream_id, directories):
        try:
            path.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as exc:
            failures[str(path)] = str(exc)

    if failures:
        raise TeardownPartialFailure(stream_id, failures)
    logger.debug("Removed %d file(s) for stream %s", removed, stream_id)
    return removed


def measure_stream_files(stream_id: str, directories: list[Path]) -> int:
    """Total size in bytes of the stream's files currently on disk."""
    total = 0
    for path in _stream_files(stream_id, directories):
        try:
            total += path.stat().st_size
        except FileNotFoundError:
            # The encoder rotated the segment out between listing and stat.
            continue
    return total
