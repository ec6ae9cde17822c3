"""String enums for stream jobs."""

from enum import StrEnum


class StreamStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    STOPPED = "stopped"
    ERROR = "error"


class StreamQuality(StrEnum):
    P1080 = "1080p"
    P720 = "720p"
    P480 = "480p"
