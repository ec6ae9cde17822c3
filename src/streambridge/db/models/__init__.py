"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from streambridge.db.models.stream import StreamRow

__all__ = [
    "StreamRow",
]
