"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator

from fastapi import Request

from streambridge.services.lifecycle import StreamLifecycleManager
from streambridge.services.retention import RetentionSweeper
from streambridge.services.supervisor import ProcessSupervisor


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_supervisor(request: Request) -> ProcessSupervisor:
    return request.app.state.supervisor


def get_lifecycle(request: Request) -> StreamLifecycleManager:
    return request.app.state.lifecycle


def get_sweeper(request: Request) -> RetentionSweeper:
    return request.app.state.sweeper
