"""Shared test fixtures."""

import asyncio
import stat
from datetime import timedelta
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from streambridge.db.base import utcnow
from streambridge.db.engine import create_session_factory, create_tables
from streambridge.repositories.stream_repo import StreamRepository
from streambridge.services.lifecycle import StreamLifecycleManager
from streambridge.services.retention import RetentionSweeper
from streambridge.services.supervisor import ProcessSupervisor


def write_encoder(directory: Path, name: str, body: str) -> str:
    """Write an executable shell script standing in for ffmpeg; it ignores its arguments."""
    script = directory / name
    script.write_text(f"#!/bin/sh\n{body}\n", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


async def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.05)
    return predicate()


@pytest.fixture
def wait_until():
    """Poll a predicate until it is true or the timeout elapses."""
    return _wait_until


@pytest.fixture
def fake_encoder(tmp_path) -> str:
    """An encoder that runs until signalled."""
    return write_encoder(tmp_path, "fake-ffmpeg", "exec sleep 300")


@pytest.fixture
def crashing_encoder(tmp_path) -> str:
    """An encoder that exits on its own right after starting."""
    return write_encoder(tmp_path, "crashing-ffmpeg", "exit 3")


@pytest.fixture
def output_root(tmp_path) -> Path:
    return tmp_path / "streams"


@pytest.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite async engine for testing."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def supervisor(fake_encoder):
    _supervisor = ProcessSupervisor(encoder_binary=fake_encoder)
    yield _supervisor
    await _supervisor.shutdown()


@pytest.fixture
def lifecycle(session_factory, supervisor, output_root):
    return StreamLifecycleManager(session_factory, supervisor, output_root)


@pytest.fixture
def sweeper(lifecycle):
    return RetentionSweeper(lifecycle, retention_days=7)


@pytest.fixture
def insert_stream(session_factory):
    """Insert a stream row directly, bypassing the lifecycle manager."""

    async def _insert(stream_id: str, age_days: float = 0, **overrides):
        values = {
            "id": stream_id,
            "name": f"Stream {stream_id[-8:]}",
            "source_url": "rtmp://ingest.example.com/live/key",
            "quality": "720p",
            "status": "stopped",
            "is_active": False,
            "created_at": utcnow() - timedelta(days=age_days),
        }
        values.update(overrides)
        async with session_factory() as session:
            row = await StreamRepository(session).create(**values)
            await session.commit()
        return row

    return _insert


@pytest.fixture
def app(session_factory, db_engine, supervisor, lifecycle, sweeper):
    """Create a test application instance wired to the test DB and fake encoder."""
    from streambridge.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.supervisor = supervisor
    _app.state.lifecycle = lifecycle
    _app.state.sweeper = sweeper
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
