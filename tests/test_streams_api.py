"""API tests for stream, stats and cleanup endpoints."""

import pytest

SOURCE = "rtmp://ingest.example.com/live/key"


async def _create(client, **overrides) -> dict:
    payload = {"name": "Conference", "source_url": SOURCE, "quality": "720p"}
    payload.update(overrides)
    response = await client.post("/api/v1/streams", json=payload)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_create_stream(client, supervisor):
    response = await client.post("/api/v1/streams", json={"name": "Keynote", "source_url": SOURCE, "quality": "1080p"})
    assert response.status_code == 201
    body = response.json()
    assert body["id"].startswith("strm_")
    assert body["name"] == "Keynote"
    assert body["quality"] == "1080p"
    assert body["status"] == "active"
    assert body["is_active"] is True
    assert body["output_hls_path"].endswith(f"{body['id']}.m3u8")
    assert body["output_dash_path"].endswith(f"{body['id']}.mpd")
    assert body["duration_seconds"] == 0
    assert body["file_size_bytes"] == 0
    assert "created_at" in body
    assert "X-Trace-Id" in response.headers
    assert supervisor.is_live(body["id"])


@pytest.mark.asyncio
async def test_create_stream_defaults(client):
    response = await client.post("/api/v1/streams", json={"source_url": SOURCE})
    assert response.status_code == 201
    body = response.json()
    assert body["quality"] == "720p"
    assert body["name"].startswith("Stream ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"name": "No source"},
        {"name": "Wrong scheme", "source_url": "https://example.com/live.m3u8"},
        {"name": "Unknown quality", "source_url": SOURCE, "quality": "4k"},
    ],
)
async def test_create_stream_invalid(client, payload):
    response = await client.post("/api/v1/streams", json=payload)
    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]

    listing = await client.get("/api/v1/streams")
    assert listing.json() == []


@pytest.mark.asyncio
async def test_create_stream_launch_failure_returns_error_record(client, app, tmp_path):
    from streambridge.services.supervisor import ProcessSupervisor

    app.state.lifecycle.supervisor = ProcessSupervisor(encoder_binary=str(tmp_path / "missing-ffmpeg"))

    response = await client.post("/api/v1/streams", json={"source_url": SOURCE})
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "error"
    assert body["is_active"] is False
    assert body["output_hls_path"] is None


@pytest.mark.asyncio
async def test_get_stream(client):
    created = await _create(client)

    response = await client.get(f"/api/v1/streams/{created['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_get_stream_not_found(client):
    response = await client.get("/api/v1/streams/strm_0000000000000000")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_stop_stream(client, supervisor):
    created = await _create(client)

    response = await client.post(f"/api/v1/streams/{created['id']}/stop")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "stopped"
    assert body["is_active"] is False
    assert body["stopped_at"] is not None
    assert supervisor.live_count() == 0

    again = await client.post(f"/api/v1/streams/{created['id']}/stop")
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "INVALID_STATE"


@pytest.mark.asyncio
async def test_stop_stream_not_found(client):
    response = await client.post("/api/v1/streams/strm_0000000000000000/stop")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_stream(client, supervisor):
    created = await _create(client)

    response = await client.delete(f"/api/v1/streams/{created['id']}")
    assert response.status_code == 200
    assert response.json() == {"deleted": True}
    assert supervisor.live_count() == 0

    gone = await client.get(f"/api/v1/streams/{created['id']}")
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_delete_stream_not_found(client):
    response = await client.delete("/api/v1/streams/strm_0000000000000000")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_listings(client, insert_stream):
    await insert_stream("strm_0000000000000001", age_days=3)
    await insert_stream("strm_0000000000000002", age_days=2, status="active", is_active=True)
    await insert_stream("strm_0000000000000003", age_days=1)

    everything = await client.get("/api/v1/streams")
    assert [s["id"] for s in everything.json()] == [
        "strm_0000000000000003", "strm_0000000000000002", "strm_0000000000000001",
    ]

    active = await client.get("/api/v1/streams/active")
    assert [s["id"] for s in active.json()] == ["strm_0000000000000002"]

    recent = await client.get("/api/v1/streams/recent", params={"limit": 2})
    assert [s["id"] for s in recent.json()] == ["strm_0000000000000003", "strm_0000000000000002"]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, 101])
async def test_recent_limit_bounds(client, limit):
    response = await client.get("/api/v1/streams/recent", params={"limit": limit})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_stats(client, insert_stream):
    await insert_stream("strm_0000000000000001", file_size_bytes=2048)
    await insert_stream("strm_0000000000000002", status="active", is_active=True, file_size_bytes=1024)

    response = await client.get("/api/v1/stats")
    assert response.status_code == 200
    assert response.json() == {
        "total_jobs": 2,
        "active_jobs": 1,
        "storage_used_bytes": 3072,
        "bandwidth_estimate": 5.0,
        "live_processes": 0,
    }


@pytest.mark.asyncio
async def test_cleanup(client, insert_stream):
    await insert_stream("strm_0000000000000001", age_days=10)
    await insert_stream("strm_0000000000000002", age_days=1)

    response = await client.post("/api/v1/cleanup")
    assert response.status_code == 200
    assert response.json() == {"examined": 1, "deleted": 1, "file_failures": 0}

    remaining = await client.get("/api/v1/streams")
    assert [s["id"] for s in remaining.json()] == ["strm_0000000000000002"]


@pytest.mark.asyncio
async def test_create_stream_rejects_unknown_fields(client):
    response = await client.post("/api/v1/streams", json={"source_url": SOURCE, "codec": "hevc"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_stream_rejects_control_characters(client):
    response = await client.post("/api/v1/streams", json={"source_url": "rtmp://host/live/a\u0000b"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    listing = await client.get("/api/v1/streams")
    assert listing.json() == []
