import os
import threading
import time
from datetime import UTC, datetime, timedelta

from trailcam.models.stream import STATUS_LIVE
from trailcam.services.chunk_service import ChunkService


def _place_chunk(store, stream_id, index, payload=b"segment", mtime=None):
    path = store.chunk_path(stream_id, index)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def test_upload_and_fetch_chunk(client, live_stream, upload_chunk, publisher):
    response = upload_chunk(live_stream.slug, 0, payload=b"init-segment")
    assert response.status_code == 200
    assert response.json() == {"success": True, "index": 0, "size": len(b"init-segment")}

    response = client.get(f"/live-cam/{live_stream.slug}/chunk/0")
    assert response.status_code == 200
    assert response.content == b"init-segment"
    assert response.headers["content-type"] == "video/webm"
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.headers["pragma"] == "no-cache"
    assert response.headers["expires"] == "0"

    assert publisher.named("new-chunk") == [{"stream_id": live_stream.id, "index": 0}]
    assert publisher.events[0][0] == f"stream.{live_stream.id}"


def test_upload_leaves_no_partial_files(live_stream, upload_chunk, store):
    upload_chunk(live_stream.slug, 0)
    names = [p.name for p in store.stream_dir(live_stream.id).iterdir()]
    assert names == ["chunk_0.webm"]


def test_upload_requires_authentication(live_stream, upload_chunk):
    response = upload_chunk(live_stream.slug, 0, headers={})
    assert response.status_code == 401


def test_upload_rejects_invalid_token(live_stream, upload_chunk):
    response = upload_chunk(live_stream.slug, 0, headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_upload_from_non_owner_forbidden(live_stream, upload_chunk, other_headers, store):
    response = upload_chunk(live_stream.slug, 0, headers=other_headers)
    assert response.status_code == 403
    assert store.stat(live_stream.id, 0) is None


def test_upload_to_offline_stream_rejected(offline_stream, upload_chunk):
    response = upload_chunk(offline_stream.slug, 0)
    assert response.status_code == 400
    assert response.json()["detail"] == "Stream is not live"


def test_upload_negative_index_rejected(live_stream, upload_chunk):
    assert upload_chunk(live_stream.slug, -1).status_code == 422


def test_upload_empty_chunk_rejected(live_stream, upload_chunk):
    assert upload_chunk(live_stream.slug, 3, payload=b"").status_code == 422


def test_upload_non_integer_timestamp_rejected(client, live_stream, owner_headers):
    response = client.post(
        f"/live-cam/{live_stream.slug}/upload-chunk",
        data={"index": "0", "timestamp": "yesterday"},
        files={"chunk": ("chunk_0.webm", b"data", "video/webm")},
        headers=owner_headers,
    )
    assert response.status_code == 422


def test_upload_to_unknown_stream(upload_chunk):
    assert upload_chunk("no-such-stream", 0).status_code == 404


def test_chunk_of_offline_stream_is_not_served(client, offline_stream, store):
    _place_chunk(store, offline_stream.id, 1)
    response = client.get(f"/live-cam/{offline_stream.slug}/chunk/1")
    assert response.status_code == 404


def test_missing_chunk_returns_404(client, live_stream):
    response = client.get(f"/live-cam/{live_stream.slug}/chunk/7")
    assert response.status_code == 404
    assert response.json()["detail"] == "Chunk not found"


def test_chunk_from_previous_session_is_deleted(client, live_stream, store):
    before_session = live_stream.started_at.timestamp() - 60
    path = _place_chunk(store, live_stream.id, 4, mtime=before_session)

    response = client.get(f"/live-cam/{live_stream.slug}/chunk/4")

    assert response.status_code == 404
    assert response.json()["detail"] == "Chunk from previous session"
    assert not path.exists()


def test_chunk_older_than_ceiling_rejected(client, stream_repo, store):
    stream = stream_repo.add(
        title="Long Session",
        broadcaster_id="broadcaster-1",
        status=STATUS_LIVE,
        started_at=datetime.now(UTC) - timedelta(hours=1),
    )
    five_minutes_ago = time.time() - 300
    _place_chunk(store, stream.id, 0, payload=b"init", mtime=five_minutes_ago)
    _place_chunk(store, stream.id, 9, mtime=five_minutes_ago)

    response = client.get(f"/live-cam/{stream.slug}/chunk/9")
    assert response.status_code == 404
    assert response.json()["detail"] == "Chunk too old"

    # The initialization segment is exempt from the age ceiling
    response = client.get(f"/live-cam/{stream.slug}/chunk/0")
    assert response.status_code == 200
    assert response.content == b"init"


def test_eviction_keeps_window_and_init_segment(live_stream, upload_chunk, store, settings):
    window = settings.chunk_window
    for index in range(window + 2):
        assert upload_chunk(live_stream.slug, index).status_code == 200

    on_disk = store.indices(live_stream.id)
    assert 0 in on_disk
    assert 1 not in on_disk
    assert on_disk == [0] + list(range(2, window + 2))


def test_eviction_not_triggered_below_window(live_stream, upload_chunk, store, settings):
    for index in range(settings.chunk_window):
        upload_chunk(live_stream.slug, index)
    assert store.indices(live_stream.id) == list(range(settings.chunk_window))


def test_status_reports_latest_and_oldest(client, live_stream, upload_chunk, stream_repo):
    for index in (0, 1, 2):
        upload_chunk(live_stream.slug, index)

    body = client.get(f"/live-cam/{live_stream.slug}/status").json()

    assert body["is_live"] is True
    assert body["status"] == "live"
    assert body["latest_chunk_index"] == 2
    assert body["oldest_chunk_index"] == 1
    assert stream_repo.rows[live_stream.id].latest_chunk_index == 2


def test_status_with_only_init_segment(client, live_stream, upload_chunk):
    upload_chunk(live_stream.slug, 0)
    body = client.get(f"/live-cam/{live_stream.slug}/status").json()
    assert body["latest_chunk_index"] == 0
    assert body["oldest_chunk_index"] == 0


def test_status_ignores_segments_from_previous_session(client, live_stream, store):
    _place_chunk(store, live_stream.id, 30, mtime=live_stream.started_at.timestamp() - 120)
    body = client.get(f"/live-cam/{live_stream.slug}/status").json()
    assert body["latest_chunk_index"] == -1
    assert body["oldest_chunk_index"] == -1


def test_status_of_offline_stream(client, offline_stream, store):
    _place_chunk(store, offline_stream.id, 3)
    body = client.get(f"/live-cam/{offline_stream.slug}/status").json()
    assert body["is_live"] is False
    assert body["status"] == "offline"
    assert body["latest_chunk_index"] == -1
    assert body["oldest_chunk_index"] == -1


def test_write_failure_returns_500(live_stream, upload_chunk, store, monkeypatch, stream_repo):
    async def broken_write(stream_id, index, source):
        raise OSError("No space left on device")

    monkeypatch.setattr(store, "write", broken_write)

    response = upload_chunk(live_stream.slug, 4)

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to upload chunk"
    assert stream_repo.rows[live_stream.id].latest_chunk_index == -1


def test_broker_outage_does_not_fail_upload(live_stream, upload_chunk, publisher, monkeypatch):
    async def broken_publish(channel, event, payload):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(publisher, "publish", broken_publish)

    assert upload_chunk(live_stream.slug, 0).status_code == 200


async def test_chunk_lookup_runs_off_the_event_loop(
    live_stream, store, stream_repo, publisher, monkeypatch
):
    _place_chunk(store, live_stream.id, 2)
    loop_thread = threading.get_ident()
    stat_threads = []
    real_stat = store.stat

    def recording_stat(stream_id, index):
        stat_threads.append(threading.get_ident())
        return real_stat(stream_id, index)

    monkeypatch.setattr(store, "stat", recording_stat)
    service = ChunkService(stream_repo, store, publisher)

    path = await service.resolve(live_stream, 2)

    assert path == store.chunk_path(live_stream.id, 2)
    assert stat_threads and loop_thread not in stat_threads
