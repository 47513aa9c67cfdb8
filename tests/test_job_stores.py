from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from storage3.utils import StorageException

from tryon.db.supabase_store import (
    SupabaseAssetResolver,
    SupabaseAssetWriter,
    SupabaseJobStore,
    SupabaseProfileStore,
)
from tryon.jobs.errors import AssetNotFoundError, JobNotFoundError, StorageCollisionError
from tryon.jobs.models import JobStatus


@pytest.mark.anyio
async def test_in_memory_transition_requires_expected_status(store, new_job):
    job = await store.create(new_job())

    claimed = await store.transition(job.id, {JobStatus.QUEUED}, {"status": JobStatus.PROCESSING})
    again = await store.transition(job.id, {JobStatus.QUEUED}, {"status": JobStatus.PROCESSING})

    assert claimed.status is JobStatus.PROCESSING
    assert again is None
    assert (await store.get(job.id)).status is JobStatus.PROCESSING


@pytest.mark.anyio
async def test_in_memory_missing_job(store):
    with pytest.raises(JobNotFoundError):
        await store.get("nope")
    with pytest.raises(JobNotFoundError):
        await store.update("nope", {"is_favorite": True})


@pytest.mark.anyio
async def test_in_memory_listeners_receive_rows(store, new_job):
    job = await store.create(new_job())
    rows = []

    subscription = await store.subscribe(job.id, rows.append)
    await store.update(job.id, {"status": JobStatus.PROCESSING})
    await subscription.unsubscribe()
    await subscription.unsubscribe()
    await store.update(job.id, {"status": JobStatus.COMPLETED})

    assert [r["status"] for r in rows] == ["processing"]
    assert rows[0]["id"] == job.id
    assert store.listener_count(job.id) == 0


@pytest.mark.anyio
async def test_in_memory_list_for_owner_newest_first(store, new_job):
    first = await store.create(new_job())
    second = await store.create(new_job().model_copy(update={"created_at": first.created_at.replace(year=2100)}))
    await store.create(new_job(user_id="someone-else"))

    jobs = await store.list_for_owner("user-1")

    assert [j.id for j in jobs] == [second.id, first.id]
    assert len(await store.list_for_owner("user-1", limit=1)) == 1


def _query(data):
    """A fluent query builder mock whose execute() resolves to ``data``."""
    builder = MagicMock()
    for method in ("select", "insert", "update", "eq", "in_", "order", "limit"):
        getattr(builder, method).return_value = builder
    builder.execute = AsyncMock(return_value=SimpleNamespace(data=data))
    client = MagicMock()
    client.table.return_value = builder
    return client, builder


@pytest.mark.anyio
async def test_supabase_transition_filters_on_status(new_job):
    row = new_job().to_row()
    row["status"] = "processing"
    client, builder = _query([row])

    updated = await SupabaseJobStore(client).transition(
        row["id"], [JobStatus.QUEUED, JobStatus.PENDING], {"status": JobStatus.PROCESSING}
    )

    assert updated.status is JobStatus.PROCESSING
    client.table.assert_called_with("jobs")
    builder.update.assert_called_once_with({"status": "processing"})
    builder.eq.assert_called_once_with("id", row["id"])
    statuses = builder.in_.call_args.args[1]
    assert sorted(statuses) == ["pending", "queued"]


@pytest.mark.anyio
async def test_supabase_transition_lost_returns_none():
    client, _ = _query([])
    assert await SupabaseJobStore(client).transition("j1", [JobStatus.QUEUED], {"status": "processing"}) is None


@pytest.mark.anyio
async def test_supabase_get_missing_raises():
    client, _ = _query([])
    with pytest.raises(JobNotFoundError):
        await SupabaseJobStore(client).get("j1")


@pytest.mark.anyio
async def test_supabase_subscribe_forwards_updated_record(new_job):
    row = new_job().to_row()
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client = MagicMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()
    received = []

    subscription = await SupabaseJobStore(client).subscribe(row["id"], received.append)

    handler = channel.on_postgres_changes.call_args.args[1]
    assert channel.on_postgres_changes.call_args.kwargs["filter"] == f"id=eq.{row['id']}"
    handler({"data": {"record": row, "type": "UPDATE"}})
    assert received == [row]

    await subscription.unsubscribe()
    await subscription.unsubscribe()
    client.remove_channel.assert_awaited_once_with(channel)


@pytest.mark.anyio
async def test_supabase_resolver():
    client, _ = _query([{"id": "a1", "public_url": "http://cdn.test/a1.jpg", "mime_type": None}])
    ref = await SupabaseAssetResolver(client).resolve("a1")
    assert ref.retrieval_url == "http://cdn.test/a1.jpg"
    assert ref.content_type == "image/jpeg"

    client, _ = _query([])
    with pytest.raises(AssetNotFoundError):
        await SupabaseAssetResolver(client).resolve("a1")


@pytest.mark.anyio
async def test_supabase_writer_never_upserts():
    bucket = MagicMock()
    bucket.upload = AsyncMock(return_value=SimpleNamespace(path="user-1/results/1_result.jpg"))
    bucket.get_public_url = AsyncMock(return_value="http://cdn.test/user-1/results/1_result.jpg")
    client = MagicMock()
    client.storage.from_.return_value = bucket
    writer = SupabaseAssetWriter(client, "espelho-assets")

    stored = await writer.store("user-1", "user-1/results/1_result.jpg", b"img", "image/jpeg")

    options = bucket.upload.call_args.args[2]
    assert options["upsert"] == "false"
    assert stored.path == "user-1/results/1_result.jpg"
    assert await writer.public_url(stored.path) == "http://cdn.test/user-1/results/1_result.jpg"


@pytest.mark.anyio
async def test_supabase_writer_maps_duplicate_to_collision():
    bucket = MagicMock()
    bucket.upload = AsyncMock(
        side_effect=StorageException({"statusCode": 409, "error": "Duplicate", "message": "The resource already exists"})
    )
    client = MagicMock()
    client.storage.from_.return_value = bucket

    with pytest.raises(StorageCollisionError):
        await SupabaseAssetWriter(client, "espelho-assets").store("user-1", "results/1.jpg", b"img", "image/jpeg")


@pytest.mark.anyio
async def test_supabase_profile_preference_fallback():
    client, _ = _query([{"ai_model": None, "preferences": {"aiModel": "gemini-2.0-flash-exp"}}])
    assert await SupabaseProfileStore(client).get_preferred_model("user-1") == "gemini-2.0-flash-exp"

    client, _ = _query([])
    assert await SupabaseProfileStore(client).get_preferred_model("user-1") is None
