"""Supabase-backed job store, asset resolver, result writer and profiles."""

import logging
from typing import Any, Dict, Iterable, List, Optional

from storage3.utils import StorageException
from supabase import AsyncClient

from tryon.jobs.errors import AssetNotFoundError, JobNotFoundError, StorageCollisionError
from tryon.jobs.models import JobRecord, JobStatus
from tryon.jobs.store import ChangeCallback, JobStore, Subscription, serialize_fields
from tryon.storage.assets import AssetRef, AssetResolver, AssetWriter, StoredObject
from tryon.storage.profiles import ProfileStore

logger = logging.getLogger(__name__)


class _ChannelSubscription(Subscription):
    def __init__(self, client: AsyncClient, channel):
        self._client = client
        self._channel = channel

    async def unsubscribe(self) -> None:
        if self._channel is None:
            return
        channel, self._channel = self._channel, None
        await self._client.remove_channel(channel)


class SupabaseJobStore(JobStore):
    """Jobs table access.

    ``transition`` filters on the current status as well as the id, so the
    database applies the write only when the precondition still holds.
    """

    supports_push = True

    def __init__(self, client: AsyncClient, table: str = "jobs", schema: str = "public"):
        self._client = client
        self._table = table
        self._schema = schema

    async def create(self, job: JobRecord) -> JobRecord:
        row = job.to_row()
        response = await self._client.table(self._table).insert(row).execute()
        return JobRecord.from_row(response.data[0]) if response.data else job

    async def get(self, job_id: str) -> JobRecord:
        response = (
            await self._client.table(self._table)
            .select("*")
            .eq("id", job_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise JobNotFoundError(job_id)
        return JobRecord.from_row(response.data[0])

    async def update(self, job_id: str, fields: Dict[str, Any]) -> None:
        response = (
            await self._client.table(self._table)
            .update(serialize_fields(fields))
            .eq("id", job_id)
            .execute()
        )
        if not response.data:
            raise JobNotFoundError(job_id)

    async def transition(
        self,
        job_id: str,
        expected: Iterable[JobStatus],
        fields: Dict[str, Any],
    ) -> Optional[JobRecord]:
        response = (
            await self._client.table(self._table)
            .update(serialize_fields(fields))
            .eq("id", job_id)
            .in_("status", [JobStatus(s).value for s in expected])
            .execute()
        )
        if not response.data:
            return None
        return JobRecord.from_row(response.data[0])

    async def list_for_owner(self, user_id: str, limit: int = 50) -> List[JobRecord]:
        response = (
            await self._client.table(self._table)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [JobRecord.from_row(row) for row in response.data or []]

    async def subscribe(self, job_id: str, callback: ChangeCallback) -> Subscription:
        channel = self._client.channel(f"job-{job_id}")

        def _on_change(payload: Dict[str, Any]) -> None:
            data = payload.get("data") or payload
            record = data.get("record") or data.get("new")
            if record:
                callback(record)

        channel.on_postgres_changes(
            "UPDATE",
            _on_change,
            table=self._table,
            schema=self._schema,
            filter=f"id=eq.{job_id}",
        )
        await channel.subscribe()
        logger.debug("Subscribed to changes for job %s", job_id)
        return _ChannelSubscription(self._client, channel)


class SupabaseAssetResolver(AssetResolver):
    def __init__(self, client: AsyncClient, table: str = "assets"):
        self._client = client
        self._table = table

    async def resolve(self, asset_id: str) -> AssetRef:
        response = (
            await self._client.table(self._table)
            .select("id, public_url, mime_type")
            .eq("id", asset_id)
            .limit(1)
            .execute()
        )
        if not response.data or not response.data[0].get("public_url"):
            raise AssetNotFoundError(asset_id)
        row = response.data[0]
        return AssetRef(
            asset_id=asset_id,
            retrieval_url=row["public_url"],
            content_type=row.get("mime_type") or "image/jpeg",
        )


class SupabaseAssetWriter(AssetWriter):
    """Result uploads into a storage bucket with upsert disabled."""

    def __init__(self, client: AsyncClient, bucket: str):
        self._client = client
        self._bucket = bucket

    async def store(
        self,
        owner_id: str,
        path_hint: str,
        data: bytes,
        content_type: str,
    ) -> StoredObject:
        if not path_hint.startswith(f"{owner_id}/"):
            path_hint = f"{owner_id}/{path_hint}"
        try:
            response = await self._client.storage.from_(self._bucket).upload(
                path_hint,
                data,
                {"content-type": content_type, "cache-control": "3600", "upsert": "false"},
            )
        except StorageException as exc:
            if _is_duplicate(exc):
                raise StorageCollisionError(path_hint) from exc
            raise
        path = getattr(response, "path", None) or path_hint
        return StoredObject(path=path)

    async def public_url(self, path: str) -> str:
        return await self._client.storage.from_(self._bucket).get_public_url(path)


class SupabaseProfileStore(ProfileStore):
    def __init__(self, client: AsyncClient, table: str = "profiles"):
        self._client = client
        self._table = table

    async def get_preferred_model(self, user_id: str) -> Optional[str]:
        response = (
            await self._client.table(self._table)
            .select("ai_model, preferences")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        preferences = row.get("preferences") or {}
        return row.get("ai_model") or preferences.get("aiModel")


def _is_duplicate(exc: StorageException) -> bool:
    detail = exc.args[0] if exc.args else {}
    if isinstance(detail, dict):
        status = str(detail.get("statusCode") or detail.get("status") or "")
        text = f"{detail.get('error', '')} {detail.get('message', '')}"
    else:
        status = str(getattr(exc, "status", "") or "")
        text = str(exc)
    return status == "409" or "duplicate" in text.lower() or "already exists" in text.lower()
