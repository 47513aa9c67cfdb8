"""Asset resolution, download and result-writing interfaces."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from tryon.jobs.errors import AssetFetchError, AssetNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class AssetRef:
    """Where an uploaded asset can be downloaded from."""
    asset_id: str
    retrieval_url: str
    content_type: str = "image/jpeg"


@dataclass
class StoredObject:
    path: str


class AssetResolver(ABC):
    @abstractmethod
    async def resolve(self, asset_id: str) -> AssetRef:
        """Return the asset's retrieval URL or raise AssetNotFoundError."""
        ...


class AssetWriter(ABC):
    """Output store for result images. Must never overwrite an existing path."""

    @abstractmethod
    async def store(
        self,
        owner_id: str,
        path_hint: str,
        data: bytes,
        content_type: str,
    ) -> StoredObject:
        """Write ``data`` under ``path_hint``; raise StorageCollisionError if taken."""
        ...

    @abstractmethod
    async def public_url(self, path: str) -> str:
        ...


class InMemoryAssetCatalog(AssetResolver):
    """Asset ids registered in-process, for local mode and tests."""

    def __init__(self, assets: Optional[Dict[str, AssetRef]] = None):
        self._assets: Dict[str, AssetRef] = dict(assets or {})

    def register(self, asset_id: str, retrieval_url: str, content_type: str = "image/jpeg") -> AssetRef:
        ref = AssetRef(asset_id=asset_id, retrieval_url=retrieval_url, content_type=content_type)
        self._assets[asset_id] = ref
        return ref

    async def resolve(self, asset_id: str) -> AssetRef:
        ref = self._assets.get(asset_id)
        if ref is None:
            raise AssetNotFoundError(asset_id)
        return ref


class AssetFetcher:
    """Downloads asset bytes with a bounded per-request timeout.

    Any timeout, connection problem or non-2xx answer is raised as
    AssetFetchError. There is no retry here: a failed download fails the job.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout_seconds
        self._transport = transport

    async def fetch(self, url: str, label: str = "asset") -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.content
        except httpx.TimeoutException:
            raise AssetFetchError(label, f"timed out after {self._timeout:g}s")
        except httpx.HTTPStatusError as exc:
            raise AssetFetchError(label, f"HTTP {exc.response.status_code}")
        except httpx.RequestError as exc:
            raise AssetFetchError(label, f"{type(exc).__name__}: {exc}")

        if not data:
            raise AssetFetchError(label, "empty response body")
        logger.debug("Fetched %s image (%d bytes) from %s", label, len(data), url)
        return data
