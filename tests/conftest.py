"""Shared fixtures: in-memory stores, a fake generation backend and image bytes."""

import io
from typing import List, Optional

import httpx
import pytest
from PIL import Image

from tryon.jobs.dispatcher import TransformationDispatcher
from tryon.jobs.helpers import create_job_payload
from tryon.jobs.store import InMemoryJobStore
from tryon.processing.images import EncodedImage
from tryon.providers.base import GenerationProvider
from tryon.providers.registry import ProviderRegistry
from tryon.storage.assets import AssetFetcher, InMemoryAssetCatalog
from tryon.storage.local_results import LocalAssetWriter
from tryon.storage.profiles import InMemoryProfileStore

ASSET_HOST = "http://assets.test"
FIXED_EPOCH = 1700000000.0


def make_jpeg(width: int = 64, height: int = 48, color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="JPEG")
    return buf.getvalue()


class FakeGenerationProvider(GenerationProvider):
    """Records every call and answers with a canned result or error."""

    name = "FakeGen"
    family = "gemini"

    def __init__(self, result: Optional[object] = None, error: Optional[Exception] = None):
        self.result = result if result is not None else EncodedImage(b"\xff\xd8generated", "image/jpeg")
        self.error = error
        self.calls: List[dict] = []

    async def generate_image(self, subject_image, garment_image, prompt, model):
        self.calls.append({
            "subject": subject_image,
            "garment": garment_image,
            "prompt": prompt,
            "model": model,
        })
        if self.error is not None:
            raise self.error
        return self.result


class CountingAssetServer:
    """httpx handler serving JPEG bytes for any path, with per-path overrides."""

    def __init__(self):
        self.requests: List[str] = []
        self.overrides = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if request.url.path in self.overrides:
            return self.overrides[request.url.path]
        return httpx.Response(200, content=make_jpeg(), headers={"content-type": "image/jpeg"})


class CountingWriter(LocalAssetWriter):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.store_calls = 0

    async def store(self, owner_id, path_hint, data, content_type):
        self.store_calls += 1
        return await super().store(owner_id, path_hint, data, content_type)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def catalog():
    assets = InMemoryAssetCatalog()
    assets.register("product-1", f"{ASSET_HOST}/product-1.jpg")
    assets.register("model-1", f"{ASSET_HOST}/model-1.jpg")
    return assets


@pytest.fixture
def asset_server():
    return CountingAssetServer()


@pytest.fixture
def fetcher(asset_server):
    return AssetFetcher(timeout_seconds=5.0, transport=httpx.MockTransport(asset_server))


@pytest.fixture
def writer(tmp_path):
    return CountingWriter(str(tmp_path / "results"), "http://cdn.test/results")


@pytest.fixture
def profiles():
    return InMemoryProfileStore()


@pytest.fixture
def provider():
    return FakeGenerationProvider()


@pytest.fixture
def registry(provider):
    return ProviderRegistry(provider)


@pytest.fixture
def dispatcher(store, catalog, fetcher, writer, registry, profiles):
    return TransformationDispatcher(
        store=store,
        resolver=catalog,
        fetcher=fetcher,
        writer=writer,
        providers=registry,
        profiles=profiles,
        clock=lambda: FIXED_EPOCH,
    )


@pytest.fixture
def new_job():
    def _make(user_id: str = "user-1", **kwargs):
        kwargs.setdefault("product_id", "product-1")
        kwargs.setdefault("model_id", "model-1")
        return create_job_payload(user_id=user_id, **kwargs)

    return _make
