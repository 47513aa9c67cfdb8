"""Wiring of the job core for one process.

The process entrypoint builds a Services object from Settings and owns its
lifecycle; API handlers reach it through ``get_services``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import HTTPException, Request

from tryon.config import Settings
from tryon.jobs.dispatcher import TransformationDispatcher
from tryon.jobs.in_process_queue import InProcessQueue
from tryon.jobs.store import InMemoryJobStore, JobStore
from tryon.jobs.trigger import JobTrigger
from tryon.providers.gemini import GeminiProvider
from tryon.providers.registry import ProviderRegistry
from tryon.storage.assets import AssetFetcher, InMemoryAssetCatalog
from tryon.storage.local_results import LocalAssetWriter
from tryon.storage.profiles import InMemoryProfileStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: JobStore
    providers: ProviderRegistry
    dispatcher: TransformationDispatcher
    trigger: JobTrigger
    auth_client: Optional[Any] = None


async def build_services(settings: Settings) -> Services:
    providers = ProviderRegistry(
        GeminiProvider(api_key=settings.gemini_api_key),
        default_model=settings.default_ai_model,
    )
    fetcher = AssetFetcher(timeout_seconds=settings.asset_fetch_timeout_seconds)
    auth_client = None

    if settings.store_backend == "memory":
        store = InMemoryJobStore()
        resolver = InMemoryAssetCatalog()
        writer = LocalAssetWriter(settings.local_results_dir, settings.local_public_base_url)
        profiles = InMemoryProfileStore()
    elif settings.store_backend == "supabase":
        from tryon.db.supabase_client import create_anon_client, create_service_client
        from tryon.db.supabase_store import (
            SupabaseAssetResolver,
            SupabaseAssetWriter,
            SupabaseJobStore,
            SupabaseProfileStore,
        )

        client = await create_service_client(settings)
        store = SupabaseJobStore(client, table=settings.jobs_table)
        resolver = SupabaseAssetResolver(client, table=settings.assets_table)
        writer = SupabaseAssetWriter(client, bucket=settings.storage_bucket)
        profiles = SupabaseProfileStore(client, table=settings.profiles_table)
        if settings.supabase_anon_key:
            auth_client = await create_anon_client(settings)
    else:
        raise ValueError(f"Unknown store backend '{settings.store_backend}'")

    dispatcher = TransformationDispatcher(
        store=store,
        resolver=resolver,
        fetcher=fetcher,
        writer=writer,
        providers=providers,
        profiles=profiles,
        transport_max_dimension=settings.transport_max_dimension,
        transport_jpeg_quality=settings.transport_jpeg_quality,
    )
    return Services(
        settings=settings,
        store=store,
        providers=providers,
        dispatcher=dispatcher,
        trigger=InProcessQueue(dispatcher),
        auth_client=auth_client,
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Job services not initialized")
    return services
