"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_anon_key: str = ""

    # Tables and buckets
    jobs_table: str = "jobs"
    assets_table: str = "assets"
    profiles_table: str = "profiles"
    storage_bucket: str = "espelho-assets"

    # Backend wiring
    store_backend: str = "supabase"  # "supabase" or "memory"
    local_results_dir: str = "/tmp/tryon_results"
    local_public_base_url: str = "http://localhost:8000/results"

    # AI providers
    gemini_api_key: Optional[str] = None
    default_ai_model: str = "gemini-2.5-flash-image-preview"

    # Job processing
    asset_fetch_timeout_seconds: float = 30.0
    transport_max_dimension: int = 800
    transport_jpeg_quality: int = 80
    stale_job_minutes: int = 10

    # Job watcher defaults
    watch_mode: str = "push"  # "push" or "poll"
    watch_poll_interval_seconds: float = 4.0
    watch_timeout_seconds: float = 300.0

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
