from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.0
    openai_timeout_seconds: float = 60.0

    prompt_dir: Path | None = None
    prompt_max_chars: int = 60000

    max_upload_bytes: int = 5 * 1024 * 1024
    upload_scratch_path: Path = Path(".upload_scratch")

    upload_quota_limit: int = 3
    upload_quota_window_seconds: int = 60 * 60 * 24
    quota_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    trust_forwarded_for: bool = False

    cors_allow_origins: list[str] = ["*"]
    export_filename: str = "materials.xlsx"
    export_sheet_title: str = "Materials"


settings = Settings()
