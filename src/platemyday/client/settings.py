"""Client SDK settings (PLATEMYDAY_* environment variables)."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLATEMYDAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = "http://localhost:8000"
    anonymous_id_path: Path = Path("~/.platemyday/anonymous_id")
    access_token: str | None = None
    request_timeout_seconds: float = 120.0
