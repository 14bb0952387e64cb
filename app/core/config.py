# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # GitHub contents API
    github_token: str
    github_owner: str
    github_repo: str
    github_branch: str = "main"
    github_api_url: str = "https://api.github.com"
    github_timeout: float = 30.0  # seconds

    # Uploads
    public_base_url: str | None = None
    upload_prefix: str = "uploads"
    identifier_length: int = Field(default=6, ge=1)
    max_upload_bytes: int = 100 * 1024 * 1024
    cache_max_age: int = 3600

    # Server
    host: str = "0.0.0.0"
    http_port: int = 3000
    https_port: int = 3443
    ssl_key_path: str = "certs/privkey.pem"
    ssl_cert_path: str = "certs/fullchain.pem"
    require_tls: bool = False

    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
        frozen=True,
    )

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // (1024 * 1024)


@lru_cache
def get_settings() -> Settings:
    return Settings()
