"""Configuration management for the diary sync service."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel


DEFAULT_CONFIG_DIR = Path.home() / ".diary-sync"


class Config(BaseModel):
    """Application configuration."""

    firebase_credentials: Path | None = None
    firebase_storage_bucket: str | None = None
    profiles_collection: str = "users"
    profile_config_field: str = "notionConfig"
    image_prefix: str = "diary_images"
    notion_api_base: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    notion_timeout: float = 60.0
    page_size: int = 20
    default_author: str = "Partner"
    web_host: str = "127.0.0.1"
    web_port: int = 8080
    cors_origins: str = "*"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()] or ["*"]


def load_config(**overrides: object) -> Config:
    """Load config from environment variables, .env file, and overrides.

    Resolution order (highest priority first):
    1. Explicit overrides (CLI flags)
    2. Environment variables
    3. .env file
    4. Defaults
    """
    load_dotenv()
    load_dotenv(DEFAULT_CONFIG_DIR / ".env")

    kwargs: dict[str, object] = {}

    credentials = overrides.get("firebase_credentials") or os.getenv(
        "DIARY_SYNC_FIREBASE_CREDENTIALS"
    )
    if credentials:
        kwargs["firebase_credentials"] = Path(str(credentials))

    bucket = overrides.get("firebase_storage_bucket") or os.getenv(
        "DIARY_SYNC_FIREBASE_STORAGE_BUCKET"
    )
    if bucket:
        kwargs["firebase_storage_bucket"] = bucket

    # Plain string settings
    for field, env_name in (
        ("profiles_collection", "DIARY_SYNC_PROFILES_COLLECTION"),
        ("profile_config_field", "DIARY_SYNC_PROFILE_CONFIG_FIELD"),
        ("image_prefix", "DIARY_SYNC_IMAGE_PREFIX"),
        ("notion_api_base", "DIARY_SYNC_NOTION_API_BASE"),
        ("notion_version", "DIARY_SYNC_NOTION_VERSION"),
        ("default_author", "DIARY_SYNC_DEFAULT_AUTHOR"),
        ("web_host", "DIARY_SYNC_WEB_HOST"),
        ("cors_origins", "DIARY_SYNC_CORS_ORIGINS"),
    ):
        value = overrides.get(field) or os.getenv(env_name)
        if value:
            kwargs[field] = value

    timeout = overrides.get("notion_timeout") or os.getenv("DIARY_SYNC_NOTION_TIMEOUT")
    if timeout is not None:
        kwargs["notion_timeout"] = float(timeout)

    page_size = overrides.get("page_size") or os.getenv("DIARY_SYNC_PAGE_SIZE")
    if page_size is not None:
        kwargs["page_size"] = int(page_size)

    port = overrides.get("web_port") or os.getenv("DIARY_SYNC_WEB_PORT")
    if port is not None:
        kwargs["web_port"] = int(port)

    return Config(**kwargs)
