"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .stores import STORES


DEFAULT_STORE_NAMES: tuple[str, ...] = tuple(store.name for store in STORES)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="StoreShelf", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    store_api_url: HttpUrl = Field(
        default="https://stremthru.13377001.xyz", alias="STORE_API_URL"
    )
    store_api_timeout: float = Field(default=30.0, alias="STORE_API_TIMEOUT", gt=0)

    catalog_cache_ttl: int = Field(default=600, alias="CATALOG_CACHE_TTL", ge=1)
    fetch_page_size: int = Field(default=500, alias="FETCH_PAGE_SIZE", ge=1, le=1_000)
    fetch_max_items: int = Field(default=2_000, alias="FETCH_MAX_ITEMS", ge=1)
    fetch_delay_seconds: float = Field(default=1.0, alias="FETCH_DELAY", ge=0)
    catalog_page_size: int = Field(
        default=100, alias="CATALOG_PAGE_SIZE", ge=1, le=500
    )
    poster_url_template: str = Field(
        default="https://images.metahub.space/poster/small/{id}/img",
        alias="POSTER_URL_TEMPLATE",
    )

    enabled_stores: tuple[str, ...] = Field(
        default=DEFAULT_STORE_NAMES, alias="ENABLED_STORES"
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./storeshelf.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("enabled_stores", mode="before")
    @classmethod
    def _parse_enabled_stores(cls, value: object) -> tuple[str, ...]:
        """Normalise store selections from environment values."""

        if value is None:
            return DEFAULT_STORE_NAMES
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("ENABLED_STORES must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            name = entry.replace("-", "").replace("_", "").replace(" ", "").lower()
            if not name:
                continue
            if name not in DEFAULT_STORE_NAMES:
                raise ValueError("Unknown stores configured")
            if name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            return DEFAULT_STORE_NAMES
        return tuple(cleaned)

    @field_validator("poster_url_template")
    @classmethod
    def _require_id_placeholder(cls, value: str) -> str:
        if "{id}" not in value:
            raise ValueError("POSTER_URL_TEMPLATE must contain an {id} placeholder")
        try:
            value.format(id="tt0000000")
        except (IndexError, KeyError, ValueError):
            raise ValueError(
                "POSTER_URL_TEMPLATE must only use the {id} placeholder"
            ) from None
        return value

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
