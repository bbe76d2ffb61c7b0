"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    database_url: str | None = Field("sqlite+aiosqlite:///./data/notex.db", alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")
    log_format: Literal["json", "text"] = Field("json", alias="LOG_FORMAT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    port: int = Field(8080, alias="PORT")
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")
    sse_keepalive_seconds: float = Field(25.0, alias="SSE_KEEPALIVE_SECONDS", gt=0)
    sse_queue_maxsize: int = Field(100, alias="SSE_QUEUE_MAXSIZE", ge=1)
    sse_idle_timeout_seconds: float = Field(
        300.0,
        alias="SSE_IDLE_TIMEOUT_SECONDS",
        ge=0,
        description="Evict subscribers that stop reading for this long; 0 disables eviction.",
    )
    api_base_url: str = Field("http://localhost:8080", alias="NOTEX_API_BASE")

    @staticmethod
    def _parse_csv_list(value: str | list[str] | None) -> list[str]:
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value):
        if isinstance(value, str):
            return value.strip().upper() or "INFO"
        return value

    @property
    def cors_origins(self) -> list[str]:
        return self._parse_csv_list(self.cors_allow_origins) or ["*"]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
