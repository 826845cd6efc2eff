"""Configuration loading and validation using Pydantic."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ratingtracker.providers import DataProvider

MESSAGE_KINDS = ("stock_update", "fetch_error")


class FetchConfig(BaseModel):
    max_concurrency: int = Field(default=4, ge=1, le=64)
    failure_threshold: int = Field(default=10, ge=1)
    forensics_ttl_seconds: int = Field(default=48 * 60 * 60, gt=0)
    # Per-provider worker count, overriding the provider default
    concurrency: dict[DataProvider, int] = Field(default_factory=dict)

    @field_validator("concurrency")
    @classmethod
    def concurrency_positive(cls, v):
        for provider, workers in v.items():
            if workers < 1:
                raise ValueError(f"concurrency for {provider.value} must be >= 1")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    app_log: str = "logs/ratingtracker.log"
    alert_log: str = "logs/alerts.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class UserConfig(BaseModel):
    """A notification recipient."""

    name: str
    phone: str
    subscriptions: list[str] = Field(default_factory=list)
    tickers: list[str] = Field(default_factory=list)
    watchlists: list[str] = Field(default_factory=list)

    @field_validator("subscriptions")
    @classmethod
    def known_message_kinds(cls, v):
        unknown = [kind for kind in v if kind not in MESSAGE_KINDS]
        if unknown:
            raise ValueError(f"Unknown message kinds {unknown}. Available: {list(MESSAGE_KINDS)}")
        return v


class AppConfig(BaseModel):
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extractors: dict[str, str] = Field(default_factory=dict)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    watchlists: dict[str, list[str]] = Field(default_factory=dict)
    users: list[UserConfig] = Field(default_factory=list)

    @field_validator("extractors")
    @classmethod
    def extractor_paths(cls, v):
        for provider, path in v.items():
            DataProvider(provider)
            if ":" not in path:
                raise ValueError(f"Extractor for {provider} must be a 'module:ClassName' path, got '{path}'")
        return v

    @model_validator(mode="after")
    def watchlists_must_exist(self):
        for user in self.users:
            missing = [w for w in user.watchlists if w not in self.watchlists]
            if missing:
                raise ValueError(
                    f"User '{user.name}' subscribes to unknown watchlists {missing}. "
                    f"Available: {list(self.watchlists.keys())}"
                )
        return self

    def concurrency_for(self, provider: DataProvider, default: int) -> int:
        """Worker count for a provider: configured override, else the given default."""
        return self.fetch.concurrency.get(provider, min(default, self.fetch.max_concurrency))


class Secrets(BaseSettings):
    """Loaded from .env file automatically."""

    signal_url: str = ""
    signal_sender: str = ""
    fqdn: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


def load_config(config_path: Path = Path("config/settings.yaml")) -> AppConfig:
    """Load and validate application configuration from YAML."""
    with open(config_path) as f:
        raw: Optional[dict] = yaml.safe_load(f)

    # An empty file yields None
    return AppConfig(**(raw or {}))
