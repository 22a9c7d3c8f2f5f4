from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import Self

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from ._validators import _parse_bool
from .bookmarks import BookmarksConfig
from .storage import ObjectStoreConfig

logger = logging.getLogger(__name__)

_ENV_SUFFIXES = {"production": "", "test": "-test", "development": "-dev"}


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    app_env: str = Field(
        default="production", validation_alias=AliasChoices("APP_ENV", "ENVIRONMENT")
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="LOG_FILE")
    use_loguru: bool = Field(default=True, validation_alias="LOG_USE_LOGURU")

    @field_validator("app_env", mode="before")
    @classmethod
    def _validate_app_env(cls, value: Any) -> str:
        env = str(value or "production").lower().strip()
        aliases = {"prod": "production", "dev": "development"}
        env = aliases.get(env, env)
        if env not in _ENV_SUFFIXES:
            msg = f"Invalid environment: {env}. Must be one of {sorted(_ENV_SUFFIXES)}"
            raise ValueError(msg)
        return env

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        log_level = str(value or "INFO").upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if log_level not in valid_levels:
            msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
            raise ValueError(msg)
        return log_level

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Any) -> str | None:
        if value is None:
            return None
        trimmed = str(value).strip()
        if not trimmed:
            return None
        if "\x00" in trimmed:
            msg = "Log file path contains invalid characters"
            raise ValueError(msg)
        return trimmed

    @field_validator("use_loguru", mode="before")
    @classmethod
    def _validate_use_loguru(cls, value: Any) -> bool:
        return _parse_bool(value, default=True)

    @property
    def key_env_suffix(self) -> str:
        return _ENV_SUFFIXES[self.app_env]


@dataclass(frozen=True)
class AppConfig:
    runtime: RuntimeConfig
    bookmarks: BookmarksConfig
    storage: ObjectStoreConfig

    @property
    def key_env_suffix(self) -> str:
        """Suffix applied to environment-scoped object keys."""
        if self.storage.key_env_suffix is not None:
            return self.storage.key_env_suffix
        return self.runtime.key_env_suffix


class Settings(BaseSettings):
    """Application settings loaded automatically from environment variables.

    Uses pydantic-settings for automatic environment variable loading.
    Nested models are populated by matching validation_alias on each field.
    """

    model_config = SettingsConfigDict(
        extra="ignore",
        populate_by_name=True,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    bookmarks: BookmarksConfig = Field(default_factory=BookmarksConfig)
    storage: ObjectStoreConfig = Field(default_factory=ObjectStoreConfig)

    @model_validator(mode="before")
    @classmethod
    def _build_nested_from_env(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Build nested config objects from flat environment variables.

        pydantic-settings passes constructor args as data, but environment variables
        need to be read from os.environ separately for proper nested model population.
        This validator merges both sources, with constructor args taking precedence.
        """
        if not isinstance(data, dict):
            return data

        result = dict(data)
        merged_source = {**dict(os.environ), **data}

        for field_name, field_info in cls.model_fields.items():
            annotation = field_info.annotation
            if not isinstance(annotation, type) or not issubclass(annotation, BaseModel):
                continue

            nested_data: dict[str, Any] = {}
            nested_model: type[BaseModel] = annotation

            for nested_field_name, nested_field in nested_model.model_fields.items():
                env_value = cls._resolve_env_value(merged_source, nested_field)
                if env_value is not None:
                    nested_data[nested_field_name] = env_value

            if nested_data:
                if field_name in result and isinstance(result[field_name], dict):
                    result[field_name] = {**nested_data, **result[field_name]}
                else:
                    result[field_name] = nested_data

        return result

    @staticmethod
    def _resolve_env_value(data: dict[str, Any], field: Any) -> Any | None:
        """Resolve environment variable value for a field using its aliases."""
        aliases: list[str] = []
        alias = field.validation_alias
        if isinstance(alias, AliasChoices):
            for choice in alias.choices:
                if isinstance(choice, str):
                    aliases.append(choice)
        elif isinstance(alias, str):
            aliases.append(alias)
        if field.alias:
            aliases.append(field.alias)

        for name in aliases:
            if name in data:
                return data[name]
        return None

    @model_validator(mode="after")
    def _warn_on_missing_credentials(self) -> Self:
        if not self.bookmarks.bearer_token:
            logger.warning(
                "bookmarks_bearer_token_missing",
                extra={"api_url": self.bookmarks.api_url},
            )
        return self

    def as_app_config(self) -> AppConfig:
        return AppConfig(
            runtime=self.runtime,
            bookmarks=self.bookmarks,
            storage=self.storage,
        )


def load_config(**overrides: Any) -> AppConfig:
    """Load application configuration from environment variables.

    Uses pydantic-settings to automatically load from:
    1. Environment variables
    2. .env file (if present)

    Keyword overrides are section dicts (``bookmarks={...}``) and take
    precedence over the environment, which keeps tests hermetic.

    Returns:
        Immutable AppConfig instance with all configuration sections.

    Raises:
        RuntimeError: If configuration validation fails.
    """
    try:
        settings = Settings(**overrides)
    except ValidationError as exc:
        msg = f"Configuration validation failed: {exc}"
        raise RuntimeError(msg) from exc

    return settings.as_app_config()
