"""Pydantic configuration models with validation."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import (
    AliasChoices,
    AliasPath,
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["dev", "test", "prod"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LogFormat = Literal["json", "console"]


class RelayConfig(BaseModel):
    """Streaming relay settings (YAML section: relay.*)."""

    timeout_seconds: float = Field(
        default=20.0,
        description="Upstream timeout for media fetches (seconds).",
    )
    verify_tls: bool = Field(
        default=False,
        description=(
            "Verify media host certificates. Off by default: CDN edges often "
            "serve freshly rotated chains the local trust store lacks."
        ),
    )
    constrained_agent_patterns: list[str] = Field(
        default=["MicroMessenger", "miniProgram"],
        description="User-Agent substrings that mark restricted in-app browsers.",
    )
    constrained_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 13_2_3 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/13.0.3 "
            "Mobile/15E148 Safari/604.1"
        ),
        description="User-Agent sent upstream on behalf of restricted clients.",
    )
    chunk_size: int = Field(
        default=65536,
        description="Body copy chunk size in bytes.",
    )

    @field_validator("timeout_seconds")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("relay.timeout_seconds must be > 0")
        return v

    @field_validator("chunk_size")
    @classmethod
    def _validate_chunk_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("relay.chunk_size must be > 0")
        return v


class DouyinConfig(BaseModel):
    """Douyin CDN retry policy (YAML section: douyin.*)."""

    retry_max_attempts: int = Field(
        default=30,
        description="Attempt ceiling for re-resolving off-allow-list CDN hosts.",
    )
    retry_backoff_min_seconds: float = Field(
        default=0.1,
        description="Lower bound of the random pause between attempts.",
    )
    retry_backoff_max_seconds: float = Field(
        default=0.3,
        description="Upper bound of the random pause between attempts.",
    )

    @field_validator("retry_max_attempts")
    @classmethod
    def _validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("douyin.retry_max_attempts must be >= 1")
        return v

    @model_validator(mode="after")
    def _validate_backoff(self) -> "DouyinConfig":
        if not 0 <= self.retry_backoff_min_seconds <= self.retry_backoff_max_seconds:
            raise ValueError(
                "require 0 <= retry_backoff_min_seconds <= retry_backoff_max_seconds"
            )
        return self


class AppConfig(BaseModel):
    """
    Canonical application configuration (validated, final).

    Note:
    - YAML is expected to be sectioned (http/logging/relay/douyin).
    - Environment variables are handled by EnvOverrides(BaseSettings) to allow strict
      precedence control (defaults < YAML < ENV < CLI) in load.py.
    """

    # General
    app_name: str = Field(default="parse-video", description="Application name.")
    environment: Environment = Field(
        default="dev",
        description="Runtime environment (affects defaults like log format).",
    )

    # HTTP (YAML section: http.*)
    http_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices(
            "http_timeout_seconds",
            AliasPath("http", "timeout_seconds"),
        ),
        description="Timeout for platform page and API requests (seconds).",
    )
    http_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 "
            "Mobile/15E148 Safari/604.1 Edg/122.0.0.0"
        ),
        validation_alias=AliasChoices(
            "http_user_agent",
            AliasPath("http", "user_agent"),
        ),
        description="User-Agent presented to the video platforms.",
    )

    # Logging (YAML section: logging.*)
    log_level: LogLevel = Field(
        default="INFO",
        validation_alias=AliasChoices(
            "log_level",
            AliasPath("logging", "level"),
        ),
        description="Log level.",
    )
    log_format: Optional[LogFormat] = Field(
        default=None,
        validation_alias=AliasChoices(
            "log_format",
            AliasPath("logging", "format"),
        ),
        description=(
            "Log renderer format (console/json). If unset, derived from environment."
        ),
    )

    relay: RelayConfig = Field(default_factory=RelayConfig)
    douyin: DouyinConfig = Field(default_factory=DouyinConfig)

    @field_validator("http_timeout_seconds")
    @classmethod
    def _validate_http_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("http_timeout_seconds must be > 0")
        return v

    @model_validator(mode="after")
    def _derive_defaults(self) -> "AppConfig":
        # Default log format: console in dev/test, json in prod.
        if self.log_format is None:
            self.log_format = "json" if self.environment == "prod" else "console"
        return self

    def to_sectioned_dict(self) -> dict[str, Any]:
        """
        Dump configuration in the sectioned shape used by config.yaml/docs.
        """
        return {
            "app_name": self.app_name,
            "environment": self.environment,
            "http": {
                "timeout_seconds": self.http_timeout_seconds,
                "user_agent": self.http_user_agent,
            },
            "logging": {"level": self.log_level, "format": self.log_format},
            "relay": self.relay.model_dump(),
            "douyin": self.douyin.model_dump(),
        }


class EnvOverrides(BaseSettings):
    """
    Environment-variable overrides (all optional).

    load.py creates EnvOverrides() to read PARSEVIDEO_* variables,
    converts to dict of set values, merges into YAML/defaults,
    then validates AppConfig.

    Supported env var examples (flat, explicit):
    - PARSEVIDEO_HTTP_TIMEOUT_SECONDS
    - PARSEVIDEO_LOG_LEVEL
    - PARSEVIDEO_RELAY_VERIFY_TLS
    - PARSEVIDEO_DOUYIN_RETRY_MAX_ATTEMPTS
    """

    model_config = SettingsConfigDict(
        env_prefix="PARSEVIDEO_",
        extra="ignore",
        case_sensitive=False,
    )

    app_name: Optional[str] = None
    environment: Optional[Environment] = None

    http_timeout_seconds: Optional[float] = None
    http_user_agent: Optional[str] = None

    log_level: Optional[LogLevel] = None
    log_format: Optional[LogFormat] = None

    relay_timeout_seconds: Optional[float] = None
    relay_verify_tls: Optional[bool] = None

    douyin_retry_max_attempts: Optional[int] = None

    def to_update_dict(self) -> dict[str, Any]:
        """
        Return only values that were actually provided (non-None), for merging.
        """
        return self.model_dump(exclude_none=True)
