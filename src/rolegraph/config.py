"""Configuration contract for rolegraph.

Pydantic-validated settings shared by the builder, the cache and the
aggregator. Direct os.environ/os.getenv usage is only allowed in
``load_config_from_env()``; everything else receives a RoleGraphConfig.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class RoleGraphConfig(BaseModel):
    """Settings for role map building, caching and logging.

    Path limits bound the cost of simple-path enumeration in deep or
    densely connected hierarchies. When a limit is hit the enumeration is
    truncated and a warning is logged, unless ``strict_path_limits`` is
    set, in which case PathLimitExceededError is raised.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Cache
    cache_enabled: bool = Field(
        default=True,
        description="Store built role maps in the tagged cache store",
    )
    cache_prefix: str = Field(
        default="rolegraph:role_map",
        description="Cache key prefix; the root container id is appended",
    )
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for a shared cache store (e.g., redis://localhost:6379/0)",
    )

    # Path enumeration bounds
    max_path_length: int = Field(
        default=32,
        description="Maximum number of containers in one enumerated path",
    )
    max_paths_per_pair: int = Field(
        default=1000,
        description="Maximum number of simple paths used per container pair",
    )
    strict_path_limits: bool = Field(
        default=False,
        description="Raise instead of truncating when a path limit is hit",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("max_path_length")
    @classmethod
    def validate_max_path_length(cls, v: int) -> int:
        # A path needs at least a parent and a child.
        if v < 2:
            raise ValueError("max_path_length must be at least 2")
        return v

    @field_validator("max_paths_per_pair")
    @classmethod
    def validate_max_paths(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_paths_per_pair must be positive")
        return v

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("cache_prefix")
    @classmethod
    def validate_cache_prefix(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("cache_prefix must not be empty")
        return v

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


def load_config_from_env() -> RoleGraphConfig:
    """Load configuration from environment variables.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - ROLEGRAPH_CACHE_ENABLED: Cache built role maps (default: true)
    - ROLEGRAPH_CACHE_PREFIX: Cache key prefix
    - REDIS_URL: Redis URL for a shared cache store (default: in-process)
    - ROLEGRAPH_MAX_PATH_LENGTH: Containers per path bound
    - ROLEGRAPH_MAX_PATHS_PER_PAIR: Paths per container pair bound
    - ROLEGRAPH_STRICT_PATH_LIMITS: Raise instead of truncating

    Returns:
        RoleGraphConfig instance with values from environment or defaults.

    Raises:
        ConfigurationError: If a variable holds an invalid value.
    """
    import os

    truthy = ("true", "1", "yes", "on")

    try:
        return RoleGraphConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=os.getenv("LOG_JSON", "false").lower() in truthy,
            cache_enabled=os.getenv("ROLEGRAPH_CACHE_ENABLED", "true").lower() in truthy,
            cache_prefix=os.getenv("ROLEGRAPH_CACHE_PREFIX", "rolegraph:role_map"),
            redis_url=os.getenv("REDIS_URL") or None,
            max_path_length=int(os.getenv("ROLEGRAPH_MAX_PATH_LENGTH", "32")),
            max_paths_per_pair=int(os.getenv("ROLEGRAPH_MAX_PATHS_PER_PAIR", "1000")),
            strict_path_limits=os.getenv("ROLEGRAPH_STRICT_PATH_LIMITS", "false").lower() in truthy,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid rolegraph configuration in environment: {e}") from e


__all__ = [
    "LogLevel",
    "RoleGraphConfig",
    "load_config_from_env",
]
