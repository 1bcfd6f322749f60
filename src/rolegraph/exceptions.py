"""Unified exception hierarchy for rolegraph.

All errors raised by the library inherit from RoleGraphError. This module
provides:
- Base exception hierarchy with stable error codes
- ErrorRegistry for mapping codes back to exception classes

Most "nothing to map" situations (missing relation config, empty role
sets, unknown containers) are NOT errors and never raise. Errors are
reserved for misuse of the hierarchy (cycles) and, in strict mode,
unbounded path enumeration.

Usage:
    from rolegraph.exceptions import CycleDetectedError, RoleGraphError

Integrations may define thin subclasses:
    @register_error("DIRECTORY_ERROR")
    class DirectoryError(RoleGraphError):
        code = "DIRECTORY_ERROR"
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Base hierarchy
    "RoleGraphError",
    "ConfigurationError",
    "HierarchyError",
    "CycleDetectedError",
    "PathLimitExceededError",
    "CacheStoreError",
    "UnknownContainerError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
]


# ---- Exception Hierarchy ----------------------------------------------------


class RoleGraphError(Exception):
    """Base exception for rolegraph.

    Attributes:
        code: Stable error code string (e.g. "CYCLE_DETECTED").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(RoleGraphError):
    """Invalid library configuration."""

    code: str = "CONFIGURATION_ERROR"
    message: str = "Invalid rolegraph configuration"


class HierarchyError(RoleGraphError):
    """The container hierarchy cannot be processed."""

    code: str = "HIERARCHY_ERROR"
    message: str = "Invalid container hierarchy"


class CycleDetectedError(HierarchyError):
    """A relation would make a container (indirectly) nested in itself."""

    code: str = "CYCLE_DETECTED"
    message: str = "Cycle detected in container hierarchy"


class PathLimitExceededError(HierarchyError):
    """Path enumeration hit the configured bound (strict mode only)."""

    code: str = "PATH_LIMIT_EXCEEDED"
    message: str = "Path enumeration exceeded the configured limit"


class CacheStoreError(RoleGraphError):
    """The tagged cache store is unavailable."""

    code: str = "CACHE_STORE_ERROR"
    message: str = "Cache store unavailable"


class UnknownContainerError(RoleGraphError):
    """A strict directory lookup referenced a container that does not exist."""

    code: str = "UNKNOWN_CONTAINER"
    message: str = "Unknown container"


# ---- Error Registry ---------------------------------------------------------

_E = TypeVar("_E", bound=type[RoleGraphError])


class ErrorRegistry:
    """Registry for mapping stable error codes to exception classes."""

    def __init__(self) -> None:
        self._errors: dict[str, type[RoleGraphError]] = {}

    def register(self, code: str, error_cls: type[RoleGraphError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[RoleGraphError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[RoleGraphError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Decorator to register a custom error type.

    Usage:
        @register_error("MY_CUSTOM_ERROR")
        class MyCustomError(RoleGraphError):
            code = "MY_CUSTOM_ERROR"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


for _cls in (
    RoleGraphError,
    ConfigurationError,
    HierarchyError,
    CycleDetectedError,
    PathLimitExceededError,
    CacheStoreError,
    UnknownContainerError,
):
    error_registry.register(_cls.code, _cls)
