"""Environment variable helpers.

Two families live here:

* process-environment lookups with type coercion (``get_env``), used
  for bent's own settings such as ``BENT_LOG_LEVEL``;
* child-environment composition (``inherit_env``, ``replace_env``,
  ``overlay_env``), used to build the environment handed to toolchain and
  benchmark processes. Child environments are plain ``dict[str, str]``
  values; later overlays win.

Usage:
    from bent.utils.env import get_env, inherit_env, replace_env

    level = get_env("BENT_LOG_LEVEL", default="INFO")

    env: dict[str, str] = {}
    inherit_env(env, "PATH")
    env = replace_env(env, "GOPATH", "/work/gopath")
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar, cast, overload

T = TypeVar("T")


class EnvVarError(Exception):
    """Base exception for environment variable errors."""

    pass


class EnvVarTypeError(EnvVarError):
    """Raised when an environment variable cannot be converted to the expected type."""

    def __init__(self, name: str, value: str, expected_type: type) -> None:
        self.name = name
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Cannot convert {name}='{value}' to {expected_type.__name__}")


class EnvAssignmentError(EnvVarError):
    """Raised when a ``NAME=value`` overlay entry has no ``=``."""

    def __init__(self, entry: str) -> None:
        self.entry = entry
        super().__init__(f"Environment entry is not NAME=value: {entry!r}")


def _coerce_type(name: str, value: str, as_type: type) -> Any:
    """Convert a string value to the specified type.

    Raises:
        EnvVarTypeError: If conversion fails.
    """
    try:
        # "false", "0", "" are False
        if as_type is bool:
            return value.lower() not in ("false", "0", "", "no", "off")

        if as_type is int:
            return int(value)
        if as_type is float:
            return float(value)
        if as_type is str:
            return value

        # list[str] as comma-separated
        origin = getattr(as_type, "__origin__", None)
        if as_type is list or origin is list:
            return [item.strip() for item in value.split(",") if item.strip()]

        return as_type(value)

    except (ValueError, TypeError) as e:
        raise EnvVarTypeError(name, value, as_type) from e


@overload
def get_env(name: str, *, default: T, as_type: type[T]) -> T:
    ...


@overload
def get_env(name: str, *, default: T) -> T:
    ...


@overload
def get_env(name: str, *, as_type: type[T]) -> T | None:
    ...


@overload
def get_env(name: str) -> str | None:
    ...


def get_env(
    name: str,
    *,
    default: T | None = None,
    as_type: type[T] | None = None,
) -> T | str | None:
    """Get an environment variable with optional type coercion.

    Args:
        name: Environment variable name.
        default: Returned when the variable is not set.
        as_type: Type to convert the value to (bool, int, float, str, list).

    Returns:
        The value, converted to as_type if specified, or default if not set.

    Raises:
        EnvVarTypeError: If as_type is specified and conversion fails.

    Examples:
        >>> get_env("BENT_LOG_LEVEL", default="INFO")
        'INFO'
    """
    value = os.environ.get(name)

    if value is None:
        return default

    if as_type is not None:
        return cast(T, _coerce_type(name, value, as_type))

    return value


# ---------------------------------------------------------------------------
# Child environment composition
# ---------------------------------------------------------------------------


def inherit_env(env: dict[str, str], name: str) -> dict[str, str]:
    """Copy ``name`` from the process environment into ``env`` if non-empty.

    Returns:
        ``env``, for chaining.
    """
    value = os.environ.get(name, "")
    if value:
        env[name] = value
    return env


def inherit_env_prefix(env: dict[str, str], prefix: str) -> dict[str, str]:
    """Copy every process variable whose name starts with ``prefix``."""
    for name, value in os.environ.items():
        if name.startswith(prefix):
            env[name] = value
    return env


def replace_env(env: Mapping[str, str], name: str, value: str) -> dict[str, str]:
    """Return a copy of ``env`` with ``name`` set to ``value``."""
    updated = dict(env)
    updated[name] = value
    return updated


def split_assignment(entry: str) -> tuple[str, str]:
    """Split a ``NAME=value`` entry.

    Raises:
        EnvAssignmentError: If the entry has no ``=`` or an empty name.
    """
    name, sep, value = entry.partition("=")
    if not sep or not name:
        raise EnvAssignmentError(entry)
    return name, value


def overlay_env(env: Mapping[str, str], entries: Iterable[str]) -> dict[str, str]:
    """Return a copy of ``env`` with ``NAME=value`` entries applied in order."""
    updated = dict(env)
    for entry in entries:
        name, value = split_assignment(entry)
        updated[name] = value
    return updated
