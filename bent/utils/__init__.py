"""bent utilities - logging and environment helpers."""

from bent.utils.env import (
    EnvAssignmentError,
    EnvVarError,
    EnvVarTypeError,
    get_env,
    inherit_env,
    inherit_env_prefix,
    overlay_env,
    replace_env,
    split_assignment,
)
from bent.utils.logger import (
    Logger,
    LoggerNotConfiguredError,
    LogLevel,
)

__all__ = [
    # Env
    "EnvAssignmentError",
    "EnvVarError",
    "EnvVarTypeError",
    "LogLevel",
    # Logger
    "Logger",
    "LoggerNotConfiguredError",
    "get_env",
    "inherit_env",
    "inherit_env_prefix",
    "overlay_env",
    "replace_env",
    "split_assignment",
]
