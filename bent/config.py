"""Run options and loading of the declarative benchmark/configuration files.

The two TOML documents (one with ``[[Benchmarks]]``, one with
``[[Configurations]]``) are parsed independently and merged into a single
``Todo``. At high verbosity the normalized matrix can be printed back as
TOML.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, ValidationError

from bent.models.matrix_models import Todo

DEFAULT_BENCH_FILE = "benchmarks-50.toml"
DEFAULT_CONF_FILE = "configurations.toml"
DEFAULT_TESTBIN_DIR = "testbin"


class ConfigLoadError(Exception):
    """Raised when a benchmark or configuration file cannot be read or parsed."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        super().__init__(f"There was an error opening or reading file {path}: {reason}")


class RunOptions(BaseModel):
    """Everything that steers one invocation of the build/run engine."""

    count: int = Field(1, ge=0, description="Benchmark/test repeat count (N)")
    explicit_all: int = Field(
        0,
        description=(
            "Value of -a: 1 adds '-a' to every build and skips std prebuild "
            "and cache clearing; any other non-zero value repeats builds"
        ),
    )
    shuffle: int = Field(
        2,
        ge=0,
        le=3,
        description=(
            "Dimensionality of build shuffling: 0 = none, 1 = per-benchmark "
            "configuration order, 2 = bench/config pairs, 3 = across repetitions"
        ),
    )
    seed: int | None = Field(None, description="Seed for build shuffling")
    verbose: int = Field(0, ge=0, description="Verbosity level")
    test_mode: bool = Field(False, description="Run tests instead of benchmarks")
    no_sandbox: bool = Field(False, description="Run all commands unsandboxed")
    require_sandbox: bool = Field(
        False, description="Exclude benchmarks that cannot be sandboxed"
    )
    get_only: bool = Field(False, description="Fetch sources, then stop")
    run_container: str = Field(
        "",
        description="Skip fetch and build, run with this existing container",
    )
    skip_cache_clean: bool = Field(
        False, description="Do not clear the build cache before each build"
    )
    more_args: list[str] = Field(
        default_factory=list, description="Extra arguments for every benchmark binary"
    )
    testbin_dir: str = Field(
        DEFAULT_TESTBIN_DIR, description="Destination for binaries and outputs"
    )

    @property
    def build_count(self) -> int:
        """How many times each (benchmark, configuration) pair is built."""
        return abs(self.explicit_all) or 1

    @property
    def always_rebuild(self) -> bool:
        """True when every build is a forced full rebuild (``-a`` given once)."""
        return self.explicit_all == 1


def _read_toml(path: str | Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ConfigLoadError(path, str(e)) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigLoadError(path, f"invalid TOML: {e}") from e


def load_todo(bench_file: str | Path, conf_file: str | Path) -> Todo:
    """Load and merge the benchmark and configuration files.

    Raises:
        ConfigLoadError: If either file is unreadable, is not TOML, or does
            not describe valid benchmarks/configurations.
    """
    data = _read_toml(bench_file)
    for key, value in _read_toml(conf_file).items():
        if key in data and isinstance(data[key], list) and isinstance(value, list):
            data[key] = data[key] + value
        else:
            data[key] = value

    try:
        return Todo.model_validate(data)
    except ValidationError as e:
        raise ConfigLoadError(f"{bench_file} + {conf_file}", str(e)) from e


def dump_todo(todo: Todo) -> str:
    """Render the (normalized) matrix back to TOML."""
    data = todo.model_dump(by_alias=True, exclude_none=True)
    return tomli_w.dumps(data)
