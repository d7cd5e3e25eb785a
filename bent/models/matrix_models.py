"""Pydantic models for the benchmark/configuration matrix.

Field names are snake_case in Python; the declarative TOML input uses the
PascalCase spelling (``Name``, ``Repo``, ``GcFlags``, ``NotSandboxed`` ...),
handled by the alias generator.
"""

import re
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic.alias_generators import to_pascal

if TYPE_CHECKING:
    from bent.executor import OutputSink

MISSING_TIME = -1

_TITLE_RE = re.compile(r"(^|[^0-9A-Za-z_])([a-z])")


def title_case(name: str) -> str:
    """Uppercase the first letter of every word, leaving other letters alone."""
    return _TITLE_RE.sub(lambda m: m.group(1) + m.group(2).upper(), name)


class _MatrixModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        validate_assignment=True,
    )


class Benchmark(_MatrixModel):
    """A Go package whose test binary is built and run for every configuration."""

    name: str = Field(..., description="Short name used in binary names and on the command line")
    contact: str = Field("", description="Owner contact, informational only")
    repo: str = Field(..., description="Repo + subdirectory where the test resides")
    tests: str = Field("", description="Regex for -test.run=")
    benchmarks: str = Field("", description="Regex for -test.bench=")
    build_flags: list[str] = Field(
        default_factory=list, description="Flags for building the test (e.g. -tags purego)"
    )
    run_wrapper: list[str] = Field(
        default_factory=list,
        description="Inner command and args preceding the benchmark binary",
    )
    not_sandboxed: bool = Field(
        False, description="True if this benchmark cannot or should not run in a container"
    )
    disabled: bool = Field(False, description="True if this benchmark is skipped")

    @property
    def test_binary_name(self) -> str:
        """Name of the binary produced by ``go test -c`` in the repo directory."""
        return self.repo.rsplit("/", 1)[-1] + ".test"

    def binary_name(self, config: "Configuration") -> str:
        """Canonical name of this benchmark's binary under ``config``."""
        return f"{self.name}_{config.name}"

    def disable(self) -> None:
        """Disable the benchmark for the remainder of the run."""
        self.disabled = True


class BuildStat(BaseModel):
    """Wall, user and system time of one build, in nanoseconds (-1 if unknown)."""

    model_config = ConfigDict(frozen=True)

    name: str
    real_time: int = MISSING_TIME
    user_time: int = MISSING_TIME
    sys_time: int = MISSING_TIME

    def benchmark_line(self) -> str:
        """Render as a Go benchmark result line, consumable by benchstat."""
        return (
            f"Benchmark{title_case(self.name)} 1 "
            f"{self.real_time} real-ns/op "
            f"{self.user_time} user-ns/op "
            f"{self.sys_time} sys-ns/op\n"
        )


class Configuration(_MatrixModel):
    """A toolchain/flags/environment variant applied to every benchmark."""

    name: str = Field(..., description="Short name used in binary and log names")
    root: str = Field("", description="Specific GOROOT to use for this configuration")
    gc_flags: str = Field("", description="Value of -gcflags= for building")
    gc_env: list[str] = Field(
        default_factory=list, description="NAME=value entries for the build environment"
    )
    run_flags: list[str] = Field(
        default_factory=list, description="Extra flags passed to the test binary"
    )
    run_env: list[str] = Field(
        default_factory=list, description="NAME=value entries for the run environment"
    )
    run_wrapper: list[str] = Field(
        default_factory=list,
        description="Outermost command and args preceding whatever runs",
    )
    disabled: bool = Field(False, description="True if this configuration is skipped")

    _build_stats: list[BuildStat] = PrivateAttr(default_factory=list)
    _sink: Any = PrivateAttr(default=None)
    _root_copy: str = PrivateAttr(default="")

    @property
    def build_stats(self) -> list[BuildStat]:
        return list(self._build_stats)

    def add_build_stat(self, stat: BuildStat) -> None:
        self._build_stats.append(stat)

    @property
    def sink(self) -> "OutputSink | None":
        """The run log this configuration's commands write to."""
        return self._sink

    def attach_sink(self, sink: "OutputSink") -> None:
        if self._sink is not None:
            raise ValueError(f"Configuration {self.name} already has an output sink")
        self._sink = sink

    @property
    def root_copy(self) -> str:
        """Private copy of ``root`` used for building, with a trailing slash."""
        return self._root_copy

    def set_root_copy(self, path: str) -> None:
        if path and not path.endswith("/"):
            path += "/"
        self._root_copy = path

    def go_command(self) -> str:
        """The go command from the configured root, or ``go`` on PATH."""
        if self.root:
            return self.root + "bin/go"
        return "go"

    def go_command_copy(self) -> str:
        """The go command from the private root copy, or ``go`` on PATH."""
        if self._root_copy:
            return self._root_copy + "bin/go"
        return "go"

    def disable(self) -> None:
        """Disable the configuration for the remainder of the run."""
        self.disabled = True


class Todo(_MatrixModel):
    """The declarative input: benchmarks plus configurations, in source order."""

    benchmarks: list[Benchmark] = Field(default_factory=list)
    configurations: list[Configuration] = Field(default_factory=list)
