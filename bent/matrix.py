"""The experiment matrix: benchmarks x configurations with disabled flags.

``Matrix`` owns the Benchmark and Configuration entities for one
invocation. Entities are addressed by index in source order and mutated in
place; disabling is one-way.

Usage:
    from bent.matrix import Matrix

    matrix = Matrix(todo)
    matrix.select_configurations({"base", "tip"})
    matrix.normalize(options)
    for bench, config in matrix.effective_pairs():
        ...
"""

import os
import platform
from collections.abc import Iterable, Iterator
from pathlib import Path

from bent.config import RunOptions, load_todo
from bent.models.matrix_models import Benchmark, Configuration, Todo
from bent.utils.env import EnvAssignmentError, split_assignment
from bent.utils.logger import Logger

NO_MATCH = "none"


class MatrixError(Exception):
    """Base exception for matrix errors."""

    pass


class UnknownNameError(MatrixError):
    """Raised when a requested benchmark or configuration is not declared."""

    def __init__(self, kind: str, names: Iterable[str], source: str = "") -> None:
        self.kind = kind
        self.names = sorted(names)
        where = f" does not appear in {source}" if source else " is not declared"
        listed = ", ".join(self.names)
        super().__init__(f"{kind.capitalize()} {listed} listed{where}")


def parse_name_set(value: str | None) -> set[str] | None:
    """Split a comma-separated list into a set; None or "" means "all"."""
    if not value:
        return None
    return set(value.split(","))


class Matrix:
    """Ordered benchmarks and configurations with their effective pairs."""

    def __init__(self, todo: Todo) -> None:
        self.todo = todo
        self._logger = Logger.get("matrix")

    @property
    def benchmarks(self) -> list[Benchmark]:
        return self.todo.benchmarks

    @property
    def configurations(self) -> list[Configuration]:
        return self.todo.configurations

    def enabled_benchmarks(self) -> list[Benchmark]:
        return [b for b in self.benchmarks if not b.disabled]

    def enabled_configurations(self) -> list[Configuration]:
        return [c for c in self.configurations if not c.disabled]

    def effective_pairs(
        self, config_major: bool = False
    ) -> Iterator[tuple[Benchmark, Configuration]]:
        """Yield enabled (benchmark, configuration) pairs in source order.

        Benchmarks form the outer loop unless ``config_major`` is set.
        Flags are checked lazily, so an entity disabled while iterating
        drops out of the remaining pairs.
        """
        if config_major:
            for config in self.configurations:
                for bench in self.benchmarks:
                    if config.disabled:
                        break
                    if bench.disabled:
                        continue
                    yield bench, config
            return
        for bench in self.benchmarks:
            for config in self.configurations:
                if bench.disabled:
                    break
                if config.disabled:
                    continue
                yield bench, config

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_configurations(self, names: set[str] | None, source: str = "") -> None:
        """Restrict the run to the named configurations.

        Raises:
            UnknownNameError: If a requested name is not declared.
        """
        if names is None:
            return
        declared = {c.name for c in self.configurations}
        missing = names - declared
        if missing:
            raise UnknownNameError("configuration", missing, source)
        for config in self.configurations:
            config.disabled = config.name not in names

    def select_benchmarks(self, names: set[str] | None, source: str = "") -> None:
        """Restrict the run to the named benchmarks.

        Raises:
            UnknownNameError: If a requested name is not declared.
        """
        if names is None:
            return
        declared = {b.name for b in self.benchmarks}
        missing = names - declared
        if missing:
            raise UnknownNameError("benchmark", missing, source)
        for bench in self.benchmarks:
            bench.disabled = bench.name not in names

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize(self, options: RunOptions) -> None:
        """Canonicalize roots, repos, selection patterns and sandboxing.

        Raises:
            MatrixError: If a GcEnv or RunEnv entry is not NAME=value.
        """
        for config in self.configurations:
            if config.root:
                root = os.path.expandvars(config.root)
                if not root.endswith("/"):
                    root += "/"
                config.root = root
            config.gc_env = [os.path.expandvars(s) for s in config.gc_env]
            config.run_env = [os.path.expandvars(s) for s in config.run_env]
            for entry in (*config.gc_env, *config.run_env):
                try:
                    split_assignment(entry)
                except EnvAssignmentError as e:
                    raise MatrixError(f"Configuration {config.name}: {e}") from e

        on_linux = platform.system() == "Linux"
        for bench in self.benchmarks:
            bench.repo = bench.repo.rstrip("/")
            if not bench.tests or not options.test_mode:
                bench.tests = NO_MATCH
            if not bench.benchmarks or options.test_mode:
                bench.benchmarks = NO_MATCH
            if options.no_sandbox:
                bench.not_sandboxed = True
            if options.require_sandbox and bench.not_sandboxed:
                if on_linux:
                    self._logger.info(f"Running {bench.name} sandboxed")
                    bench.not_sandboxed = False
                else:
                    self._logger.info(
                        f"Disabling {bench.name} because it requires sandbox"
                    )
                    bench.disable()


def resolve_matrix(
    bench_file: str | Path,
    conf_file: str | Path,
    options: RunOptions,
    benchmark_names: set[str] | None = None,
    configuration_names: set[str] | None = None,
) -> Matrix:
    """Load both files, apply name selections and normalize.

    Raises:
        ConfigLoadError: If a file cannot be loaded.
        UnknownNameError: If a requested name is not declared.
    """
    matrix = Matrix(load_todo(bench_file, conf_file))
    matrix.select_configurations(configuration_names, source=str(conf_file))
    matrix.select_benchmarks(benchmark_names, source=str(bench_file))
    matrix.normalize(options)
    return matrix
