"""Build scheduling: fetch sources, prepare toolchains, compile test binaries.

One test binary is built per enabled (benchmark, configuration) pair,
``build_count`` times, in an order chosen by the shuffle policy:

    0  repetitions, then benchmarks, then configurations (source order)
    1  as 0, but configurations permuted afresh for every benchmark
    2  one permutation of all (benchmark, configuration) pairs, reused for
       every repetition
    3  one permutation of all (benchmark, configuration, repetition) triples

A benchmark that fails to build is disabled for every remaining task and
the run phase; the failure is recorded, never raised.

Usage:
    from bent.scheduler import BuildScheduler

    scheduler = BuildScheduler(matrix, options, workspace, executor, report)
    scheduler.fetch_sources()
    scheduler.prepare_toolchains(need_sandbox=True, need_not_sandbox=False)
    scheduler.build_all()
"""

import platform
import random
import re
import shutil
from collections.abc import Callable, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, NamedTuple

import click

from bent.config import RunOptions
from bent.executor import Command, ProcessExecutor
from bent.matrix import Matrix
from bent.models.matrix_models import MISSING_TIME, Benchmark, BuildStat, Configuration
from bent.results import RunReport
from bent.utils.env import overlay_env, replace_env
from bent.utils.logger import Logger
from bent.workspace import Workspace, WorkspaceError

TIME_COMMAND = ("/usr/bin/time", "-p")
SANDBOX_GOOS = "linux"
ROOT_SUBDIRS = ("bin", "src", "pkg")

_NUMBER_START = re.compile(r"[0-9\-.eEdD]")
_TOKEN_END = re.compile(r"[\n\r\t ]")
_NANOS_PER_SECOND = Decimal(1_000_000_000)

Permute = Callable[[list[Any]], None]


class BuildTask(NamedTuple):
    """Indices into the matrix plus the build repetition."""

    bench: int
    config: int
    repetition: int


def extract_time(output: str, label: str) -> int:
    """Extract a ``time -p`` field in nanoseconds, or -1 if unrecoverable.

    Finds the last occurrence of ``label``, skips to the first character
    that can start a number, and parses up to the next whitespace.
    """
    at = output.rfind(label)
    if at < 0:
        return MISSING_TIME
    rest = output[at + len(label):]
    start = _NUMBER_START.search(rest)
    if start is None:
        return MISSING_TIME
    rest = rest[start.start():]
    end = _TOKEN_END.search(rest)
    token = rest[: end.start()] if end else rest
    try:
        seconds = Decimal(token)
    except InvalidOperation:
        return MISSING_TIME
    if not seconds.is_finite():
        return MISSING_TIME
    return int(seconds * _NANOS_PER_SECOND)


def plan_builds(
    benches: Sequence[int],
    configs: Sequence[int],
    build_count: int,
    shuffle: int,
    permute: Permute,
) -> list[BuildTask]:
    """Order the build tasks for the given benchmark/configuration indices.

    Every policy yields the same multiset of tasks; only the order differs.

    Args:
        benches: Benchmark indices, in source order.
        configs: Configuration indices, in source order.
        build_count: Builds per (benchmark, configuration) pair.
        shuffle: Policy 0-3.
        permute: In-place permutation, e.g. ``random.Random(seed).shuffle``.

    Raises:
        ValueError: If shuffle is outside 0-3.
    """
    tasks: list[BuildTask] = []
    if shuffle == 0:
        for k in range(build_count):
            for b in benches:
                tasks.extend(BuildTask(b, c, k) for c in configs)
    elif shuffle == 1:
        order = list(configs)
        for k in range(build_count):
            for b in benches:
                permute(order)
                tasks.extend(BuildTask(b, c, k) for c in order)
    elif shuffle == 2:
        pairs = [(b, c) for b in benches for c in configs]
        permute(pairs)
        for k in range(build_count):
            tasks.extend(BuildTask(b, c, k) for b, c in pairs)
    elif shuffle == 3:
        tasks = [
            BuildTask(b, c, k)
            for k in range(build_count)
            for b in benches
            for c in configs
        ]
        permute(tasks)
    else:
        raise ValueError(f"Shuffle value ought to be between 0 and 3, inclusive, instead is {shuffle}")
    return tasks


class BuildScheduler:
    """Fetches, prepares and builds every enabled matrix cell, sequentially."""

    def __init__(
        self,
        matrix: Matrix,
        options: RunOptions,
        workspace: Workspace,
        executor: ProcessExecutor,
        report: RunReport,
        default_env: dict[str, str] | None = None,
        permute: Permute | None = None,
    ) -> None:
        self.matrix = matrix
        self.options = options
        self.workspace = workspace
        self.executor = executor
        self.report = report
        self.default_env = default_env if default_env is not None else workspace.default_env()
        self.permute = permute or random.Random(options.seed).shuffle
        self._logger = Logger.get("scheduler")

    # ------------------------------------------------------------------
    # Environments
    # ------------------------------------------------------------------

    def _toolchain_env(self, root: str, sandboxed: bool) -> dict[str, str]:
        env = dict(self.default_env)
        if sandboxed:
            env = replace_env(env, "GOOS", SANDBOX_GOOS)
        if root:
            env = replace_env(env, "GOROOT", root)
        return env

    # ------------------------------------------------------------------
    # Phase 1: fetch
    # ------------------------------------------------------------------

    def fetch_sources(self) -> None:
        """``go get`` every enabled benchmark once; failures disable it."""
        if self.options.verbose == 0:
            click.echo("Go getting", nl=False)

        for bench in self.matrix.enabled_benchmarks():
            env = self._toolchain_env("", sandboxed=not bench.not_sandboxed)
            cmd = Command(
                ["go", "get", "-d", "-t", "-v", bench.repo],
                env=env,
                cwd=self.workspace.root,
            )
            outcome = self.executor.run(cmd, echo=False, working_dot=True)
            if outcome.ok:
                continue
            if outcome.returncode is None:
                s = f"There was an error running 'go get', error = {outcome.failure}"
            else:
                s = f"There was an error running 'go get', stderr = {outcome.stderr}"
            click.echo(s + "DISABLING benchmark " + bench.name)
            self.report.add_build_failure(s + f"({bench.name})\n")
            bench.disable()

        if self.options.verbose == 0:
            click.echo()

    # ------------------------------------------------------------------
    # Phase 2: per-configuration setup
    # ------------------------------------------------------------------

    def create_build_stat_files(self) -> None:
        """Truncate each configuration's build-stat file; failure disables it."""
        for config in self.matrix.enabled_configurations():
            path = self.workspace.build_stats_path(config)
            try:
                path.write_bytes(b"")
            except OSError as e:
                click.echo(f"Error creating build benchmark file {path}, err={e}")
                config.disable()

    def copy_root(self, config: Configuration) -> None:
        """Give ``config`` a private copy of its GOROOT to build with."""
        if not config.root:
            return
        target = self.workspace.root_copy(config)
        self._logger.debug(f"rm -rf {target}")
        shutil.rmtree(target, ignore_errors=True)
        for sub in ROOT_SUBDIRS:
            source = config.root + sub
            self._logger.debug(f"cp -rp {source} {target / sub}")
            try:
                shutil.copytree(source, target / sub, symlinks=True)
            except OSError as e:
                self._logger.warning(f"Could not copy {source}: {e}")
        config.set_root_copy(str(target))

    def install_library(self, config: Configuration, for_sandbox: bool) -> bool:
        """``go install -a std`` with the configuration's flags.

        Returns:
            False if the install failed (the configuration is disabled).
        """
        cmd = Command([config.go_command_copy(), "install", "-a"])
        if config.gc_flags:
            cmd.args.append("-gcflags=" + config.gc_flags)
        cmd.args.append("std")
        env = self._toolchain_env(config.root_copy, sandboxed=for_sandbox)
        cmd.env = overlay_env(env, config.gc_env)

        outcome = self.executor.run(cmd, sink=config.sink, working_dot=True)
        if outcome.ok:
            return True
        click.echo(f"Error running go install std, {outcome.failure}")
        self.report.add_build_failure(
            f"{outcome.failure}(configuration {config.name})\n"
        )
        config.disable()
        return False

    def prepare_toolchains(self, need_sandbox: bool, need_not_sandbox: bool) -> None:
        """Copy roots and prebuild std for every enabled configuration.

        std is installed once per configuration and target OS: for the
        sandbox OS when a benchmark is sandboxed, natively when a benchmark
        is not. Skipped when every build is a forced full rebuild.
        """
        if self.options.verbose == 0:
            click.echo("Building goroots", nl=False)

        host_is_sandbox_os = platform.system().lower() == SANDBOX_GOOS
        for config in self.matrix.enabled_configurations():
            self.copy_root(config)
            if self.options.always_rebuild:
                continue
            if need_sandbox and not host_is_sandbox_os:
                if not self.install_library(config, for_sandbox=True):
                    continue
            if need_not_sandbox or (need_sandbox and host_is_sandbox_os):
                self.install_library(config, for_sandbox=False)

        if self.options.verbose == 0:
            click.echo()

    # ------------------------------------------------------------------
    # Phase 3: compile
    # ------------------------------------------------------------------

    def plan(self) -> list[BuildTask]:
        """Build tasks for the currently enabled cells."""
        benches = [i for i, b in enumerate(self.matrix.benchmarks) if not b.disabled]
        configs = [i for i, c in enumerate(self.matrix.configurations) if not c.disabled]
        return plan_builds(
            benches, configs, self.options.build_count, self.options.shuffle, self.permute
        )

    def build_all(self) -> list[BuildTask]:
        """Compile every planned task, skipping cells disabled along the way.

        Returns:
            The tasks actually attempted, in order.
        """
        if self.options.verbose == 0:
            click.echo("Compiling", nl=False)

        attempted: list[BuildTask] = []
        for task in self.plan():
            bench = self.matrix.benchmarks[task.bench]
            config = self.matrix.configurations[task.config]
            if bench.disabled or config.disabled:
                continue
            attempted.append(task)
            failure = self.compile_one(config, bench)
            if failure:
                self.report.add_build_failure(failure)

        if self.options.verbose == 0:
            click.echo()
        return attempted

    def _clear_cache(self, config: Configuration, bench: Benchmark) -> None:
        cmd = Command(
            [config.go_command_copy(), "clean", "-cache"],
            env=self._toolchain_env(config.root_copy, sandboxed=not bench.not_sandboxed),
            # Only the cache-cleaning effect is wanted; cleaning gopath itself is harmless.
            cwd=self.workspace.gopath,
        )
        outcome = self.executor.run(cmd, sink=config.sink, working_dot=True)
        if not outcome.ok:
            click.echo(f"Error running go clean -cache, {outcome.failure}")

    def build_command(self, config: Configuration, bench: Benchmark) -> Command:
        """The timed ``go test -c`` invocation for one cell."""
        args = [*TIME_COMMAND, config.go_command_copy(), "test", "-vet=off", "-c"]
        args.extend(bench.build_flags)
        if self.options.always_rebuild:
            args.append("-a")
        if config.gc_flags:
            args.append("-gcflags=" + config.gc_flags)
        args.append(".")
        env = self._toolchain_env(config.root_copy, sandboxed=not bench.not_sandboxed)
        return Command(
            args,
            env=overlay_env(env, config.gc_env),
            cwd=self.workspace.source_dir(bench),
        )

    def compile_one(self, config: Configuration, bench: Benchmark) -> str:
        """Build one test binary and record its build times.

        Returns:
            "" on success, otherwise a failure message; the benchmark is
            then disabled.

        Raises:
            WorkspaceError: If the build-stat file cannot be appended to.
        """
        if not self.options.always_rebuild and not self.options.skip_cache_clean:
            self._clear_cache(config, bench)

        cmd = self.build_command(config, bench)
        outcome = self.executor.run(cmd, echo=False, capture=True, working_dot=True)
        if not outcome.ok:
            s = f"There was an error running 'go test', output = {outcome.output}"
            if outcome.returncode is None:
                s += f", error = {outcome.failure}"
            click.echo(s + "DISABLING benchmark " + bench.name)
            bench.disable()
            return s + f"({bench.name})\n"

        output = outcome.output
        stat = BuildStat(
            name=bench.name,
            real_time=extract_time(output, "real"),
            user_time=extract_time(output, "user"),
            sys_time=extract_time(output, "sys"),
        )
        config.add_build_stat(stat)
        self.report.add_build_stat(config.name, stat)

        line = stat.benchmark_line()
        if self.options.verbose > 0:
            click.echo(line, nl=False)
        stats_path = self.workspace.build_stats_path(config)
        try:
            with open(stats_path, "a") as f:
                f.write(line)
        except OSError as e:
            raise WorkspaceError(
                f"There was an error opening {stats_path} for append, error {e}"
            ) from e

        source = self.workspace.source_dir(bench) / bench.test_binary_name
        target = self.workspace.binary_path(bench, config)
        try:
            source.replace(target)
        except OSError as e:
            s = f"There was an error renaming {source} to {target}, {e}"
            click.echo(s + "DISABLING benchmark " + bench.name)
            bench.disable()
            return s + f"({bench.name})\n"

        if self.options.verbose > 0:
            click.echo(f"mv {source} {target}")
            cut = output.rfind("real")
            click.echo(output[:cut] if cut >= 0 else output, nl=False)
        self._logger.debug(f"rm -rf {self.workspace.gopath / 'pkg'} {self.workspace.gopath / 'bin'}")
        self.workspace.clean_build_outputs()
        return ""
