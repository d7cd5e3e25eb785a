"""Run orchestration: execute every built binary N times.

For each repetition, each enabled configuration and each enabled benchmark,
the invocation is composed as

    [sandbox prefix] [config wrapper] [bench wrapper] binary
        -test.run=<Tests> -test.bench=<Benchmarks> <RunFlags> <more args>

Unsandboxed runs get an environment built in this order: baseline
variables, GOROOT for configurations with a root, the configuration's
RunEnv, then BENT_BINARY and BENT_I. Sandboxed runs pass RunEnv and the
identity variables into the container with ``-e``.
"""

import click

from bent.config import RunOptions
from bent.executor import Command, ProcessExecutor
from bent.matrix import Matrix
from bent.models.matrix_models import Benchmark, Configuration
from bent.results import RunReport
from bent.sandbox import DEFAULT_RUNTIME, SandboxHandle
from bent.utils.env import overlay_env, replace_env
from bent.utils.logger import Logger
from bent.workspace import Workspace

BINARY_ENV = "BENT_BINARY"
REPETITION_ENV = "BENT_I"


class RunOrchestrator:
    """Runs the matrix sequentially, recording failures without stopping."""

    def __init__(
        self,
        matrix: Matrix,
        options: RunOptions,
        workspace: Workspace,
        executor: ProcessExecutor,
        report: RunReport,
        default_env: dict[str, str] | None = None,
        runtime: str = DEFAULT_RUNTIME,
    ) -> None:
        self.matrix = matrix
        self.options = options
        self.workspace = workspace
        self.executor = executor
        self.report = report
        self.default_env = default_env if default_env is not None else workspace.default_env()
        self.runtime = runtime
        self._logger = Logger.get("runner")

    def _wrappers(self, bench: Benchmark, config: Configuration) -> list[str]:
        # Wrapper commands live at the root of the sandbox image, or in the
        # working directory when unsandboxed.
        prefix = str(self.workspace.root) if bench.not_sandboxed else ""
        words: list[str] = []
        for wrapper in (config.run_wrapper, bench.run_wrapper):
            if wrapper:
                words.append(prefix + "/" + wrapper[0])
                words.extend(wrapper[1:])
        return words

    def _trailing_args(self, bench: Benchmark, config: Configuration) -> list[str]:
        return [
            f"-test.run={bench.tests}",
            f"-test.bench={bench.benchmarks}",
            *config.run_flags,
            *self.options.more_args,
        ]

    def compose(
        self,
        bench: Benchmark,
        config: Configuration,
        repetition: int,
        container: str = "",
    ) -> Command:
        """Build the command for one run of ``bench`` under ``config``."""
        binary = bench.binary_name(config)
        wrappers = self._wrappers(bench, config)

        if bench.not_sandboxed:
            args = [*wrappers, str(self.workspace.binary_path(bench, config))]
            args.extend(self._trailing_args(bench, config))
            env = dict(self.default_env)
            if config.root:
                env = replace_env(env, "GOROOT", config.root)
            env = overlay_env(env, config.run_env)
            env = overlay_env(env, [f"{BINARY_ENV}={binary}", f"{REPETITION_ENV}={repetition}"])
            return Command(args, env=env, cwd=self.workspace.source_dir(bench))

        args = [
            self.runtime,
            "run",
            "--net=none",
            "-w",
            self.workspace.sandbox_source_dir(bench),
        ]
        for entry in config.run_env:
            args.extend(["-e", entry])
        args.extend(["-e", f"{BINARY_ENV}={binary}"])
        args.extend(["-e", f"{REPETITION_ENV}={repetition}"])
        args.append(container)
        args.extend(wrappers)
        args.append(self.workspace.sandbox_binary_path(bench, config))
        args.extend(self._trailing_args(bench, config))
        return Command(args, cwd=self.workspace.root)

    def run(self, handle: SandboxHandle) -> int:
        """Run every enabled cell ``options.count`` times.

        Returns:
            Number of invocations attempted.
        """
        attempted = 0
        for i in range(self.options.count):
            for bench, config in self.matrix.effective_pairs(config_major=True):
                cmd = self.compose(bench, config, i, handle.container)
                outcome = self.executor.run(cmd, sink=config.sink)
                attempted += 1
                if not outcome.ok:
                    click.echo(outcome.failure)
                    self.report.add_run_failure(outcome.failure)
        self._logger.debug(f"Completed {attempted} runs")
        return attempted
