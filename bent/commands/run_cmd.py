"""Run command - fetch, build and run the benchmark matrix.

CLI Examples:
    bent run                              # All enabled benchmarks, all configurations
    bent run -N 10 -c Base,Tip            # 10 repetitions of two configurations
    bent run -b uuid,minio -v             # Two benchmarks, print every command
    bent run --build-count 5 -s 3         # Benchmark the builds: 5 fully shuffled rebuilds
    bent run -U -- -test.benchtime=5x     # Unsandboxed, extra flags for every binary
    bent run -r 3f2a9c... --report r.json # Reuse a container, skip fetch and build
"""

import sys
from contextlib import ExitStack
from pathlib import Path

import click

from bent.config import ConfigLoadError, RunOptions, dump_todo
from bent.executor import OutputSink, ProcessExecutor
from bent.matrix import Matrix, MatrixError, resolve_matrix
from bent.results import RunReport, format_for_path
from bent.runner import RunOrchestrator
from bent.sandbox import SandboxError, SandboxManager, sandbox_requirements
from bent.scheduler import BuildScheduler, Permute
from bent.utils.logger import Logger
from bent.workspace import OutputSinkError, Workspace, WorkspaceError, make_runstamp


def open_sinks(
    stack: ExitStack, matrix: Matrix, workspace: Workspace, runstamp: str
) -> None:
    """Open one run log per enabled configuration, closed when ``stack`` unwinds.

    Raises:
        OutputSinkError: If a log cannot be created.
    """
    for config in matrix.enabled_configurations():
        path = workspace.run_log_path(runstamp, config)
        try:
            sink = OutputSink.open(path)
        except OSError as e:
            raise OutputSinkError(
                f"There was an error opening {path} for output, error {e}"
            ) from e
        stack.enter_context(sink)
        config.attach_sink(sink)


def execute_run(
    matrix: Matrix,
    options: RunOptions,
    workspace: Workspace,
    executor: ProcessExecutor | None = None,
    sandbox: SandboxManager | None = None,
    permute: Permute | None = None,
    runstamp: str | None = None,
) -> RunReport:
    """Drive the whole run: fetch, toolchains, builds, sandbox, runs.

    Per-cell failures are collected in the returned report. Every run log
    is closed before this returns or raises.

    Raises:
        OutputSinkError: If a run log cannot be opened.
        SandboxError: If a needed sandbox image cannot be built.
        WorkspaceError: If build statistics cannot be recorded.
    """
    logger = Logger.get("run")
    executor = executor or ProcessExecutor(verbose=options.verbose, workdir=workspace.root)
    sandbox = sandbox or SandboxManager(workspace.root, verbose=options.verbose)
    report = RunReport()
    default_env = workspace.default_env()
    workspace.prepare()

    with ExitStack() as stack:
        open_sinks(stack, matrix, workspace, runstamp or make_runstamp())

        if options.run_container:
            if options.get_only:
                return report
            handle = sandbox.prepare(matrix.benchmarks, existing=options.run_container)
        else:
            scheduler = BuildScheduler(
                matrix,
                options,
                workspace,
                executor,
                report,
                default_env=default_env,
                permute=permute,
            )
            scheduler.fetch_sources()
            if options.get_only:
                return report

            scheduler.create_build_stat_files()
            need_sandbox, need_not_sandbox = sandbox_requirements(matrix.benchmarks)
            scheduler.prepare_toolchains(need_sandbox, need_not_sandbox)
            tasks = scheduler.build_all()
            logger.debug(f"{len(tasks)} builds attempted")

            # The image holds the binaries, so it comes after compilation.
            handle = sandbox.prepare(matrix.benchmarks)
        report.set_container(handle.container, reused=handle.reused)

        orchestrator = RunOrchestrator(
            matrix, options, workspace, executor, report, default_env=default_env
        )
        attempted = orchestrator.run(handle)
        logger.debug(f"{attempted} runs attempted")

    return report


def run_bent(
    options: RunOptions,
    bench_file: str,
    conf_file: str,
    benchmark_names: set[str] | None = None,
    configuration_names: set[str] | None = None,
    report_file: str | None = None,
    workdir: str | Path = ".",
) -> None:
    """Entry point for ``bent run``.

    Fatal errors are printed and end the process: exit 1 for input and
    workspace problems found before the run starts, 2 when a run log, the
    sandbox or a build-stat file fails once it is under way.
    """
    logger = Logger.get("run")
    workspace = Workspace(workdir, testbin_dir=options.testbin_dir)

    try:
        workspace.check()
        matrix = resolve_matrix(
            bench_file, conf_file, options, benchmark_names, configuration_names
        )
    except (ConfigLoadError, MatrixError, WorkspaceError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    if options.verbose > 1:
        click.echo(dump_todo(matrix.todo))

    try:
        report = execute_run(matrix, options, workspace)
    except (SandboxError, WorkspaceError) as e:
        click.echo(str(e), err=True)
        sys.exit(2)

    # Sinks are closed by now; the summary is the last thing printed.
    report.emit_stdout()

    if report_file:
        report.emit(report_file, format_for_path(report_file))
        logger.info(f"Report written to {report_file}")
