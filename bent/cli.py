#!/usr/bin/env python3
"""Bent CLI - Command-line interface for bent."""

import click

from bent.config import DEFAULT_BENCH_FILE, DEFAULT_CONF_FILE, RunOptions
from bent.matrix import parse_name_set
from bent.utils.env import get_env
from bent.utils.logger import Logger


@click.group()
def bent():
    """Build and run Go benchmarks across a matrix of toolchain configurations."""
    # Configure logger at startup if not already configured
    if not Logger.is_configured():
        Logger.configure(
            level=get_env("BENT_LOG_LEVEL", default="INFO"), timestamps=True
        )


def _trailing_args(args: tuple[str, ...]) -> list[str]:
    """Arguments for every benchmark binary; a leading "-" or "--" is dropped."""
    more = list(args)
    if more and more[0] in ("-", "--"):
        more = more[1:]
    return more


@bent.command(context_settings={"ignore_unknown_options": True})
@click.option("-N", "count", type=click.IntRange(min=0), default=1, show_default=True,
              help="Benchmark/test repeat count")
@click.option(
    "-a",
    "explicit_all",
    count=True,
    help=(
        "Add '-a' to 'go test -c' to demand full recompile. "
        "Repeat for repeat builds for benchmarking"
    ),
)
@click.option(
    "--build-count",
    type=int,
    default=None,
    help="Number of repeat builds (same as repeating -a that many times)",
)
@click.option(
    "-s",
    "shuffle",
    type=click.IntRange(0, 3),
    default=2,
    show_default=True,
    help=(
        "Dimensionality of build shuffling: 0 = none, 1 = per-benchmark "
        "configuration ordering, 2 = bench/config pairs, 3 = across repetitions"
    ),
)
@click.option("--seed", type=int, default=None, help="Seed for build shuffling")
@click.option("-b", "benchmarks", default="",
              help="Comma-separated list of benchmark names (default is all)")
@click.option("-B", "bench_file", default=DEFAULT_BENCH_FILE, show_default=True,
              help="Name of file describing benchmarks")
@click.option("-c", "configurations", default="",
              help="Comma-separated list of configurations (default is all)")
@click.option("-C", "conf_file", default=DEFAULT_CONF_FILE, show_default=True,
              help="Name of file describing configurations")
@click.option("-U", "no_sandbox", is_flag=True, help="Run all commands unsandboxed")
@click.option("-S", "require_sandbox", is_flag=True,
              help="Exclude unsandboxable tests/benchmarks")
@click.option("-g", "get_only", is_flag=True,
              help="Get tests/benchmarks and dependencies, do not build or run")
@click.option(
    "-r",
    "run_container",
    default="",
    help=(
        "Skip get and build, go directly to run, using the specified container "
        "(any non-empty string will do for unsandboxed execution)"
    ),
)
@click.option("-T", "test_mode", is_flag=True, help="Run tests instead of benchmarks")
@click.option("-v", "verbose", count=True,
              help="Print commands and other information (more -v = more details)")
@click.option("--no-cache-clean", is_flag=True,
              help="Do not run 'go clean -cache' before each build")
@click.option(
    "--report",
    "report_file",
    type=click.Path(),
    default=None,
    help="Write a structured report (.json, .yaml or .txt) to this file",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def run(
    count,
    explicit_all,
    build_count,
    shuffle,
    seed,
    benchmarks,
    bench_file,
    configurations,
    conf_file,
    no_sandbox,
    require_sandbox,
    get_only,
    run_container,
    test_mode,
    verbose,
    no_cache_clean,
    report_file,
    debug,
    args,
):
    r"""Fetch, build and run benchmarks for every configuration.

    Extra ARGS are passed to every benchmark binary.

    \b
    Examples:
      bent run                            # Everything enabled in the files
      bent run -N 10 -c Base,Tip          # 10 runs of two configurations
      bent run -b uuid -v                 # One benchmark, show commands
      bent run -a -a -a -s 3              # 3 shuffled repeat builds
      bent run -U -- -test.benchtime=5x   # Unsandboxed, extra binary flags
    """
    from bent.commands.run_cmd import run_bent

    if debug:
        Logger.set_level("DEBUG")

    options = RunOptions(
        count=count,
        explicit_all=build_count if build_count is not None else explicit_all,
        shuffle=shuffle,
        seed=seed,
        verbose=verbose,
        test_mode=test_mode,
        no_sandbox=no_sandbox,
        require_sandbox=require_sandbox,
        get_only=get_only,
        run_container=run_container,
        skip_cache_clean=no_cache_clean,
        more_args=_trailing_args(args),
    )
    run_bent(
        options,
        bench_file,
        conf_file,
        benchmark_names=parse_name_set(benchmarks),
        configuration_names=parse_name_set(configurations),
        report_file=report_file,
    )


@bent.command(name="list")
@click.option("-b", "benchmarks", default="", help="Comma-separated benchmark names")
@click.option("-B", "bench_file", default=DEFAULT_BENCH_FILE, show_default=True,
              help="Name of file describing benchmarks")
@click.option("-c", "configurations", default="", help="Comma-separated configuration names")
@click.option("-C", "conf_file", default=DEFAULT_CONF_FILE, show_default=True,
              help="Name of file describing configurations")
@click.option("-U", "no_sandbox", is_flag=True, help="Show benchmarks as unsandboxed")
@click.option("-S", "require_sandbox", is_flag=True,
              help="Show unsandboxable benchmarks as excluded")
@click.option("-T", "test_mode", is_flag=True, help="Select tests instead of benchmarks")
def list_matrix(benchmarks, bench_file, configurations, conf_file, no_sandbox,
                require_sandbox, test_mode):
    """List available benchmarks and configurations."""
    from bent.commands.list_cmd import run_list

    options = RunOptions(
        test_mode=test_mode, no_sandbox=no_sandbox, require_sandbox=require_sandbox
    )
    run_list(
        options,
        bench_file,
        conf_file,
        benchmark_names=parse_name_set(benchmarks),
        configuration_names=parse_name_set(configurations),
    )


@bent.command()
@click.option("-B", "bench_file", default=DEFAULT_BENCH_FILE, show_default=True,
              help="Name of file describing benchmarks")
@click.option("-C", "conf_file", default=DEFAULT_CONF_FILE, show_default=True,
              help="Name of file describing configurations")
def wiki(bench_file, conf_file):
    """Print benchmark info for a wiki table."""
    from bent.commands.list_cmd import run_wiki

    run_wiki(bench_file, conf_file)


@bent.command()
@click.option(
    "--seed-dir",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Copy seed files from this directory instead of the bundled samples",
)
def init(seed_dir):
    """Initialize a directory for running benchmarks."""
    from bent.commands.init_cmd import run_init

    run_init(".", seed_dir=seed_dir)


@bent.command()
@click.option("--verbose", "-v", is_flag=True, help="Show detailed version information")
def version(verbose):
    """Display bent version information."""
    from bent.commands.version_cmd import run_version

    if verbose:
        Logger.set_level("DEBUG")

    run_version(verbose=verbose)


if __name__ == "__main__":
    bent()
