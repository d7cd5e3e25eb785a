"""List and wiki commands - describe the declared benchmarks and configurations."""

import sys

import click

from bent.config import ConfigLoadError, RunOptions, load_todo
from bent.matrix import Matrix, MatrixError, resolve_matrix
from bent.models.matrix_models import Todo


def format_listing(matrix: Matrix) -> str:
    """Benchmarks with their repos, then configurations with their roots."""
    lines = ["Benchmarks:"]
    for bench in matrix.benchmarks:
        s = f"{bench.name} (repo={bench.repo})"
        if bench.disabled:
            s += " (disabled)"
        lines.append(f"   {s}")
    lines.append("Configurations:")
    for config in matrix.configurations:
        s = config.name
        if config.root:
            s += f" (goroot={config.root})"
        if config.disabled:
            s += " (disabled)"
        lines.append(f"   {s}")
    return "\n".join(lines) + "\n"


def format_wiki_table(todo: Todo) -> str:
    """One wiki-table row per benchmark; ``|`` in patterns is escaped."""
    rows = []
    for bench in todo.benchmarks:
        pattern = bench.benchmarks.replace("|", "\\|")
        rows.append(f" | {bench.name} | | `{bench.repo}` | `{pattern}` | |")
    return "".join(row + "\n" for row in rows)


def run_list(
    options: RunOptions,
    bench_file: str,
    conf_file: str,
    benchmark_names: set[str] | None = None,
    configuration_names: set[str] | None = None,
) -> None:
    """Print the matrix as it would be run, after selection and normalization."""
    try:
        matrix = resolve_matrix(
            bench_file, conf_file, options, benchmark_names, configuration_names
        )
    except (ConfigLoadError, MatrixError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(format_listing(matrix), nl=False)


def run_wiki(bench_file: str, conf_file: str) -> None:
    """Print the declared benchmarks as wiki-table rows."""
    try:
        todo = load_todo(bench_file, conf_file)
    except ConfigLoadError as e:
        click.echo(str(e), err=True)
        sys.exit(1)
    click.echo(format_wiki_table(todo), nl=False)
