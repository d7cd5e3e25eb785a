"""Init command - prepare a directory for benchmarking."""

import sys
from pathlib import Path

import click

from bent.utils.logger import Logger
from bent.workspace import Workspace, WorkspaceError


def run_init(workdir: str | Path = ".", seed_dir: str | None = None) -> None:
    """Copy seed files and write a Dockerfile into ``workdir``."""
    logger = Logger.get("init")
    workspace = Workspace(workdir)
    try:
        written = workspace.initialize(seed_dir)
    except WorkspaceError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    for path in written:
        logger.debug(f"Wrote {path}")
    click.echo(f"Initialized {workspace.root}")
    click.echo(
        "Copy configurations-sample.toml to configurations.toml and adjust "
        "its roots, then run 'bent run -v'."
    )
