"""
Version command - displays bent version information
"""

import click

from bent.version import BENT_VERSION


def run_version(verbose: bool = False) -> None:
    """
    Display bent version information.

    Args:
        verbose: If True, show additional details like full hash and date
    """
    if verbose:
        click.echo(f"bent version {BENT_VERSION.full_version()}")
        click.echo("\nDetailed version information:")
        click.echo(f"  Semantic Version: {'.'.join(str(n) for n in BENT_VERSION.semver())}")
        click.echo(f"  Build Date:       {BENT_VERSION.date_string()}")
        click.echo(f"  Package Hash:     {BENT_VERSION.hash_short(16)}")
    else:
        click.echo(f"bent {BENT_VERSION}")
