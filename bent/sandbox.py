"""Sandbox management: one container image shared by every sandboxed run.

If any enabled benchmark must run isolated, a single image containing the
whole working directory (sources and every built binary) is built with
``docker build``. An identifier supplied by the caller is reused as is,
and the binaries it is expected to contain are not checked.
"""

import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import click

from bent.models.matrix_models import Benchmark
from bent.utils.logger import Logger

DEFAULT_RUNTIME = "docker"


class SandboxError(Exception):
    """Raised when the sandbox image cannot be built."""

    pass


@dataclass(frozen=True)
class SandboxHandle:
    """Identifier of the shared sandbox; empty when running unsandboxed."""

    container: str = ""
    reused: bool = False

    @property
    def sandboxed(self) -> bool:
        return bool(self.container)


def sandbox_requirements(benchmarks: Iterable[Benchmark]) -> tuple[bool, bool]:
    """Whether any enabled benchmark needs the sandbox, and any needs to avoid it."""
    need_sandbox = False
    need_not_sandbox = False
    for bench in benchmarks:
        if bench.disabled:
            continue
        need_sandbox = need_sandbox or not bench.not_sandboxed
        need_not_sandbox = need_not_sandbox or bench.not_sandboxed
    return need_sandbox, need_not_sandbox


class SandboxManager:
    """Builds (or adopts) the sandbox image once per run."""

    def __init__(
        self,
        workdir: str | Path,
        verbose: int = 0,
        runtime: str = DEFAULT_RUNTIME,
    ) -> None:
        self.workdir = Path(workdir)
        self.verbose = verbose
        self.runtime = runtime
        self._logger = Logger.get("sandbox")

    def build_command(self) -> list[str]:
        return [self.runtime, "build", "-q", "."]

    def build_image(self) -> str:
        """Build the image from the working directory and return its id.

        Raises:
            SandboxError: If the build fails or prints no identifier.
        """
        cmd = self.build_command()
        if self.verbose > 0:
            click.echo(f"( {' '.join(cmd)} )")
        else:
            click.echo("Making sandbox", nl=False)

        try:
            result = subprocess.run(
                cmd, cwd=self.workdir, capture_output=True, text=True, check=True
            )
        except subprocess.CalledProcessError as e:
            raise SandboxError(
                f"There was an error running '{self.runtime} build', stderr = {e.stderr}"
            ) from e
        except OSError as e:
            raise SandboxError(f"There was an error running '{self.runtime} build', {e}") from e

        container = result.stdout.strip()
        if not container:
            raise SandboxError(f"'{self.runtime} build' did not report an image id")
        if self.verbose == 0:
            click.echo()
        return container

    def prepare(
        self, benchmarks: Iterable[Benchmark], existing: str = ""
    ) -> SandboxHandle:
        """Return the handle shared by every run task.

        Args:
            benchmarks: The matrix's benchmarks (disabled ones are ignored).
            existing: A container to reuse; skips building entirely.

        Raises:
            SandboxError: If an image is needed and cannot be built.
        """
        if existing:
            self._logger.info(f"Reusing container {existing}")
            return SandboxHandle(container=existing, reused=True)
        need_sandbox, _ = sandbox_requirements(benchmarks)
        if not need_sandbox:
            return SandboxHandle()

        container = self.build_image()
        click.echo(f"Container for sandboxed bench/test runs is {container}")
        self._logger.debug(f"Built sandbox image {container}")
        return SandboxHandle(container=container)
