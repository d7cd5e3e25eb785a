"""Working directory layout, safety checks and initialization.

Layout under the working directory::

    Dockerfile            sandbox image recipe (created by ``bent init``)
    gopath/src/<repo>     fetched benchmark sources
    goroots/<config>/     private toolchain copy per configuration
    testbin/              binaries, build stats and run logs
"""

import shutil
from datetime import datetime
from importlib import resources
from pathlib import Path

from bent.models.matrix_models import Benchmark, Configuration
from bent.utils.env import get_env, inherit_env, inherit_env_prefix, replace_env

DOCKERFILE_CONTENT = """
FROM ubuntu
ADD . /
"""

INHERITED_ENV = ("PATH", "USER", "HOME", "SHELL")

SEED_FILES = (
    "benchmarks-50.toml",
    "benchmarks-trial.toml",
    "configurations-sample.toml",
)


class WorkspaceError(Exception):
    """Raised when the working directory is unusable for a run."""

    pass


class OutputSinkError(WorkspaceError):
    """Raised when a configuration's run log cannot be created."""

    pass


def make_runstamp(now: datetime | None = None) -> str:
    """Compact local timestamp used to name run logs (e.g. 20261019T101500)."""
    return (now or datetime.now()).strftime("%Y%m%dT%H%M%S")


class Workspace:
    """Canonical paths for one working directory."""

    def __init__(self, root: str | Path, testbin_dir: str = "testbin") -> None:
        self.root = Path(root).resolve()
        self.testbin_name = testbin_dir

    @property
    def gopath(self) -> Path:
        return self.root / "gopath"

    @property
    def goroots(self) -> Path:
        return self.root / "goroots"

    @property
    def testbin(self) -> Path:
        return self.root / self.testbin_name

    @property
    def dockerfile(self) -> Path:
        return self.root / "Dockerfile"

    def source_dir(self, bench: Benchmark) -> Path:
        """Directory where ``go test -c`` runs for ``bench``."""
        return self.gopath / "src" / bench.repo

    def sandbox_source_dir(self, bench: Benchmark) -> str:
        """The same directory as seen inside the sandbox image."""
        return "/gopath/src/" + bench.repo

    def root_copy(self, config: Configuration) -> Path:
        return self.goroots / config.name

    def binary_path(self, bench: Benchmark, config: Configuration) -> Path:
        return self.testbin / bench.binary_name(config)

    def sandbox_binary_path(self, bench: Benchmark, config: Configuration) -> str:
        return f"/{self.testbin_name}/{bench.binary_name(config)}"

    def build_stats_path(self, config: Configuration) -> Path:
        return self.testbin / f"{config.name}.build"

    def run_log_path(self, runstamp: str, config: Configuration) -> Path:
        return self.testbin / f"{runstamp}.{config.name}.stdout"

    def default_env(self) -> dict[str, str]:
        """Baseline environment for toolchain and benchmark processes.

        PATH, USER, HOME and SHELL plus every GO* variable from the current
        environment, with GOPATH pointing into the workspace.
        """
        env: dict[str, str] = {}
        for name in INHERITED_ENV:
            inherit_env(env, name)
        inherit_env_prefix(env, "GO")
        return replace_env(env, "GOPATH", str(self.gopath))

    # ------------------------------------------------------------------
    # Checks and setup
    # ------------------------------------------------------------------

    def check(self, initializing: bool = False) -> None:
        """Refuse to run where builds would clobber existing state.

        Raises:
            WorkspaceError: If gopath/pkg or gopath/bin exist, or the
                Dockerfile is missing and the directory is not being
                initialized.
        """
        if (self.gopath / "pkg").exists() or (self.gopath / "bin").exists():
            raise WorkspaceError(
                "Building/running tests will trash pkg and bin, please remove, "
                "rename or run in another directory."
            )
        if not initializing and not self.dockerfile.exists():
            raise WorkspaceError(
                "Missing 'Dockerfile', please run 'bent init' if you intend "
                "to use this directory."
            )

    def prepare(self) -> None:
        """Create gopath, goroots and testbin if missing."""
        for directory in (self.gopath, self.goroots, self.testbin):
            directory.mkdir(parents=True, exist_ok=True)

    def clean_build_outputs(self) -> None:
        """Remove gopath/pkg and gopath/bin left behind by a build."""
        shutil.rmtree(self.gopath / "pkg", ignore_errors=True)
        shutil.rmtree(self.gopath / "bin", ignore_errors=True)

    def initialize(self, seed_dir: str | Path | None = None) -> list[Path]:
        """Copy seed files into the directory and write a Dockerfile.

        Seed files come from ``seed_dir``, else ``$BENT_SEED_DIR``, else the
        samples shipped with bent.

        Returns:
            Paths written.

        Raises:
            WorkspaceError: If the directory looks initialized already, or
                a seed file cannot be copied.
        """
        if (self.gopath / "src").exists():
            raise WorkspaceError(
                "It looks like you've already initialized this directory, "
                "remove ./gopath if you want to reinit."
            )
        self.check(initializing=True)
        self.prepare()

        seed_dir = seed_dir or get_env("BENT_SEED_DIR")
        written: list[Path] = []
        for name in SEED_FILES:
            target = self.root / name
            try:
                if seed_dir:
                    shutil.copyfile(Path(seed_dir) / name, target)
                else:
                    source = resources.files("bent").joinpath("data", name)
                    target.write_bytes(source.read_bytes())
            except OSError as e:
                raise WorkspaceError(f"Error copying seed file {name}: {e}") from e
            written.append(target)

        try:
            self.dockerfile.write_text(DOCKERFILE_CONTENT)
        except OSError as e:
            raise WorkspaceError(f"There was an error creating Dockerfile: {e}") from e
        written.append(self.dockerfile)
        return written
