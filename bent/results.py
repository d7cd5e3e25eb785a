"""End-of-run report: failures, build statistics and the sandbox used.

Supports multiple output formats: JSON, YAML, and text. The text form is
the summary printed after all run logs have been closed.

Usage:
    from bent.results import OutputFormat, RunReport

    report = RunReport()
    report.add_build_failure("There was an error running 'go test' ...(minio)\\n")
    report.add_run_failure("Error running '( ./minio_base ... )', exit status 1 ...")

    report.emit_stdout()
    report.emit("report.json", OutputFormat.JSON)
"""

import json
import sys
from datetime import UTC, datetime
from enum import Enum
from io import StringIO
from pathlib import Path
from typing import Any, TextIO

from bent.models.matrix_models import BuildStat


class OutputFormat(Enum):
    """Supported output formats for the run report."""

    JSON = "json"
    YAML = "yaml"
    TEXT = "text"  # The human-readable end-of-run summary


def format_for_path(path: str | Path) -> OutputFormat:
    """Pick an output format from a file name's suffix (default JSON)."""
    suffix = Path(path).suffix.lower()
    if suffix in (".yaml", ".yml"):
        return OutputFormat.YAML
    if suffix == ".txt":
        return OutputFormat.TEXT
    return OutputFormat.JSON


class RunReport:
    """Failures and build statistics accumulated over one run.

    Build failures cover fetch, std install and test compilation; run
    failures cover benchmark invocations. Neither ever stops the run.
    """

    def __init__(self) -> None:
        """Initialize an empty report."""
        self._build_failures: list[str] = []
        self._run_failures: list[str] = []
        self._build_stats: dict[str, list[BuildStat]] = {}
        self.container: str = ""
        self.container_reused: bool = False
        self._metadata: dict[str, Any] = {
            "timestamp_start": datetime.now(UTC).isoformat(),
            "timestamp_end": None,
            "bent_version": self._get_version(),
        }

    def _get_version(self) -> str:
        try:
            from bent import __version__

            return str(__version__)
        except (ImportError, AttributeError):
            return "unknown"

    def add_build_failure(self, message: str) -> None:
        self._build_failures.append(message)

    def add_run_failure(self, message: str) -> None:
        self._run_failures.append(message)

    def add_build_stat(self, config_name: str, stat: BuildStat) -> None:
        self._build_stats.setdefault(config_name, []).append(stat)

    def set_container(self, container: str, reused: bool = False) -> None:
        self.container = container
        self.container_reused = reused

    def finalize(self) -> None:
        """Mark the report as complete, setting the end timestamp."""
        self._metadata["timestamp_end"] = datetime.now(UTC).isoformat()

    @property
    def build_failures(self) -> list[str]:
        return list(self._build_failures)

    @property
    def run_failures(self) -> list[str]:
        return list(self._run_failures)

    @property
    def build_stats(self) -> dict[str, list[BuildStat]]:
        return {name: list(stats) for name, stats in self._build_stats.items()}

    @property
    def ok(self) -> bool:
        return not self._build_failures and not self._run_failures

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to a dictionary for serialization."""
        return {
            "metadata": self._metadata,
            "container": self.container or None,
            "build_failures": self._build_failures,
            "run_failures": self._run_failures,
            "build_stats": {
                name: [stat.model_dump() for stat in stats]
                for name, stats in self._build_stats.items()
            },
            "summary": {
                "builds": sum(len(stats) for stats in self._build_stats.values()),
                "build_failures": len(self._build_failures),
                "run_failures": len(self._run_failures),
            },
        }

    # -------------------------------------------------------------------------
    # Emission Methods
    # -------------------------------------------------------------------------

    def emit(
        self,
        output: str | Path | TextIO,
        format: OutputFormat = OutputFormat.JSON,
        indent: int = 2,
    ) -> None:
        """Emit the report to a file or stream.

        Args:
            output: File path or file-like object (e.g., sys.stdout).
            format: Output format (JSON, YAML, TEXT).
            indent: Indentation level for JSON/YAML.
        """
        self.finalize()

        if format == OutputFormat.JSON:
            content = json.dumps(self.to_dict(), indent=indent, default=str)
        elif format == OutputFormat.YAML:
            content = self._to_yaml(indent)
        elif format == OutputFormat.TEXT:
            content = self.summary_text()
        else:
            raise ValueError(f"Unknown format: {format}")

        if isinstance(output, str | Path):
            Path(output).write_text(content)
        else:
            output.write(content)
            if output is not sys.stdout and output is not sys.stderr:
                output.flush()

    def _to_yaml(self, indent: int = 2) -> str:
        import yaml  # type: ignore[import-untyped, unused-ignore]

        result: str = yaml.safe_dump(
            self.to_dict(), indent=indent, default_flow_style=False, sort_keys=False
        )
        return result

    def summary_text(self) -> str:
        """The end-of-run summary: sandbox reminder, run failures, build failures."""
        output = StringIO()
        if self.container and not self.container_reused:
            # Repeated from the start of the run so it doesn't get missed.
            output.write(f"Container for sandboxed bench/test runs is {self.container}\n")
        if self._run_failures:
            output.write("FAILURES:\n")
            for failure in self._run_failures:
                output.write(failure + "\n")
        if self._build_failures:
            output.write("Get and build failures:\n")
            for failure in self._build_failures:
                output.write(failure + "\n")
        return output.getvalue()

    def emit_stdout(self) -> None:
        """Print the end-of-run summary."""
        self.emit(sys.stdout, OutputFormat.TEXT)
