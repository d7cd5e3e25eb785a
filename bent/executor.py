"""Process execution with concurrent stdout/stderr draining.

A child's two output pipes are drained by two independent reader tasks so
that a child filling one pipe never blocks while the parent waits on the
other. Each reader reads line by line and, under the sink's lock, appends
to the configuration's log and echoes to the console. Both readers finish
(on end-of-stream or read error) before the child is reaped.

Usage:
    from bent.executor import Command, OutputSink, ProcessExecutor

    executor = ProcessExecutor(verbose=1, workdir="/work")
    with OutputSink.open("testbin/20261019T101500.base.stdout") as sink:
        outcome = executor.run(Command(["./bench_base"]), sink=sink)
    if not outcome.ok:
        print(outcome.failure)
"""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, BinaryIO

import click

from bent.utils.logger import Logger

# Characters that force quoting when rendering a command line.
_SHELL_SPECIAL = set("\\ ;#*&$~?!|[]()<>{}`")
_HIDDEN_ENV_PREFIXES = ("PATH=", "HOME=", "USER=", "SHELL=")

EchoFunc = Callable[[bytes], None]


def _console_echo(data: bytes) -> None:
    click.echo(data, nl=False)


def escape(word: str) -> str:
    """Render one word for a copy-pasteable command line, with leading space."""
    word = word.replace("\\", "\\\\").replace("'", "\\'")
    if any(ch in _SHELL_SPECIAL for ch in word):
        return " '" + word + "'"
    return " " + word


@dataclass
class Command:
    """An external command: argv, environment and working directory.

    ``env`` of None inherits the parent environment.
    """

    args: list[str]
    env: dict[str, str] | None = None
    cwd: str | Path | None = None

    def as_command_line(self, workdir: str | Path | None = None) -> str:
        """Render as something that can be pasted into a shell."""
        line = "("
        if self.cwd is not None and str(self.cwd) != str(workdir or ""):
            line += "cd" + escape(str(self.cwd)) + ";"
        for name, value in (self.env or {}).items():
            entry = f"{name}={value}"
            if not entry.startswith(_HIDDEN_ENV_PREFIXES):
                line += escape(entry)
        for arg in self.args:
            line += escape(arg)
        return line + " )"


@dataclass
class ExecutionOutcome:
    """Result of one command.

    ``failure`` is empty on success and a descriptive message otherwise.
    ``output`` holds both streams in arrival order when capture was requested.
    """

    failure: str = ""
    returncode: int | None = None
    output: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return not self.failure


class OutputSink:
    """An append-only, lock-guarded log shared by all commands of one configuration."""

    def __init__(self, stream: BinaryIO, name: str = "") -> None:
        self._stream = stream
        self.name = name or getattr(stream, "name", "")
        self.lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(cls, path: str | Path) -> OutputSink:
        """Create (truncating) the log file at ``path``."""
        return cls(open(path, "wb"), name=str(path))

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> None:
        """Append ``data`` and flush. Callers hold ``lock``."""
        self._stream.write(data)
        self._stream.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stream.close()

    def __enter__(self) -> OutputSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass
class _Capture:
    """Per-invocation buffers, mutated under the invocation's lock."""

    combined: list[bytes] = field(default_factory=list)
    stderr: list[bytes] = field(default_factory=list)


class ProcessExecutor:
    """Runs external commands to completion and classifies failures.

    Never raises for a single command's failure; the outcome carries a
    failure string instead.
    """

    def __init__(
        self,
        verbose: int = 0,
        workdir: str | Path | None = None,
        echo: EchoFunc | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            verbose: Print each command line when > 0.
            workdir: Directory command lines are rendered relative to.
            echo: Console echo for child output (defaults to click.echo).
        """
        self.verbose = verbose
        self.workdir = workdir
        self._echo = echo or _console_echo
        self._logger = Logger.get("executor")

    def announce(self, command: Command, working_dot: bool = False) -> str:
        """Print the command line (verbose) or a progress dot, return the line."""
        line = command.as_command_line(self.workdir)
        if self.verbose > 0:
            click.echo(line)
        elif working_dot:
            click.echo(".", nl=False)
        return line

    def run(
        self,
        command: Command,
        sink: OutputSink | None = None,
        *,
        echo: bool = True,
        capture: bool = False,
        working_dot: bool = False,
    ) -> ExecutionOutcome:
        """Run ``command`` to completion.

        Args:
            command: The command to run.
            sink: Log receiving every line of both streams.
            echo: Echo child output to the console as it arrives.
            capture: Keep both streams (in arrival order) in the outcome.
            working_dot: Print a progress dot when not verbose.

        Returns:
            ExecutionOutcome; ``failure`` is empty on success.
        """
        line = self.announce(command, working_dot=working_dot)

        try:
            proc = subprocess.Popen(
                command.args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=command.env,
                cwd=command.cwd,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            return ExecutionOutcome(failure=f"Error [command start] running '{line}', {e}")
        except OSError as e:
            return ExecutionOutcome(failure=f"Error [pipe setup] running '{line}', {e}")

        assert proc.stdout is not None and proc.stderr is not None
        lock = sink.lock if sink is not None else threading.Lock()
        capture_buf = _Capture()

        def drain(stream: IO[bytes], is_stderr: bool) -> Exception | None:
            try:
                for chunk in iter(stream.readline, b""):
                    with lock:
                        if sink is not None:
                            try:
                                sink.write(chunk)
                            except (OSError, ValueError) as e:
                                self._logger.error(
                                    f"Error writing {len(chunk)} bytes to {sink.name}: {e}"
                                )
                        if echo:
                            self._echo(chunk)
                        if capture:
                            capture_buf.combined.append(chunk)
                        if is_stderr:
                            capture_buf.stderr.append(chunk)
            except (OSError, ValueError) as e:
                return e
            finally:
                stream.close()
            return None

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="bent-drain") as pool:
            done_out = pool.submit(drain, proc.stdout, False)
            done_err = pool.submit(drain, proc.stderr, True)
            err_out = done_out.result()
            err_err = done_err.result()

        returncode = proc.wait()
        stderr_text = b"".join(capture_buf.stderr).decode(errors="replace")
        outcome = ExecutionOutcome(
            returncode=returncode,
            output=b"".join(capture_buf.combined).decode(errors="replace"),
            stderr=stderr_text,
        )

        if returncode != 0:
            if returncode < 0:
                status = f"killed by signal {-returncode}"
            else:
                status = f"exit status {returncode}"
            outcome.failure = f"Error running '{line}', {status}, stderr = {stderr_text}"
        elif err_out is not None:
            outcome.failure = f"Error [read stdout] running '{line}', {err_out}"
        elif err_err is not None:
            outcome.failure = f"Error [read stderr] running '{line}', {err_err}"

        if outcome.failure:
            self._logger.debug(outcome.failure)
        return outcome
