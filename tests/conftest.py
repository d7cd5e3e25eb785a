"""Shared fixtures for bent tests."""

from __future__ import annotations

from io import StringIO

import pytest

from bent.executor import Command, ExecutionOutcome, OutputSink
from bent.utils.logger import Logger


@pytest.fixture(autouse=True)
def configured_logger() -> StringIO:
    """Every test runs with the logger configured and captured."""
    output = StringIO()
    Logger.configure(level="DEBUG", output=output, timestamps=False)
    return output


class FakeExecutor:
    """Records commands instead of running them.

    ``handler`` decides the outcome of each command and may write to the
    sink or the filesystem to imitate the real tool.
    """

    def __init__(self, handler=None) -> None:
        self.commands: list[Command] = []
        self.sinks: list[OutputSink | None] = []
        self.handler = handler

    def run(
        self,
        command: Command,
        sink: OutputSink | None = None,
        *,
        echo: bool = True,
        capture: bool = False,
        working_dot: bool = False,
    ) -> ExecutionOutcome:
        self.commands.append(command)
        self.sinks.append(sink)
        if self.handler is None:
            return ExecutionOutcome(returncode=0)
        return self.handler(command, sink)

    def argvs(self) -> list[list[str]]:
        return [list(c.args) for c in self.commands]


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def executor_factory():
    """Build a FakeExecutor with a custom outcome handler."""
    return FakeExecutor
