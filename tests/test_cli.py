"""Tests for the bent command-line interface."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from bent.cli import _trailing_args, bent
from bent.workspace import WorkspaceError

BENCHES = """
[[Benchmarks]]
  Name = "uuid"
  Repo = "github.com/google/uuid"
  Benchmarks = "Benchmark"

[[Benchmarks]]
  Name = "gonum_mat"
  Repo = "gonum.org/v1/gonum/mat/"
  Benchmarks = "Benchmark(MulWorkspaceDense1000Hundredth|ScaleVec10000Inc20)"
  Disabled = true
"""

CONFS = """
[[Configurations]]
  Name = "Base"
  Root = "/opt/go-base"

[[Configurations]]
  Name = "Tip"
"""


@pytest.fixture
def runner(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "benchmarks-50.toml").write_text(BENCHES)
    (tmp_path / "configurations.toml").write_text(CONFS)
    return CliRunner()


def test_trailing_args():
    """A leading '-' or '--' separator is not passed on."""
    assert _trailing_args(()) == []
    assert _trailing_args(("-", "-test.count=1")) == ["-test.count=1"]
    assert _trailing_args(("--", "a", "--")) == ["a", "--"]
    assert _trailing_args(("-test.v",)) == ["-test.v"]


def test_list(runner):
    """list shows both sides of the matrix with markers."""
    result = runner.invoke(bent, ["list"])
    assert result.exit_code == 0, result.output
    assert result.output == (
        "Benchmarks:\n"
        "   uuid (repo=github.com/google/uuid)\n"
        "   gonum_mat (repo=gonum.org/v1/gonum/mat) (disabled)\n"
        "Configurations:\n"
        "   Base (goroot=/opt/go-base/)\n"
        "   Tip\n"
    )


def test_list_with_selection(runner):
    """-c restricts configurations; the rest are shown disabled."""
    result = runner.invoke(bent, ["list", "-c", "Tip"])
    assert result.exit_code == 0
    assert "   Base (goroot=/opt/go-base/) (disabled)\n" in result.output


def test_list_unknown_configuration(runner):
    """Unknown names exit with status 1."""
    result = runner.invoke(bent, ["list", "-c", "Nope"])
    assert result.exit_code == 1
    assert "Nope" in result.output


def test_wiki(runner):
    """wiki prints one escaped table row per benchmark."""
    result = runner.invoke(bent, ["wiki"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0] == " | uuid | | `github.com/google/uuid` | `Benchmark` | |"
    assert lines[1] == (
        " | gonum_mat | | `gonum.org/v1/gonum/mat/` | "
        "`Benchmark(MulWorkspaceDense1000Hundredth\\|ScaleVec10000Inc20)` | |"
    )


def test_missing_files(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """A missing configuration file exits with status 1."""
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(bent, ["wiki"])
    assert result.exit_code == 1
    assert "benchmarks-50.toml" in result.output


def test_run_requires_init(runner):
    """run refuses a directory without a Dockerfile."""
    result = runner.invoke(bent, ["run"])
    assert result.exit_code == 1
    assert "bent init" in result.output


def test_run_unknown_benchmark(runner, tmp_path):
    """run exits 1 on unknown benchmark names before doing anything."""
    (tmp_path / "Dockerfile").write_text("FROM ubuntu\n")
    result = runner.invoke(bent, ["run", "-b", "ghost"])
    assert result.exit_code == 1
    assert "ghost" in result.output
    assert not (tmp_path / "testbin").exists()


def test_run_rejects_bad_shuffle(runner):
    """Shuffle policies are limited to 0-3."""
    result = runner.invoke(bent, ["run", "-s", "7"])
    assert result.exit_code == 2


def test_run_options_reach_driver(runner, monkeypatch: pytest.MonkeyPatch):
    """Flags are gathered into run options."""
    seen = {}

    def fake_run_bent(options, bench_file, conf_file, **kwargs):
        seen["options"] = options
        seen["files"] = (bench_file, conf_file)
        seen.update(kwargs)

    monkeypatch.setattr("bent.commands.run_cmd.run_bent", fake_run_bent)

    result = runner.invoke(
        bent,
        ["run", "-N", "5", "-a", "-a", "-s", "3", "-v", "-U", "-T",
         "-c", "Base,Tip", "-B", "b.toml", "--", "-test.benchtime=3x"],
    )

    assert result.exit_code == 0, result.output
    options = seen["options"]
    assert options.count == 5
    assert options.explicit_all == 2
    assert options.build_count == 2
    assert options.shuffle == 3
    assert options.verbose == 1
    assert options.no_sandbox and options.test_mode
    assert options.more_args == ["-test.benchtime=3x"]
    assert seen["files"] == ("b.toml", "configurations.toml")
    assert seen["configuration_names"] == {"Base", "Tip"}
    assert seen["benchmark_names"] is None


def test_build_count_overrides_a(runner, monkeypatch: pytest.MonkeyPatch):
    """--build-count sets the repeat-build count directly."""
    seen = {}
    monkeypatch.setattr(
        "bent.commands.run_cmd.run_bent",
        lambda options, *_a, **_k: seen.setdefault("options", options),
    )
    result = runner.invoke(bent, ["run", "--build-count", "4"])
    assert result.exit_code == 0
    assert seen["options"].build_count == 4
    assert not seen["options"].always_rebuild


def test_init(runner, tmp_path, monkeypatch: pytest.MonkeyPatch):
    """init writes the seeds and a Dockerfile, then refuses a second time."""
    monkeypatch.delenv("BENT_SEED_DIR", raising=False)
    result = runner.invoke(bent, ["init"])
    assert result.exit_code == 0, result.output
    assert (tmp_path / "Dockerfile").exists()
    assert (tmp_path / "configurations-sample.toml").exists()

    (tmp_path / "gopath" / "src").mkdir()
    result = runner.invoke(bent, ["init"])
    assert result.exit_code == 1


def test_run_stat_file_failure_exits_2(runner, tmp_path, monkeypatch: pytest.MonkeyPatch):
    """A build-stat file that cannot be appended to ends the run with status 2."""

    def failing_execute_run(*_args, **_kwargs):
        raise WorkspaceError("There was an error opening testbin/Tip.build for append")

    (tmp_path / "Dockerfile").write_text("FROM ubuntu\n")
    monkeypatch.setattr("bent.commands.run_cmd.execute_run", failing_execute_run)

    result = runner.invoke(bent, ["run", "-c", "Tip"])

    assert result.exit_code == 2
    assert "for append" in result.output
