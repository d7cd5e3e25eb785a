"""Tests for the experiment matrix: loading, selection and normalization."""

from __future__ import annotations

import pytest

from bent.config import ConfigLoadError, RunOptions, dump_todo, load_todo
from bent.matrix import (
    NO_MATCH,
    Matrix,
    MatrixError,
    UnknownNameError,
    parse_name_set,
    resolve_matrix,
)
from bent.models.matrix_models import Benchmark, Configuration, Todo

BENCHES = """
[[Benchmarks]]
  Name = "uuid"
  Repo = "github.com/google/uuid/"
  Benchmarks = "Benchmark"

[[Benchmarks]]
  Name = "minio"
  Repo = "github.com/minio/minio/cmd"
  Tests = "Test"
  Benchmarks = "BenchmarkGetObject"
  NotSandboxed = true

[[Benchmarks]]
  Name = "old"
  Repo = "example.com/old"
  Disabled = true
"""

CONFS = """
[[Configurations]]
  Name = "Base"
  Root = "$BENT_TEST_ROOT/go-base"
  RunEnv = ["GOGC=$BENT_TEST_GOGC"]

[[Configurations]]
  Name = "Tip"
  GcFlags = "-l=4"

[[Configurations]]
  Name = "Off"
  Disabled = true
"""


@pytest.fixture
def matrix_files(tmp_path):
    bench_file = tmp_path / "benchmarks.toml"
    conf_file = tmp_path / "configurations.toml"
    bench_file.write_text(BENCHES)
    conf_file.write_text(CONFS)
    return bench_file, conf_file


def make_matrix(benches: int = 2, configs: int = 2) -> Matrix:
    return Matrix(
        Todo(
            benchmarks=[Benchmark(name=f"b{i}", repo=f"example.com/b{i}") for i in range(benches)],
            configurations=[Configuration(name=f"c{i}") for i in range(configs)],
        )
    )


def test_load_todo_merges_files(matrix_files):
    """Both files are merged in source order."""
    todo = load_todo(*matrix_files)
    assert [b.name for b in todo.benchmarks] == ["uuid", "minio", "old"]
    assert [c.name for c in todo.configurations] == ["Base", "Tip", "Off"]
    assert todo.benchmarks[2].disabled is True


def test_load_todo_missing_file(tmp_path, matrix_files):
    """An unreadable file is a load error naming the file."""
    missing = tmp_path / "nope.toml"
    with pytest.raises(ConfigLoadError) as exc_info:
        load_todo(missing, matrix_files[1])
    assert "nope.toml" in str(exc_info.value)


def test_load_todo_invalid_toml(tmp_path, matrix_files):
    """Malformed TOML is a load error."""
    broken = tmp_path / "broken.toml"
    broken.write_text("[[Benchmarks]\nName = ")
    with pytest.raises(ConfigLoadError):
        load_todo(matrix_files[0], broken)


def test_load_todo_invalid_record(tmp_path, matrix_files):
    """A record missing a required key is a load error."""
    bad = tmp_path / "bad.toml"
    bad.write_text('[[Benchmarks]]\n  Name = "norepo"\n')
    with pytest.raises(ConfigLoadError):
        load_todo(bad, matrix_files[1])


def test_dump_todo_uses_pascal_case(matrix_files):
    """The matrix is printed back with the input's key spelling."""
    text = dump_todo(load_todo(*matrix_files))
    assert "[[Benchmarks]]" in text
    assert 'Name = "uuid"' in text
    assert "NotSandboxed = true" in text


def test_parse_name_set():
    """Empty means all; otherwise a set of names."""
    assert parse_name_set(None) is None
    assert parse_name_set("") is None
    assert parse_name_set("a,b,a") == {"a", "b"}


def test_effective_pairs_source_order():
    """Enabled pairs come out benchmark-major, in source order."""
    matrix = make_matrix()
    matrix.configurations[0].disable()

    pairs = [(b.name, c.name) for b, c in matrix.effective_pairs()]
    assert pairs == [("b0", "c1"), ("b1", "c1")]


def test_effective_pairs_sees_disabling_while_iterating():
    """A benchmark disabled mid-iteration drops out of the remaining pairs."""
    matrix = make_matrix(benches=2, configs=3)
    seen = []
    for bench, config in matrix.effective_pairs():
        seen.append((bench.name, config.name))
        if bench.name == "b0":
            bench.disable()

    assert seen == [("b0", "c0"), ("b1", "c0"), ("b1", "c1"), ("b1", "c2")]


def test_effective_pairs_config_major():
    """Configurations can form the outer loop; disabling is still seen lazily."""
    matrix = make_matrix(benches=3, configs=2)
    matrix.benchmarks[1].disable()
    seen = []
    for bench, config in matrix.effective_pairs(config_major=True):
        seen.append((bench.name, config.name))
        if config.name == "c0":
            config.disable()

    assert seen == [("b0", "c0"), ("b0", "c1"), ("b2", "c1")]


def test_select_by_name_overrides_file_disabled(matrix_files):
    """Explicitly selected entities run even if the file disables them."""
    matrix = resolve_matrix(
        *matrix_files,
        RunOptions(),
        benchmark_names={"old"},
        configuration_names={"Off", "Tip"},
    )
    assert [b.name for b in matrix.enabled_benchmarks()] == ["old"]
    assert [c.name for c in matrix.enabled_configurations()] == ["Tip", "Off"]


def test_unknown_names_are_fatal(matrix_files):
    """Requesting an undeclared name raises, naming it."""
    with pytest.raises(UnknownNameError) as exc_info:
        resolve_matrix(*matrix_files, RunOptions(), configuration_names={"Base", "Nope"})
    assert exc_info.value.names == ["Nope"]
    assert "Nope" in str(exc_info.value)

    with pytest.raises(MatrixError):
        resolve_matrix(*matrix_files, RunOptions(), benchmark_names={"ghost"})


def test_normalize_roots_and_repos(monkeypatch: pytest.MonkeyPatch, matrix_files):
    """Roots get variables expanded and a trailing slash; repos lose theirs."""
    monkeypatch.setenv("BENT_TEST_ROOT", "/opt")
    monkeypatch.setenv("BENT_TEST_GOGC", "400")

    matrix = resolve_matrix(*matrix_files, RunOptions())
    base = matrix.configurations[0]
    assert base.root == "/opt/go-base/"
    assert base.run_env == ["GOGC=400"]
    assert matrix.configurations[1].root == ""
    assert matrix.benchmarks[0].repo == "github.com/google/uuid"


def test_normalize_benchmark_mode(matrix_files):
    """Benchmark mode runs no tests; empty benchmark patterns match nothing."""
    matrix = resolve_matrix(*matrix_files, RunOptions())
    uuid, minio, old = matrix.benchmarks
    assert uuid.tests == NO_MATCH
    assert uuid.benchmarks == "Benchmark"
    assert minio.tests == NO_MATCH
    assert old.benchmarks == NO_MATCH


def test_normalize_test_mode(matrix_files):
    """Test mode runs tests and no benchmarks."""
    matrix = resolve_matrix(*matrix_files, RunOptions(test_mode=True))
    uuid, minio, _ = matrix.benchmarks
    assert uuid.tests == NO_MATCH
    assert minio.tests == "Test"
    assert minio.benchmarks == NO_MATCH


def test_normalize_no_sandbox(matrix_files):
    """-U marks every benchmark unsandboxed."""
    matrix = resolve_matrix(*matrix_files, RunOptions(no_sandbox=True))
    assert all(b.not_sandboxed for b in matrix.benchmarks)


def test_require_sandbox_on_linux(monkeypatch: pytest.MonkeyPatch, matrix_files):
    """On Linux an unsandboxed benchmark is moved into the sandbox."""
    monkeypatch.setattr("platform.system", lambda: "Linux")
    matrix = resolve_matrix(*matrix_files, RunOptions(require_sandbox=True))
    minio = matrix.benchmarks[1]
    assert minio.not_sandboxed is False
    assert minio.disabled is False


def test_require_sandbox_elsewhere(monkeypatch: pytest.MonkeyPatch, matrix_files):
    """Elsewhere an unsandboxed benchmark is excluded."""
    monkeypatch.setattr("platform.system", lambda: "Darwin")
    matrix = resolve_matrix(*matrix_files, RunOptions(require_sandbox=True))
    assert matrix.benchmarks[1].disabled is True
    assert matrix.benchmarks[0].disabled is False


def test_malformed_env_entry(tmp_path, matrix_files):
    """Environment overlays must be NAME=value."""
    conf = tmp_path / "badenv.toml"
    conf.write_text('[[Configurations]]\n  Name = "X"\n  GcEnv = ["GOEXPERIMENT"]\n')
    with pytest.raises(MatrixError):
        resolve_matrix(matrix_files[0], conf, RunOptions())
