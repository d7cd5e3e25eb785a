"""Tests for the environment variable utility."""

import pytest

from bent.utils.env import (
    EnvAssignmentError,
    EnvVarTypeError,
    get_env,
    inherit_env,
    inherit_env_prefix,
    overlay_env,
    replace_env,
    split_assignment,
)


def test_get_env_basic(monkeypatch: pytest.MonkeyPatch):
    """Test getting set variables and missing variables with defaults."""
    monkeypatch.setenv("BENT_TEST_VAR", "test_value")
    monkeypatch.delenv("BENT_MISSING_VAR", raising=False)

    assert get_env("BENT_TEST_VAR") == "test_value"
    assert get_env("BENT_MISSING_VAR", default="default") == "default"
    assert get_env("BENT_MISSING_VAR") is None


def test_get_env_coercion(monkeypatch: pytest.MonkeyPatch):
    """Test type coercion for common types."""
    monkeypatch.setenv("BENT_BOOL_TRUE", "true")
    monkeypatch.setenv("BENT_BOOL_FALSE", "0")
    monkeypatch.setenv("BENT_INT", "123")
    monkeypatch.setenv("BENT_LIST", "a, b, c ")
    monkeypatch.setenv("BENT_INVALID_INT", "not_an_int")

    assert get_env("BENT_BOOL_TRUE", as_type=bool) is True
    assert get_env("BENT_BOOL_FALSE", as_type=bool) is False
    assert get_env("BENT_INT", as_type=int) == 123
    assert get_env("BENT_LIST", as_type=list) == ["a", "b", "c"]

    with pytest.raises(EnvVarTypeError):
        get_env("BENT_INVALID_INT", as_type=int)


def test_inherit_env_skips_empty(monkeypatch: pytest.MonkeyPatch):
    """Only non-empty process variables are inherited."""
    monkeypatch.setenv("HOME", "/home/gopher")
    monkeypatch.setenv("SHELL", "")

    env: dict[str, str] = {}
    inherit_env(env, "HOME")
    inherit_env(env, "SHELL")

    assert env == {"HOME": "/home/gopher"}


def test_inherit_env_prefix(monkeypatch: pytest.MonkeyPatch):
    """Every variable with the prefix is copied."""
    monkeypatch.setenv("GOFLAGS", "-mod=mod")
    monkeypatch.setenv("GOPROXY", "off")

    env = inherit_env_prefix({}, "GO")

    assert env["GOFLAGS"] == "-mod=mod"
    assert env["GOPROXY"] == "off"
    assert all(name.startswith("GO") for name in env)


def test_replace_env_returns_copy():
    """replace_env never mutates its input."""
    base = {"GOPATH": "/old", "PATH": "/bin"}
    updated = replace_env(base, "GOPATH", "/new")

    assert updated == {"GOPATH": "/new", "PATH": "/bin"}
    assert base["GOPATH"] == "/old"


def test_overlay_env_later_wins():
    """Entries apply in order; values may contain '='."""
    env = overlay_env({"A": "1"}, ["A=2", "B=x=y", "A=3"])
    assert env == {"A": "3", "B": "x=y"}


def test_split_assignment_rejects_bare_names():
    """Entries without '=' or with an empty name are errors."""
    assert split_assignment("GOGC=off") == ("GOGC", "off")
    assert split_assignment("EMPTY=") == ("EMPTY", "")
    with pytest.raises(EnvAssignmentError):
        split_assignment("GOGC")
    with pytest.raises(EnvAssignmentError):
        split_assignment("=value")
