"""Pydantic models for the benchmark matrix."""

from bent.models.matrix_models import (
    MISSING_TIME,
    Benchmark,
    BuildStat,
    Configuration,
    Todo,
    title_case,
)

__all__ = [
    "MISSING_TIME",
    "Benchmark",
    "BuildStat",
    "Configuration",
    "Todo",
    "title_case",
]
