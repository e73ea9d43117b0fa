"""Benchmark fixture configuration."""

import pytest


@pytest.fixture()
def benchmark_config(benchmark):  # type: ignore[no-untyped-def]
    """Benchmark with warmup, grouped under the renderer."""
    benchmark.group = "apidiff-render"
    benchmark.warmup = True
    benchmark.min_rounds = 5
    return benchmark
