"""Benchmark pipeline entrypoints."""


def run_benchmark(*args, **kwargs):
    from simbench.pipeline.benchmark import run_benchmark as _run_benchmark

    return _run_benchmark(*args, **kwargs)


def analyse_version_sets(*args, **kwargs):
    from simbench.pipeline.benchmark import analyse_version_sets as _analyse_version_sets

    return _analyse_version_sets(*args, **kwargs)


__all__ = ["run_benchmark", "analyse_version_sets"]
