"""Column profiling."""

from relinfer.analysis.profiling.profiler import DatasetProfiler

__all__ = ["DatasetProfiler"]
