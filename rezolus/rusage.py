"""Resource usage of the agent's own process."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Union

try:
    import resource
except ImportError:  # not available on every platform
    resource = None

from rezolus.metrics import KIBIBYTES, MICROSECONDS, Counter, Gauge, Registry
from rezolus.sampler import Sampler

# (identifier, metric name, kind, description, metadata)
RUSAGE_METRICS = (
    ("RU_UTIME", "rezolus_cpu_usage", Counter,
     "The amount of CPU time Rezolus was executing in user mode",
     {"state": "user", "unit": "nanoseconds"}),
    ("RU_STIME", "rezolus_cpu_usage", Counter,
     "The amount of CPU time Rezolus was executing in system mode",
     {"state": "system", "unit": "nanoseconds"}),
    ("RU_MAXRSS", "rezolus_memory_usage_resident_set_size", Gauge,
     "The total amount of memory allocated by Rezolus", {"unit": "bytes"}),
    ("RU_MINFLT", "rezolus_memory_page_reclaims", Counter,
     "The number of page faults which were serviced by reclaiming a page", {}),
    ("RU_MAJFLT", "rezolus_memory_page_faults", Counter,
     "The number of page faults which required an I/O operation", {}),
    ("RU_INBLOCK", "rezolus_blockio_operations", Counter,
     "The number of reads from the filesystem", {"op": "read", "unit": "operations"}),
    ("RU_OUBLOCK", "rezolus_blockio_operations", Counter,
     "The number of writes to the filesystem", {"op": "write", "unit": "operations"}),
    ("RU_NVCSW", "rezolus_context_switch", Counter,
     "The number of voluntary context switches", {"kind": "voluntary"}),
    ("RU_NIVCSW", "rezolus_context_switch", Counter,
     "The number of involuntary context switches", {"kind": "involuntary"}),
)

_KEYS = frozenset(key for key, *_ in RUSAGE_METRICS)


def _nanoseconds(seconds: float) -> int:
    return round(seconds * 1_000_000) * MICROSECONDS


def rusage_values(usage: Any) -> dict[str, int]:
    """Convert a getrusage() result to metric values: times in ns, max RSS in bytes."""
    return {
        "RU_UTIME": _nanoseconds(usage.ru_utime),
        "RU_STIME": _nanoseconds(usage.ru_stime),
        "RU_MAXRSS": int(usage.ru_maxrss) * KIBIBYTES,
        "RU_MINFLT": int(usage.ru_minflt),
        "RU_MAJFLT": int(usage.ru_majflt),
        "RU_INBLOCK": int(usage.ru_inblock),
        "RU_OUBLOCK": int(usage.ru_oublock),
        "RU_NVCSW": int(usage.ru_nvcsw),
        "RU_NIVCSW": int(usage.ru_nivcsw),
    }


class RusageSampler(Sampler):
    """Reports the resource usage of the current process.

    `metrics` is either a registry, into which the metrics are registered, or
    a mapping from identifiers such as "RU_UTIME" to existing metrics.
    """

    def __init__(self, metrics: Union[Registry, Mapping[str, Any]]) -> None:
        if isinstance(metrics, Registry):
            self._metrics = {
                key: metrics.register(name, kind(), description, metadata)
                for key, name, kind, description, metadata in RUSAGE_METRICS
            }
        else:
            unknown = set(metrics) - _KEYS
            if unknown:
                raise KeyError(f"unknown rusage metrics: {sorted(unknown)}")
            self._metrics = dict(metrics)

    async def refresh(self) -> None:
        if resource is None:
            return
        try:
            usage = resource.getrusage(resource.RUSAGE_SELF)
        except OSError:
            return
        for key, value in rusage_values(usage).items():
            metric = self._metrics.get(key)
            if metric is not None:
                metric.set(value)