"""Catalog of CPU, GPU, block I/O and scheduler metrics."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable

from rezolus.metrics import (
    HISTOGRAM_GROUPING_POWER,
    MAX_CGROUPS,
    MAX_CPUS,
    Counter,
    CounterGroup,
    Gauge,
    GaugeGroup,
    Histogram,
    Registry,
)

MAX_GPUS = 32
HISTOGRAM_MAX_POWER = 64


@dataclass(frozen=True)
class _Spec:
    key: str
    name: str
    make: Callable[[], Any]
    description: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


def _cpu_counters() -> CounterGroup:
    return CounterGroup(MAX_CPUS)


def _cgroup_counters() -> CounterGroup:
    return CounterGroup(MAX_CGROUPS)


def _gpu_gauges() -> GaugeGroup:
    return GaugeGroup(MAX_GPUS)


def _gpu_counters() -> CounterGroup:
    return CounterGroup(MAX_GPUS)


def _histogram() -> Histogram:
    return Histogram(HISTOGRAM_GROUPING_POWER, HISTOGRAM_MAX_POWER)


_CPU_CORES = _Spec(
    "CPU_CORES",
    "cpu_cores",
    Gauge,
    "The total number of logical cores that are currently online",
)

_CPU_STATES = (
    ("USER", "user", "The amount of CPU time spent executing normal tasks is user mode"),
    ("NICE", "nice", "The amount of CPU time spent executing low priority tasks in user mode"),
    ("SYSTEM", "system", "The amount of CPU time spent executing tasks in kernel mode"),
    ("SOFTIRQ", "softirq", "The amount of CPU time spent servicing softirqs"),
    ("IRQ", "irq", "The amount of CPU time spent servicing interrupts"),
    ("STEAL", "steal", "The amount of CPU time stolen by the hypervisor"),
    ("GUEST", "guest", "The amount of CPU time spent running a virtual CPU for a guest"),
    (
        "GUEST_NICE",
        "guest_nice",
        "The amount of CPU time spent running a virtual CPU for a guest in low priority mode",
    ),
)

_CGROUP_STATE_DESCRIPTIONS = {
    "user": "The amount of CPU time spent busy on a per-cgroup basis",
    "nice": "The amount of CPU time spent executing low priority tasks in user mode on a per-cgroup basis",
    "system": "The amount of CPU time spent executing tasks in kernel mode on a per-cgroup basis",
    "softirq": "The amount of CPU time spent servicing softirqs on a per-cgroup basis",
    "irq": "The amount of CPU time spent servicing interrupts on a per-cgroup basis",
    "steal": "The amount of CPU time stolen by the hypervisor on a per-cgroup basis",
    "guest": "The amount of CPU time spent running a virtual CPU for a guest on a per-cgroup basis",
    "guest_nice": "The amount of CPU time spent running a virtual CPU for a guest in low priority mode on a per-cgroup basis",
}


def _cpu_usage_specs() -> list[_Spec]:
    specs = [
        _Spec(
            f"CPU_USAGE_{key}",
            "cpu_usage",
            _cpu_counters,
            description,
            {"state": state, "unit": "nanoseconds"},
        )
        for key, state, description in _CPU_STATES
    ]
    specs += [
        _Spec(
            f"CGROUP_CPU_USAGE_{key}",
            "cgroup_cpu_usage",
            _cgroup_counters,
            _CGROUP_STATE_DESCRIPTIONS[state],
            {"state": state, "unit": "nanoseconds"},
        )
        for key, state, _ in _CPU_STATES
    ]
    return specs


def _cpu_perf_specs() -> list[_Spec]:
    return [
        _Spec("CPU_CYCLES", "cpu_cycles", _cpu_counters,
              "The number of elapsed CPU cycles", {"unit": "cycles"}),
        _Spec("CPU_INSTRUCTIONS", "cpu_instructions", _cpu_counters,
              "The number of instructions retired", {"unit": "instructions"}),
        _Spec("CGROUP_CPU_CYCLES", "cgroup_cpu_cycles", _cgroup_counters,
              "The number of elapsed CPU cycles on a per-cgroup basis", {"unit": "cycles"}),
        _Spec("CGROUP_CPU_INSTRUCTIONS", "cgroup_cpu_instructions", _cgroup_counters,
              "The number of elapsed CPU cycles on a per-cgroup basis", {"unit": "instructions"}),
    ]


def _cpu_frequency_specs() -> list[_Spec]:
    specs = []
    for key, name in (("APERF", "aperf"), ("MPERF", "mperf"), ("TSC", "tsc")):
        specs.append(_Spec(f"CPU_{key}", f"cpu_{name}", _cpu_counters, "", {"unit": "cycles"}))
        specs.append(
            _Spec(f"CGROUP_CPU_{key}", f"cgroup_cpu_{name}", _cgroup_counters, "", {"unit": "cycles"})
        )
    return specs


def _tlb_flush_specs() -> list[_Spec]:
    reasons = (
        ("TASK_SWITCH", "task_switch"),
        ("REMOTE_SHOOTDOWN", "remote_shootdown"),
        ("LOCAL_SHOOTDOWN", "local_shootdown"),
        ("LOCAL_MM_SHOOTDOWN", "local_mm_shootdown"),
        ("REMOTE_SEND_IPI", "remote_send_ipi"),
    )
    return [
        _Spec(f"TLB_FLUSH_{key}", "cpu_tlb_flush", _cpu_counters,
              "The number of tlb_flush events", {"reason": reason})
        for key, reason in reasons
    ]


def _gpu_specs() -> list[_Spec]:
    clock = "The current clock speed in Hertz (Hz)."
    return [
        _Spec("GPU_MEMORY_FREE", "gpu_memory", _gpu_gauges,
              "The amount of GPU memory free.", {"state": "free", "unit": "bytes"}),
        _Spec("GPU_MEMORY_USED", "gpu_memory", _gpu_gauges,
              "The amount of GPU memory used.", {"state": "used", "unit": "bytes"}),
        _Spec("GPU_PCIE_BANDWIDTH", "gpu_pcie_bandwidth", _gpu_gauges,
              "The PCIe bandwidth in Bytes/s.", {"direction": "receive", "unit": "bytes/second"}),
        _Spec("GPU_PCIE_THROUGHPUT_RX", "gpu_pcie_throughput", _gpu_gauges,
              "The current PCIe receive throughput in Bytes/s.",
              {"direction": "receive", "unit": "bytes/second"}),
        _Spec("GPU_PCIE_THROUGHPUT_TX", "gpu_pcie_throughput", _gpu_gauges,
              "The current PCIe transmit throughput in Bytes/s.",
              {"direction": "transmit", "unit": "bytes/second"}),
        _Spec("GPU_POWER_USAGE", "gpu_power_usage", _gpu_gauges,
              "The current power usage in milliwatts (mW).", {"unit": "milliwatts"}),
        _Spec("GPU_ENERGY_CONSUMPTION", "gpu_energy_consumption", _gpu_counters,
              "The energy consumption in milliJoules (mJ).", {"unit": "milliJoules"}),
        _Spec("GPU_TEMPERATURE", "gpu_temperature", _gpu_gauges,
              "The current temperature in degrees Celsius (C).", {"unit": "Celsius"}),
        _Spec("GPU_CLOCK_COMPUTE", "gpu_clock", _gpu_gauges, clock,
              {"clock": "compute", "unit": "Hz"}),
        _Spec("GPU_CLOCK_GRAPHICS", "gpu_clock", _gpu_gauges, clock,
              {"clock": "graphics", "unit": "Hz"}),
        _Spec("GPU_CLOCK_MEMORY", "gpu_clock", _gpu_gauges, clock,
              {"clock": "memory", "unit": "Hz"}),
        _Spec("GPU_CLOCK_VIDEO", "gpu_clock", _gpu_gauges, clock,
              {"clock": "video", "unit": "Hz"}),
        _Spec("GPU_UTILIZATION", "gpu_utilization", _gpu_gauges,
              "The running average percentage of time the GPU was executing one or more kernels. (0-100).",
              {"unit": "percentage"}),
        _Spec("GPU_MEMORY_UTILIZATION", "gpu_memory_utilization", _gpu_gauges,
              "The running average percentage of time that GPU memory was being read from or written to. (0-100).",
              {"unit": "percentage"}),
    ]


def _blockio_specs() -> list[_Spec]:
    ops = ("read", "write", "flush", "discard")
    sizes = [
        _Spec(f"BLOCKIO_{op.upper()}_SIZE", "blockio_size", _histogram,
              f"Distribution of blockio {op} operation sizes in bytes",
              {"op": op, "unit": "bytes"})
        for op in ops
    ]
    operations = [
        _Spec(f"BLOCKIO_{op.upper()}_OPS", "blockio_operations", Counter,
              f"The number of completed {op} operations for block devices",
              {"op": op, "unit": "operations"})
        for op in ("read", "write", "discard", "flush")
    ]
    verbs = {"read": "read", "write": "written", "discard": "discarded", "flush": "flushed"}
    byte_counts = [
        _Spec(f"BLOCKIO_{op.upper()}_BYTES", "blockio_bytes", Counter,
              f"The number of bytes {verbs[op]} for block devices",
              {"op": op, "unit": "bytes"})
        for op in ("read", "write", "discard", "flush")
    ]
    return sizes + operations + byte_counts


def _scheduler_specs() -> list[_Spec]:
    return [
        _Spec("SCHEDULER_RUNQUEUE_LATENCY", "scheduler_runqueue_latency", _histogram,
              "Distribution of the amount of time tasks were waiting in the runqueue",
              {"unit": "nanoseconds"}),
        _Spec("SCHEDULER_RUNNING", "scheduler_running", _histogram,
              "Distribution of the amount of time tasks were on-CPU", {"unit": "nanoseconds"}),
        _Spec("SCHEDULER_OFFCPU", "scheduler_offcpu", _histogram,
              "Distribution of the amount of time tasks were off-CPU", {"unit": "nanoseconds"}),
        _Spec("SCHEDULER_IVCSW", "scheduler_context_switch", Counter,
              "The number of involuntary context switches", {"kind": "involuntary"}),
    ]


def _macos_specs() -> list[_Spec]:
    states = (
        ("BUSY", "busy", "The amount of CPU time spent busy"),
        ("USER", "user", "The amount of CPU time spent executing normal tasks is user mode"),
        ("NICE", "nice", "The amount of CPU time spent executing low priority tasks in user mode"),
        ("SYSTEM", "system", "The amount of CPU time spent executing tasks in kernel mode"),
    )
    return [_CPU_CORES] + [
        _Spec(f"CPU_USAGE_{key}", "cpu_usage", Counter, description,
              {"state": state, "unit": "nanoseconds"})
        for key, state, description in states
    ]


def _linux_specs() -> list[_Spec]:
    return (
        [_CPU_CORES]
        + _cpu_usage_specs()
        + _cpu_perf_specs()
        + _cpu_frequency_specs()
        + _tlb_flush_specs()
        + _gpu_specs()
        + _blockio_specs()
        + _scheduler_specs()
    )


def register(registry: Registry) -> dict[str, Any]:
    """Register the metrics for this platform and return them keyed by identifier."""
    if sys.platform.startswith("linux"):
        specs = _linux_specs()
    elif sys.platform == "darwin":
        specs = _macos_specs()
    else:
        specs = []
    return {
        spec.key: registry.register(spec.name, spec.make(), spec.description, spec.metadata)
        for spec in specs
    }