"""Catalog of syscall, memory, network, filesystem and TCP metrics."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable

from rezolus.metrics import (
    HISTOGRAM_GROUPING_POWER,
    MAX_CGROUPS,
    Counter,
    CounterGroup,
    Gauge,
    Histogram,
    Registry,
)

HISTOGRAM_MAX_POWER = 64


@dataclass(frozen=True)
class _Spec:
    key: str
    name: str
    make: Callable[[], Any]
    description: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


def _cgroup_counters() -> CounterGroup:
    return CounterGroup(MAX_CGROUPS)


def _histogram() -> Histogram:
    return Histogram(HISTOGRAM_GROUPING_POWER, HISTOGRAM_MAX_POWER)


# (op, system-wide description, per-cgroup description)
_SYSCALL_OPS = (
    ("other", "The total number of syscalls",
     "The total number of syscalls on a per-cgroup basis"),
    ("read", "The number of read related syscalls (read, recvfrom, ...)",
     "The number of read related syscalls on a per-cgroup basis (read, recvfrom, ...)"),
    ("write", "The number of write related syscalls (write, sendto, ...)",
     "The number of write related syscalls on a per-cgroup basis (write, sendto, ...)"),
    ("poll", "The number of poll related syscalls (poll, select, epoll, ...)",
     "The number of poll related syscalls on a per-cgroup basis (poll, select, epoll, ...)"),
    ("lock", "The number of lock related syscalls (futex, ...)",
     "The number of lock related syscalls on a per-cgroup basis (futex, ...)"),
    ("time",
     "The number of time related syscalls (clock_gettime, clock_settime, clock_getres, ...)",
     "The number of time related syscalls on a per-cgroup basis "
     "(clock_gettime, clock_settime, clock_getres, ...)"),
    ("sleep", "The number of sleep related syscalls (nanosleep, clock_nanosleep, ...)",
     "The number of sleep related syscalls on a per-cgroup basis (nanosleep, clock_nanosleep, ...)"),
    ("socket",
     "The number of socket related syscalls (accept, connect, bind, setsockopt, ...)",
     "The number of socket related syscalls on a per-cgroup basis "
     "(accept, connect, bind, setsockopt, ...)"),
    ("yield", "The number of socket related syscalls (sched_yield, ...)",
     "The number of socket related syscalls on a per-cgroup basis (sched_yield, ...)"),
)


def _syscall_specs() -> list[_Spec]:
    system = [
        _Spec(f"SYSCALL_{op.upper()}", "syscall", Counter, description,
              {"unit": "syscalls", "op": op})
        for op, description, _ in _SYSCALL_OPS
    ]
    cgroup = [
        _Spec(f"CGROUP_SYSCALL_{op.upper()}", "cgroup_syscall", _cgroup_counters, description,
              {"unit": "syscalls", "op": op})
        for op, _, description in _SYSCALL_OPS
    ]
    return system + cgroup


def _meminfo_specs() -> list[_Spec]:
    entries = (
        ("TOTAL", "memory_total", "The total amount of system memory"),
        ("FREE", "memory_free", "The amount of system memory that is currently free"),
        ("AVAILABLE", "memory_available",
         "The amount of system memory that is available for allocation"),
        ("BUFFERS", "memory_buffers", "The amount of system memory used for buffers"),
        ("CACHED", "memory_cached", "The amount of system memory used by the page cache"),
    )
    return [
        _Spec(f"MEMORY_{key}", name, Gauge, description, {"unit": "bytes"})
        for key, name, description in entries
    ]


def _vmstat_specs() -> list[_Spec]:
    entries = (
        ("hit", "The number of allocations that succeeded on the intended node"),
        ("miss", "The number of allocations that did not succeed on the intended node"),
        ("foreign", "The number of allocations that were not intended for a node "
                    "that were serviced by this node"),
        ("interleave", "The number of interleave policy allocations that succeeded "
                       "on the intended node"),
        ("local", "The number of allocations that succeeded on the local node"),
        ("other", "The number of allocations that on this node that were allocated "
                  "by a process on another node"),
    )
    return [
        _Spec(f"MEMORY_NUMA_{kind.upper()}", f"memory_numa_{kind}", Counter, description)
        for kind, description in entries
    ]


def _network_specs() -> list[_Spec]:
    packets = {"unit": "packets"}
    return [
        _Spec("NETWORK_CARRIER_CHANGES", "network_carrier_changes", Counter,
              "The number of times the link has changes between the UP and DOWN states"),
        _Spec("NETWORK_RX_CRC_ERRORS", "network_receive_errors_crc", Counter,
              "The number of packets received which had CRC errors", packets),
        _Spec("NETWORK_RX_DROPPED", "network_receive_dropped", Counter,
              "The number of packets received but not processed. Usually due to lack of "
              "resources or unsupported protocol. Does not include hardware interface "
              "buffer exhaustion.", packets),
        _Spec("NETWORK_RX_MISSED_ERRORS", "network_receive_errors_missed", Counter,
              "The number of packets missed due to buffer exhaustion.", packets),
        _Spec("NETWORK_TX_DROPPED", "network_transmit_dropped", Counter,
              "The number of packets dropped on the transmit path. Usually due to lack "
              "of resources.", packets),
        _Spec("NETWORK_RX_BYTES", "network_bytes", Counter,
              "The number of bytes received over the network",
              {"direction": "receive", "unit": "bytes"}),
        _Spec("NETWORK_RX_PACKETS", "network_packets", Counter,
              "The number of packets received over the network",
              {"direction": "receive", "unit": "packets"}),
        _Spec("NETWORK_TX_BYTES", "network_bytes", Counter,
              "The number of bytes transmitted over the network",
              {"direction": "transmit", "unit": "bytes"}),
        _Spec("NETWORK_TX_PACKETS", "network_packets", Counter,
              "The number of packets transmitted over the network",
              {"direction": "transmit", "unit": "packets"}),
    ]


def _filesystem_specs() -> list[_Spec]:
    return [
        _Spec("FILESYSTEM_DESCRIPTORS_OPEN", "filesystem_descriptors_open", Gauge,
              "The number of file descriptors currently allocated"),
    ]


# Ordered as the kernel numbers the states, starting from 1.
TCP_STATES = (
    "ESTABLISHED",
    "SYN_SENT",
    "SYN_RECV",
    "FIN_WAIT1",
    "FIN_WAIT2",
    "TIME_WAIT",
    "CLOSE",
    "CLOSE_WAIT",
    "LAST_ACK",
    "LISTEN",
    "CLOSING",
    "NEW_SYN_RECV",
)


def _tcp_specs() -> list[_Spec]:
    states = [
        _Spec(f"TCP_CONN_STATE_{state}", "tcp_connection_state", Gauge,
              f"The current number of TCP connections in the {state} state",
              {"state": state.lower()})
        for state in TCP_STATES
    ]
    nanos = {"unit": "nanoseconds"}
    others = [
        _Spec("TCP_CONNECT_LATENCY", "tcp_connect_latency", _histogram,
              "Distribution of latency for establishing outbound connections (active open)",
              nanos),
        _Spec("TCP_PACKET_LATENCY", "tcp_packet_latency", _histogram,
              "Distribution of latency from a socket becoming readable until a userspace read",
              nanos),
        _Spec("TCP_JITTER", "tcp_jitter", _histogram,
              "Distribution of TCP latency jitter", nanos),
        _Spec("TCP_SRTT", "tcp_srtt", _histogram,
              "Distribution of TCP smoothed round-trip time", nanos),
        _Spec("TCP_RETRANSMIT", "tcp_retransmit", Counter,
              "The number of TCP packets that were re-transmitted", {"unit": "packets"}),
        _Spec("TCP_RX_BYTES", "tcp_bytes", Counter,
              "The number of bytes received over TCP",
              {"direction": "receive", "unit": "bytes"}),
        _Spec("TCP_RX_PACKETS", "tcp_packets", Counter,
              "The number of packets received over TCP",
              {"direction": "receive", "unit": "packets"}),
        _Spec("TCP_RX_SIZE", "tcp_size", _histogram,
              "Distribution of the size of TCP packets received after reassembly",
              {"direction": "receive", "unit": "bytes"}),
        _Spec("TCP_TX_BYTES", "tcp_bytes", Counter,
              "The number of bytes transmitted over TCP",
              {"direction": "transmit", "unit": "bytes"}),
        _Spec("TCP_TX_PACKETS", "tcp_packets", Counter,
              "The number of packets transmitted over TCP",
              {"direction": "transmit", "unit": "packets"}),
        _Spec("TCP_TX_SIZE", "tcp_size", _histogram,
              "Distribution of the size of TCP packets transmitted before fragmentation",
              {"direction": "transmit", "unit": "bytes"}),
    ]
    return states + others


def _linux_specs() -> list[_Spec]:
    return (
        _syscall_specs()
        + _meminfo_specs()
        + _vmstat_specs()
        + _network_specs()
        + _filesystem_specs()
        + _tcp_specs()
    )


def register(registry: Registry) -> dict[str, Any]:
    """Register the metrics for this platform and return them keyed by identifier."""
    specs = _linux_specs() if sys.platform.startswith("linux") else []
    return {
        spec.key: registry.register(spec.name, spec.make(), spec.description, spec.metadata)
        for spec in specs
    }