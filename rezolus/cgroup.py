"""Naming of cgroups reported by the kernel-side collectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from rezolus.metrics import CounterGroup

ROOT_CGROUP_ID = 1
ROOT_CGROUP_NAME = "/"
NAME_KEY = "name"

_ESCAPED_DASH = "\\x2d"

_CPU_STATES = ("USER", "NICE", "SYSTEM", "SOFTIRQ", "IRQ", "STEAL", "GUEST", "GUEST_NICE")
_SYSCALL_OPS = ("OTHER", "READ", "WRITE", "POLL", "LOCK", "TIME", "SLEEP", "SOCKET", "YIELD")

_SAMPLER_GROUPS: dict[str, tuple[str, ...]] = {
    "cpu_frequency": ("CGROUP_CPU_APERF", "CGROUP_CPU_MPERF", "CGROUP_CPU_TSC"),
    "cpu_perf": ("CGROUP_CPU_CYCLES", "CGROUP_CPU_INSTRUCTIONS"),
    "cpu_usage": tuple(f"CGROUP_CPU_USAGE_{state}" for state in _CPU_STATES),
    "syscall_counts": tuple(f"CGROUP_SYSCALL_{op}" for op in _SYSCALL_OPS),
}


@dataclass(frozen=True)
class CgroupInfo:
    """A cgroup announcement: its id, depth and the raw names of it and two ancestors."""

    id: int
    level: int
    name: bytes = b""
    pname: bytes = b""
    gpname: bytes = b""


def decode_c_string(raw: bytes | bytearray | memoryview) -> str:
    """Decode a NUL-padded UTF-8 buffer, unescaping systemd's encoded dashes.

    Raises UnicodeDecodeError if the buffer is not valid UTF-8.
    """
    text = bytes(raw).decode("utf-8")
    return text.rstrip("\0").replace(_ESCAPED_DASH, "-")


def format_cgroup_name(name: str, pname: str, gpname: str, level: int) -> str:
    """Build a display path from a cgroup's name and those of its parent and grandparent."""
    if gpname:
        prefix = "..." if level > 3 else ""
        return f"{prefix}/{gpname}/{pname}/{name}"
    if pname:
        return f"/{pname}/{name}"
    if name:
        return f"/{name}"
    return ""


def cgroup_groups(sampler_name: str) -> tuple[str, ...]:
    """Return the identifiers of the per-cgroup metrics a sampler labels with names.

    Raises KeyError for a sampler without per-cgroup metrics.
    """
    try:
        return _SAMPLER_GROUPS[sampler_name]
    except KeyError:
        raise KeyError(f"no per-cgroup metrics for sampler {sampler_name!r}") from None


def set_cgroup_name(groups: Iterable[CounterGroup], id: int, name: str) -> None:
    """Attach a name to one cgroup entry in every group; empty names are ignored."""
    if not name:
        return
    for group in groups:
        group.insert_metadata(id, NAME_KEY, name)


def handle_cgroup_info(groups: Iterable[CounterGroup], info: CgroupInfo) -> str:
    """Name the cgroup described by an announcement and return the name given."""
    name = format_cgroup_name(
        decode_c_string(info.name),
        decode_c_string(info.pname),
        decode_c_string(info.gpname),
        info.level,
    )
    set_cgroup_name(groups, info.id, name)
    return name