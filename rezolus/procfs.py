"""Samplers that read simple text files exposed by the kernel under /proc and /sys."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence

from rezolus.catalog_os import TCP_STATES
from rezolus.metrics import I64_MAX, I64_MIN, KIBIBYTES, U64_MAX, Counter, Gauge
from rezolus.sampler import Sampler

log = logging.getLogger(__name__)

CPU_ONLINE_PATH = "/sys/devices/system/cpu/online"
MEMINFO_PATH = "/proc/meminfo"
VMSTAT_PATH = "/proc/vmstat"
FILE_NR_PATH = "/proc/sys/fs/file-nr"
TCP_PATHS = ("/proc/net/tcp", "/proc/net/tcp6")

_SIGNED = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"\+?[0-9]+")
_HEX = re.compile(r"\+?[0-9a-fA-F]+")


def _parse_signed(text: str) -> int | None:
    if not _SIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if I64_MIN <= value <= I64_MAX else None


def _parse_unsigned(text: str) -> int | None:
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= U64_MAX else None


def _parse_state(text: str) -> int | None:
    if not _HEX.fullmatch(text):
        return None
    value = int(text, 16)
    return value if value <= 0xFF else None


def count_online_cpus(text: str) -> int | None:
    """Count the CPUs in a list such as "0-3,5".

    Returns None when a range has more than two bounds; raises ValueError when
    a bound is not a number or a range runs backwards.
    """
    online = 0
    for span in text.strip().split(","):
        parts = span.split("-")
        bounds = []
        for part in parts[:2]:
            value = _parse_unsigned(part)
            if value is None:
                raise ValueError(f"invalid cpu number {part!r} in {text!r}")
            bounds.append(value)
        if len(parts) > 2:
            return None
        if len(bounds) == 1:
            online += 1
        else:
            start, stop = bounds
            if stop + 1 < start:
                raise ValueError(f"cpu range {span!r} runs backwards")
            online += stop + 1 - start
    return online


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse meminfo text into sizes in bytes keyed by field name without its colon."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].endswith(":"):
            continue
        value = _parse_signed(parts[1])
        if value is not None:
            values[parts[0][:-1]] = value * KIBIBYTES
    return values


def parse_vmstat(text: str) -> dict[str, int]:
    """Parse vmstat text into unsigned values keyed by field name."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        value = _parse_unsigned(parts[1])
        if value is not None:
            values[parts[0]] = value
    return values


def parse_file_nr(text: str) -> int | None:
    """Return the number of allocated file descriptors from file-nr text, if well formed."""
    lines = text.splitlines()
    if not lines:
        return None
    parts = lines[0].split()
    if len(parts) != 3:
        return None
    return _parse_signed(parts[0])


def count_tcp_states(text: str) -> list[int]:
    """Count the sockets in each TCP state from a /proc/net/tcp table.

    The result has one entry per state, in the kernel's numbering order.
    """
    counts = [0] * len(TCP_STATES)
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 4:
            continue
        state = _parse_state(parts[3])
        if state is not None and 1 <= state <= len(counts):
            counts[state - 1] += 1
    return counts


class _ProcFile:
    """A file kept open and re-read from the start on every sample."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._file = open(path, "rb", buffering=0)

    def rewind(self) -> None:
        self._file.seek(0)

    def read_text(self) -> str:
        return self._file.read().decode("utf-8")

    def read_all(self) -> str:
        self.rewind()
        return self.read_text()


class CoresSampler(Sampler):
    """Reports the number of online CPUs."""

    def __init__(self, gauge: Gauge, path: str = CPU_ONLINE_PATH) -> None:
        self._gauge = gauge
        self._file = _ProcFile(path)

    async def refresh(self) -> None:
        online = count_online_cpus(self._file.read_all())
        if online is not None:
            self._gauge.set(online)


class MeminfoSampler(Sampler):
    """Reports selected meminfo fields, in bytes, to gauges keyed by field name."""

    def __init__(self, gauges: Mapping[str, Gauge], path: str = MEMINFO_PATH) -> None:
        self._gauges = dict(gauges)
        self._file = _ProcFile(path)

    async def refresh(self) -> None:
        try:
            text = self._file.read_all()
        except (OSError, ValueError):
            return
        for key, value in parse_meminfo(text).items():
            gauge = self._gauges.get(key)
            if gauge is not None:
                gauge.set(value)


class VmstatSampler(Sampler):
    """Reports selected vmstat fields to counters keyed by field name."""

    def __init__(self, counters: Mapping[str, Counter], path: str = VMSTAT_PATH) -> None:
        self._counters = dict(counters)
        self._file = _ProcFile(path)

    async def refresh(self) -> None:
        try:
            text = self._file.read_all()
        except (OSError, ValueError):
            return
        for key, value in parse_vmstat(text).items():
            counter = self._counters.get(key)
            if counter is not None:
                counter.set(value)


class DescriptorsSampler(Sampler):
    """Reports the number of allocated file descriptors."""

    def __init__(self, gauge: Gauge, path: str = FILE_NR_PATH) -> None:
        self._gauge = gauge
        self._file = _ProcFile(path)

    async def refresh(self) -> None:
        try:
            text = self._file.read_all()
        except (OSError, ValueError):
            return
        value = parse_file_nr(text)
        if value is not None:
            self._gauge.set(value)


class ConnectionStateSampler(Sampler):
    """Reports how many TCP sockets are in each connection state."""

    def __init__(self, gauges: Sequence[Gauge], paths: Iterable[str] = TCP_PATHS) -> None:
        self._gauges = list(gauges)
        if len(self._gauges) != len(TCP_STATES):
            raise ValueError(f"expected {len(TCP_STATES)} gauges, got {len(self._gauges)}")
        self._files: list[_ProcFile] = []
        for path in paths:
            try:
                self._files.append(_ProcFile(path))
            except OSError as error:
                log.error("Failed to open %s: %s", path, error)
        if not self._files:
            raise OSError("Could not open any file in /proc/net for this sampler")

    async def refresh(self) -> None:
        counts = [0] * len(TCP_STATES)
        for file in self._files:
            try:
                file.rewind()
            except OSError:
                continue
            try:
                text = file.read_text()
            except (OSError, ValueError):
                log.error("error reading %s", file.path)
                return
            counts = [total + more for total, more in zip(counts, count_tcp_states(text))]
        for gauge, value in zip(self._gauges, counts):
            gauge.set(value)