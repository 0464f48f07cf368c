"""Metric primitives: counters, gauges, grouped metrics, histograms and a registry."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Iterator

U64_MAX = 2**64 - 1
I64_MIN = -(2**63)
I64_MAX = 2**63 - 1

# Unit multipliers; time values are expressed in nanoseconds.
NANOSECONDS = 1
MICROSECONDS = 1_000
MILLISECONDS = 1_000_000
SECONDS = 1_000_000_000
KIBIBYTES = 1024

# Sizing shared by grouped metrics and histograms.
HISTOGRAM_GROUPING_POWER = 7
LATENCY_HISTOGRAM_MAX = 64
MAX_CPUS = 1024
MAX_CGROUPS = 4096


def _wrap_u64(value: int) -> int:
    return value & U64_MAX


def _wrap_i64(value: int) -> int:
    value &= U64_MAX
    return value - 2**64 if value > I64_MAX else value


def _check_counter_value(value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise ValueError(f"counter value out of range: {value}")
    return value


def _check_gauge_value(value: int) -> int:
    if value < I64_MIN or value > I64_MAX:
        raise ValueError(f"gauge value out of range: {value}")
    return value


class Counter:
    """A monotonically increasing unsigned 64-bit value that wraps on overflow."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def set(self, value: int) -> int:
        """Store a value and return the previous one."""
        value = _check_counter_value(value)
        with self._lock:
            previous, self._value = self._value, value
        return previous

    def add(self, delta: int) -> int:
        """Add to the counter (wrapping) and return the previous value."""
        _check_counter_value(delta)
        with self._lock:
            previous = self._value
            self._value = _wrap_u64(previous + delta)
        return previous


class Gauge:
    """A signed 64-bit value that can go up and down."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def set(self, value: int) -> int:
        """Store a value and return the previous one."""
        value = _check_gauge_value(value)
        with self._lock:
            previous, self._value = self._value, value
        return previous

    def add(self, delta: int) -> int:
        """Add a (possibly negative) delta, wrapping, and return the previous value."""
        _check_gauge_value(delta)
        with self._lock:
            previous = self._value
            self._value = _wrap_i64(previous + delta)
        return previous


class _Group:
    """A fixed number of indexed values, each with its own metadata."""

    _check = staticmethod(_check_counter_value)
    _wrap = staticmethod(_wrap_u64)

    def __init__(self, entries: int) -> None:
        if entries <= 0:
            raise ValueError("a group needs at least one entry")
        self._values = [0] * entries
        self._metadata: dict[int, dict[str, str]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._values)

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._values):
            raise IndexError(f"index {index} outside group of {len(self._values)}")

    def set(self, index: int, value: int) -> int:
        """Store a value at an index and return the previous one."""
        self._check_index(index)
        value = self._check(value)
        with self._lock:
            previous, self._values[index] = self._values[index], value
        return previous

    def add(self, index: int, delta: int) -> int:
        """Add to the value at an index (wrapping) and return the previous one."""
        self._check_index(index)
        self._check(delta)
        with self._lock:
            previous = self._values[index]
            self._values[index] = self._wrap(previous + delta)
        return previous

    def insert_metadata(self, index: int, key: str, value: str) -> None:
        """Attach a key/value pair to one entry of the group."""
        self._check_index(index)
        with self._lock:
            self._metadata.setdefault(index, {})[key] = value

    def metadata(self, index: int) -> dict[str, str]:
        """Return a copy of the metadata attached to an entry."""
        self._check_index(index)
        with self._lock:
            return dict(self._metadata.get(index, {}))

    def values(self) -> list[int]:
        """Return a snapshot of all values in index order."""
        with self._lock:
            return list(self._values)


class CounterGroup(_Group):
    """A group of unsigned counters indexed by CPU, cgroup or device."""

    def set(self, index: int, value: int) -> int:
        """Store a counter value at an index and return the previous one."""
        return super().set(index, value)

    def add(self, index: int, delta: int) -> int:
        """Add to the counter at an index (wrapping) and return the previous one."""
        return super().add(index, delta)

    def insert_metadata(self, index: int, key: str, value: str) -> None:
        """Attach a key/value pair to one counter of the group."""
        super().insert_metadata(index, key, value)

    def metadata(self, index: int) -> dict[str, str]:
        """Return a copy of the metadata attached to a counter."""
        return super().metadata(index)

    def values(self) -> list[int]:
        """Return a snapshot of all counters in index order."""
        return super().values()


class GaugeGroup(_Group):
    """A group of signed gauges indexed by CPU, cgroup or device."""

    _check = staticmethod(_check_gauge_value)
    _wrap = staticmethod(_wrap_i64)


class Histogram:
    """A log-linear histogram over unsigned 64-bit values.

    Values below 2**(grouping_power + 1) get one bucket each; every power of
    two above that is split into 2**grouping_power equal buckets, up to
    2**max_value_power - 1.
    """

    def __init__(self, grouping_power: int, max_value_power: int) -> None:
        if not 0 < max_value_power <= 64:
            raise ValueError("max_value_power must be between 1 and 64")
        if grouping_power < 0 or grouping_power + 1 > max_value_power:
            raise ValueError("grouping_power must be below max_value_power")
        self.grouping_power = grouping_power
        self.max_value_power = max_value_power
        self.max_value = 2**max_value_power - 1
        self._cutoff_power = grouping_power + 1
        self._cutoff_value = 2**self._cutoff_power
        self._divisions = 2**grouping_power
        upper = (max_value_power - self._cutoff_power) * self._divisions
        self._counts = [0] * (self._cutoff_value + upper)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._counts)

    @property
    def buckets(self) -> tuple[int, ...]:
        with self._lock:
            return tuple(self._counts)

    def bucket_index(self, value: int) -> int:
        """Return the index of the bucket holding a value."""
        if value < 0 or value > self.max_value:
            raise ValueError(f"value {value} outside histogram range")
        if value < self._cutoff_value:
            return value
        power = value.bit_length() - 1
        log_bin = power - self._cutoff_power
        offset = (value - (1 << power)) >> (power - self.grouping_power)
        return self._cutoff_value + log_bin * self._divisions + offset

    def _lower_bound(self, index: int) -> int:
        if index < self._cutoff_value:
            return index
        rel = index - self._cutoff_value
        power = rel // self._divisions + self._cutoff_power
        offset = rel % self._divisions
        return (1 << power) + (offset << (power - self.grouping_power))

    def bucket_range(self, index: int) -> tuple[int, int]:
        """Return the inclusive (lower, upper) values covered by a bucket."""
        if not 0 <= index < len(self._counts):
            raise IndexError(f"bucket {index} outside histogram of {len(self._counts)}")
        lower = self._lower_bound(index)
        if index == len(self._counts) - 1:
            return lower, self.max_value
        return lower, self._lower_bound(index + 1) - 1

    def increment(self, value: int, count: int = 1) -> None:
        """Record a value `count` times."""
        if count < 0:
            raise ValueError("count must not be negative")
        index = self.bucket_index(value)
        with self._lock:
            self._counts[index] = _wrap_u64(self._counts[index] + count)

    def total(self) -> int:
        """Return the number of values recorded."""
        with self._lock:
            return sum(self._counts)


@dataclass(frozen=True)
class Metric:
    """A registered metric with its name, description and metadata."""

    name: str
    metric: Any
    description: str = ""
    metadata: dict[str, str] = field(default_factory=dict)


class Registry:
    """An ordered collection of named metrics."""

    def __init__(self) -> None:
        self._entries: list[Metric] = []
        self._lock = threading.Lock()

    def register(self, name: str, metric: Any, description: str = "", metadata: dict[str, str] | None = None) -> Any:
        """Add a metric and return it; a repeated name and metadata pair is an error."""
        entry = Metric(name, metric, description, dict(metadata or {}))
        with self._lock:
            for existing in self._entries:
                if existing.name == name and existing.metadata == entry.metadata:
                    raise ValueError(f"metric {name!r} with metadata {entry.metadata} already registered")
            self._entries.append(entry)
        return metric

    def select(self, name: str) -> list[Metric]:
        """Return every registered metric with the given name."""
        with self._lock:
            return [entry for entry in self._entries if entry.name == name]

    def __iter__(self) -> Iterator[Metric]:
        with self._lock:
            return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)