"""Per-interface network statistics summed across interfaces from sysfs."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from rezolus.metrics import U64_MAX, Counter
from rezolus.sampler import Sampler

DEFAULT_ROOT = "/sys/class/net"

# Statistic files, relative to each interface's statistics directory.
INTERFACE_STATS = (
    "../carrier_changes",
    "rx_crc_errors",
    "rx_dropped",
    "rx_missed_errors",
    "tx_dropped",
)

_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_u64(text: str) -> int | None:
    text = text.rstrip()
    if not _UNSIGNED.fullmatch(text):
        return None
    value = int(text)
    return value if value <= U64_MAX else None


def _read(file: BinaryIO) -> str:
    return file.read().decode("utf-8")


@dataclass
class _Stat:
    counter: Counter
    stat: str
    files: dict[str, BinaryIO] = field(default_factory=dict)


class SysfsSampler(Sampler):
    """Sums a statistic over network interfaces into a counter, for each statistic."""

    def __init__(
        self,
        metrics: Iterable[tuple[Counter, str]],
        interfaces: Iterable[str],
        root: str = DEFAULT_ROOT,
    ) -> None:
        interfaces = tuple(interfaces)
        base = Path(root)
        self._stats: list[_Stat] = []
        for counter, stat in metrics:
            entry = _Stat(counter, stat)
            for interface in interfaces:
                file = open(base / interface / "statistics" / stat, "rb", buffering=0)
                try:
                    valid = _parse_u64(_read(file)) is not None
                except (OSError, UnicodeDecodeError):
                    valid = False
                if valid:
                    entry.files[interface] = file
                else:
                    file.close()
            self._stats.append(entry)

    @property
    def counters(self) -> dict[str, Counter]:
        """The counter for each statistic, keyed by statistic file."""
        return {entry.stat: entry.counter for entry in self._stats}

    async def refresh(self) -> None:
        for entry in self._stats:
            total = 0
            for file in entry.files.values():
                try:
                    file.seek(0)
                except OSError:
                    continue
                try:
                    value = _parse_u64(_read(file))
                except (OSError, UnicodeDecodeError):
                    break
                if value is None:
                    break
                total = (total + value) & U64_MAX
            else:
                entry.counter.set(total)


def interfaces_sampler(interfaces: Iterable[str], root: str = DEFAULT_ROOT) -> SysfsSampler:
    """Build a sampler for carrier changes, receive errors and drops on the interfaces."""
    return SysfsSampler([(Counter(), stat) for stat in INTERFACE_STATS], interfaces, root)