"""The sampler interface and a helper to refresh many samplers at once."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Iterable


class Sampler(ABC):
    """A source of metrics that updates them each time it is refreshed."""

    @abstractmethod
    async def refresh(self) -> None:
        """Read the underlying source and update the metrics."""


async def refresh_all(samplers: Iterable[Sampler]) -> None:
    """Refresh every sampler concurrently."""
    await asyncio.gather(*(sampler.refresh() for sampler in samplers))