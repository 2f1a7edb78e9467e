"""In-process registry of sources with an active run."""

import asyncio
from typing import Iterable, List, Set


class RunRegistry:
    """Tracks which sources are currently being synced by this process.

    Claims are all-or-nothing: either every requested source is free and
    all of them are claimed, or nothing changes.
    """

    def __init__(self):
        self._running: Set[str] = set()
        self.lock = asyncio.Lock()

    def busy(self, sources: Iterable[str]) -> List[str]:
        return [s for s in sources if s in self._running]

    def claim(self, sources: Iterable[str]) -> None:
        self._running.update(sources)

    def release(self, source: str) -> None:
        self._running.discard(source)

    def is_running(self, source: str) -> bool:
        return source in self._running

    @property
    def running_sources(self) -> List[str]:
        return sorted(self._running)

    @property
    def any_running(self) -> bool:
        return bool(self._running)
