"""Timer abstraction used by the playback engine."""
import asyncio
from abc import ABC, abstractmethod
from typing import Callable, Optional


class Handle(ABC):
    """A pending callback that can be cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        pass


class Scheduler(ABC):
    """Single-threaded timer source.

    Callbacks run on the same logical thread as engine operations.
    """

    @abstractmethod
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> Handle:
        """Run callback once after delay_s seconds."""
        pass

    @abstractmethod
    def time(self) -> float:
        """Monotonic time in seconds."""
        pass


class AsyncioScheduler(Scheduler):
    """Schedules callbacks on an asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop or asyncio.get_running_loop()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_s, 0.0), callback)

    def time(self) -> float:
        return self.loop.time()
