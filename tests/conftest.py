"""Shared test fixtures."""
import heapq

import pytest

from playback.scheduler import Handle, Scheduler


class FakeHandle(Handle):
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Deterministic scheduler driven by the test instead of a clock."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = 0

    def call_later(self, delay_s, callback):
        handle = FakeHandle()
        self._seq += 1
        heapq.heappush(self._queue, (self.now + delay_s, self._seq, callback, handle))
        return handle

    def time(self):
        return self.now

    @property
    def pending(self):
        """Live (due, callback) pairs, soonest first."""
        return [(due, cb) for due, _, cb, handle in sorted(self._queue, key=lambda i: i[:2])
                if not handle.cancelled]

    def run_next(self):
        """Fire the next live callback. Returns False when nothing is pending."""
        while self._queue:
            due, _, callback, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = max(self.now, due)
            callback()
            return True
        return False

    def advance(self, seconds):
        """Move the clock forward, firing everything due on the way."""
        target = self.now + seconds
        while True:
            live = self.pending
            if not live or live[0][0] > target:
                break
            self.run_next()
        self.now = target

    def run_until_idle(self, limit=100000):
        fired = 0
        while fired < limit and self.run_next():
            fired += 1
        return fired


@pytest.fixture
def scheduler():
    return FakeScheduler()