"""
work_queue.py
- Thread-safe queue of node names feeding the reconcile workers.
- Guarantees:
    - a key is handed to at most one worker at a time
    - adding a key that is already waiting is a no-op (coalescing)
    - a key added while it is being processed runs again once done() is called
    - add_after() delays a key; the earliest pending due time wins
"""

import heapq
import itertools
import threading
import time
from collections import deque


class WorkQueue:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        self._queue = deque()
        self._dirty = set()
        self._processing = set()
        self._waiting = {}
        self._heap = []
        self._seq = itertools.count()
        self._shutting_down = False

    def __len__(self):
        with self._cond:
            return len(self._queue)

    def _add_locked(self, key):
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def add(self, key):
        with self._cond:
            self._add_locked(key)

    def add_after(self, key, delay):
        """Make `key` ready after `delay` seconds (immediately if delay <= 0)."""
        with self._cond:
            if self._shutting_down:
                return
            if delay <= 0:
                self._add_locked(key)
                return
            due = self._clock() + delay
            current = self._waiting.get(key)
            if current is not None and current <= due:
                return
            if current is not None:
                self._drop_delayed_locked(key)
            self._waiting[key] = due
            heapq.heappush(self._heap, (due, next(self._seq), key))
            # wake a getter so it recomputes its wait timeout
            self._cond.notify()

    def forget(self, key):
        """Drop any delayed entry for `key` (e.g. the node was deleted)."""
        with self._cond:
            if self._waiting.pop(key, None) is not None:
                self._drop_delayed_locked(key)

    def _drop_delayed_locked(self, key):
        # at most one heap entry per waiting key
        self._heap = [entry for entry in self._heap if entry[2] != key]
        heapq.heapify(self._heap)

    def pending_delay(self, key):
        """Seconds until the delayed entry for `key` fires, or None."""
        with self._cond:
            due = self._waiting.get(key)
            if due is None:
                return None
            return max(due - self._clock(), 0.0)

    def _promote_due_locked(self):
        now = self._clock()
        while self._heap and self._heap[0][0] <= now:
            due, _, key = heapq.heappop(self._heap)
            # skip entries no longer tracked in _waiting
            if self._waiting.get(key) != due:
                continue
            del self._waiting[key]
            self._add_locked(key)

    def _next_due_in_locked(self):
        while self._heap and self._waiting.get(self._heap[0][2]) != self._heap[0][0]:
            heapq.heappop(self._heap)
        if not self._heap:
            return None
        return max(self._heap[0][0] - self._clock(), 0.0)

    def get(self, timeout=None):
        """
        Block until a key is ready and mark it as processing.

        Returns:
            str or None: None on shutdown or when `timeout` expires.
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                if self._shutting_down:
                    return None
                self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key

                wait = self._next_due_in_locked()
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key):
        """Release `key`; requeue it if it was added while processing."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty and not self._shutting_down:
                self._queue.append(key)
                self._cond.notify()

    def shutdown(self):
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    @property
    def shutting_down(self):
        with self._cond:
            return self._shutting_down
