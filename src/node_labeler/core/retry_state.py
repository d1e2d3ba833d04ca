'''
retry_state.py
- In-memory retry tracking for reconcile keys.
- Centralized logic for failure counts, exponential backoff, and reset conditions.
'''

import threading
import time
from collections import defaultdict


class RetryState:
    """
    Tracks {key: {failures: int, last_attempt: float_timestamp}}.

    Shared by all worker threads, so every access goes through a lock.
    """

    def __init__(self, max_backoff):
        self.max_backoff = max_backoff
        self._state = defaultdict(lambda: {"failures": 0, "last_attempt": 0.0})
        self._lock = threading.Lock()

    def record_failure(self, key):
        """
        Increment the failure count and record the attempt timestamp.

        Returns:
            int: Consecutive failures for the key, including this one.
        """
        with self._lock:
            state = self._state[key]
            state["failures"] += 1
            state["last_attempt"] = time.time()
            return state["failures"]

    def failures(self, key):
        with self._lock:
            if key not in self._state:
                return 0
            return self._state[key]["failures"]

    def clear(self, key):
        """Reset the retry state for a key (e.g. after a clean reconcile)."""
        with self._lock:
            self._state.pop(key, None)

    def backoff(self, base, failures):
        """
        Exponential delay for the given failure count, never below `base`.

        Args:
            base (float): Delay for the first failure, in seconds.
            failures (int): Consecutive failures so far (1 for the first).

        Returns:
            float: Seconds to wait, capped at max_backoff.
        """
        exponent = max(failures - 1, 0)
        delay = max(base, base * (2 ** exponent))
        return min(delay, max(self.max_backoff, base))
