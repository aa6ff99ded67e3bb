"""ValueStore: In-memory time-stamped samples and tracker state.

Two kinds of data live here:
    - Timed samples per request id, committed by PSR trackers and read by
      value processors (``latest``, ``samples_in_window``)
    - Keyed tracker state (gas price, balances, current challenge, ...)

All access goes through one lock, so commits from concurrent tracker cycles
interleave safely with reads.

.. code-block:: python

    >>> store = ValueStore()
    >>> store.commit(1, 100.0)
    TimedSample(value=100.0, created=...)
    >>> store.latest(1).value
    100.0
"""

from __future__ import annotations

import bisect
import threading
import time
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TimedSample:
    """A numeric value with its creation time.

    :ivar value: Sample value (already granularity-scaled).
    :ivar created: Unix timestamp of the commit.
    """

    value: float
    created: float


class ValueStore:
    """Thread-safe store of samples and tracker state.

    :ivar retention_seconds: Samples older than this, relative to a request's
        newest sample, are pruned on commit.
    """

    DEFAULT_RETENTION_SECONDS = 7 * 24 * 3600  # 1 week

    def __init__(self, retention_seconds: float = DEFAULT_RETENTION_SECONDS) -> None:
        """Initialize an empty store.

        :param retention_seconds: How long samples are kept (default: 1 week).
        :raises ValueError: If retention is not positive.
        """
        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be positive")
        self.retention_seconds = retention_seconds
        self._lock = threading.Lock()
        self._samples: dict[int, list[TimedSample]] = {}
        self._state: dict[str, Any] = {}

    def commit(
        self, request_id: int, value: float, created: float | None = None
    ) -> TimedSample:
        """Store a new sample for a request.

        :param request_id: Request the sample belongs to.
        :param value: Sample value.
        :param created: Unix timestamp, defaults to now.
        :returns: The stored TimedSample.
        """
        sample = TimedSample(
            value=float(value),
            created=time.time() if created is None else created,
        )
        with self._lock:
            samples = self._samples.setdefault(request_id, [])
            bisect.insort(samples, sample, key=lambda s: s.created)

            cutoff = samples[-1].created - self.retention_seconds
            if samples[0].created < cutoff:
                keep = bisect.bisect_left(samples, cutoff, key=lambda s: s.created)
                del samples[:keep]
        return sample

    def latest(self, request_id: int) -> TimedSample | None:
        """Get the most recent sample for a request.

        :param request_id: Request to query.
        :returns: Latest TimedSample or None if there is none.
        """
        with self._lock:
            samples = self._samples.get(request_id)
            return samples[-1] if samples else None

    def samples_in_window(
        self, request_id: int, now: float, duration: float
    ) -> list[TimedSample]:
        """Get samples created within ``(now - duration, now]``.

        :param request_id: Request to query.
        :param now: End of the window (Unix timestamp).
        :param duration: Window length in seconds.
        :returns: Samples ordered oldest first.
        """
        with self._lock:
            samples = self._samples.get(request_id, [])
            lo = bisect.bisect_right(samples, now - duration, key=lambda s: s.created)
            hi = bisect.bisect_right(samples, now, key=lambda s: s.created)
            return samples[lo:hi]

    def request_ids(self) -> list[int]:
        """Get ids of all requests that have samples."""
        with self._lock:
            return sorted(k for k, v in self._samples.items() if v)

    def put(self, key: str, value: Any) -> None:
        """Set a tracker state entry."""
        with self._lock:
            self._state[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a tracker state entry."""
        with self._lock:
            return self._state.get(key, default)

    def append(self, key: str, item: Any, limit: int) -> list[Any]:
        """Append to a list state entry, keeping only the newest ``limit`` items.

        The read and the write happen under one lock acquisition.

        :param key: State key holding the list.
        :param item: Item to append.
        :param limit: Maximum number of items kept.
        :returns: The updated list.
        :raises ValueError: If limit is not positive.
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        with self._lock:
            items = self._state.get(key, []) + [item]
            items = items[-limit:]
            self._state[key] = items
            return items
