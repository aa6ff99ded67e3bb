"""ValueProcessor: Per-request aggregation strategies.

A processor has two jobs:
    - ``transform()``: combine the payloads fetched in one cycle into a value
    - ``value()``: compute the reportable value from stored history

Available strategies, selected by the ``transform`` tag of a request:

    ==========  =====================  ==========================
    tag         transform              value
    ==========  =====================  ==========================
    ``""``      mean                   latest sample
    ``value``   mean                   latest sample
    ``median``  median (upper middle)  latest sample
    ``dayAvg``  mean                   24h mean, 60% quorum
    ==========  =====================  ==========================

.. code-block:: python

    >>> store = ValueStore()
    >>> proc = parse_processor("median", store, cycle=60.0)
    >>> median([1.0, 2.0, 3.0, 4.0])
    3.0
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import TYPE_CHECKING, Callable

from .Config import ConfigurationError
from .PayloadParser import PayloadParseError, parse_payload
from .ValueStore import TimedSample, ValueStore

if TYPE_CHECKING:
    from .PrespecifiedRequest import PrespecifiedRequest

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600

# Fraction of the expected samples that must exist before a day average is reported.
QUORUM_RATIO = 0.6

# Decay constant of exp_time_weighted_mean.
EXP_DECAY_SECONDS = 86400 / 3


class ValueProcessor(ABC):
    """Strategy turning payloads and stored samples into request values."""

    @abstractmethod
    def transform(
        self, request: PrespecifiedRequest, payloads: list[bytes | None]
    ) -> float:
        """Combine freshly fetched payloads into a single value.

        :param request: Request the payloads were fetched for.
        :param payloads: One payload per API, None where the source failed.
        :returns: Aggregated value, 0 if no payload could be used.
        """
        pass

    @abstractmethod
    def value(self, request: PrespecifiedRequest) -> tuple[float, bool]:
        """Compute the currently reportable value from stored history.

        :param request: Request to compute the value for.
        :returns: Tuple of (value, ready). Do not report when not ready.
        """
        pass


class DefaultProcessor(ValueProcessor):
    """Mean of fresh payloads; reports the latest stored sample.

    :ivar store: Value store holding committed samples.
    """

    def __init__(self, store: ValueStore) -> None:
        self.store = store

    def transform(
        self, request: PrespecifiedRequest, payloads: list[bytes | None]
    ) -> float:
        return mean(parse_payloads(request, payloads))

    def value(self, request: PrespecifiedRequest) -> tuple[float, bool]:
        sample = self.store.latest(request.request_id)
        if sample is None:
            return 0.0, False
        return sample.value, True

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MedianProcessor(ValueProcessor):
    """Median of fresh payloads; value() is the default one.

    :ivar default: Processor handling value().
    """

    def __init__(self, store: ValueStore) -> None:
        self.default = DefaultProcessor(store)

    def transform(
        self, request: PrespecifiedRequest, payloads: list[bytes | None]
    ) -> float:
        return median(parse_payloads(request, payloads))

    def value(self, request: PrespecifiedRequest) -> tuple[float, bool]:
        return self.default.value(request)

    def __repr__(self) -> str:
        return "MedianProcessor()"


class TimeAverageProcessor(ValueProcessor):
    """Reports the mean of the last 24 hours of samples.

    Trackers run once per ``cycle``, so a full day holds ``24h / cycle``
    samples. Until at least 60% of them are stored the value is not ready.

    :ivar default: Processor handling transform().
    :ivar store: Value store holding committed samples.
    :ivar cycle: Seconds between samples.
    :ivar window: Averaging window in seconds.
    """

    def __init__(
        self,
        store: ValueStore,
        cycle: float,
        window: float = DAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the processor.

        :param store: Value store holding committed samples.
        :param cycle: Tracker sleep cycle in seconds.
        :param window: Averaging window in seconds (default: 24h).
        :param clock: Source of the current Unix time.
        :raises ConfigurationError: If cycle is not in (0, window].
        """
        if cycle <= 0 or cycle > window:
            raise ConfigurationError(
                f"Tracker cycle must be in (0, {window}] seconds, got {cycle}"
            )
        self.default = DefaultProcessor(store)
        self.store = store
        self.cycle = cycle
        self.window = window
        self.clock = clock

    @property
    def expected_count(self) -> int:
        """Number of samples a full window holds."""
        return int(self.window // self.cycle)

    def transform(
        self, request: PrespecifiedRequest, payloads: list[bytes | None]
    ) -> float:
        return self.default.transform(request, payloads)

    def value(self, request: PrespecifiedRequest) -> tuple[float, bool]:
        samples = self.store.samples_in_window(
            request.request_id, self.clock(), self.window
        )

        ratio = len(samples) / self.expected_count
        if ratio < QUORUM_RATIO:
            # Rough: samples keep arriving while we wait
            estimate = timedelta(seconds=round((QUORUM_RATIO - ratio) * self.window))
            logger.info(
                f"Insufficient data for request ID {request.request_id}, "
                f"expected in {estimate}"
            )
            return 0.0, False

        return mean([s.value for s in samples]), True

    def __repr__(self) -> str:
        return f"TimeAverageProcessor(cycle={self.cycle})"


PROCESSOR_TAGS = ("median", "value", "dayAvg", "")


def parse_processor(tag: str, store: ValueStore, cycle: float) -> ValueProcessor:
    """Create the processor selected by a request's transform tag.

    :param tag: One of ``"median"``, ``"value"``, ``"dayAvg"`` or ``""``.
    :param store: Value store the processor reads from.
    :param cycle: Tracker sleep cycle in seconds (used by ``dayAvg``).
    :returns: New processor instance.
    :raises ConfigurationError: If the tag is not recognized.
    """
    if tag == "median":
        return MedianProcessor(store)
    if tag == "value" or tag == "":
        return DefaultProcessor(store)
    if tag == "dayAvg":
        return TimeAverageProcessor(store, cycle)
    raise ConfigurationError(f"Unrecognized transformation in PSR: {tag!r}")


def parse_payloads(
    request: PrespecifiedRequest, payloads: list[bytes | None]
) -> list[float]:
    """Parse every usable payload of a request.

    Missing payloads, payloads without an argument group and payloads that
    fail to parse are skipped. When nothing is left an error is logged.

    :param request: Request defining granularity and argument groups.
    :param payloads: Raw payloads aligned with ``request.arg_groups``.
    :returns: Parsed values in payload order.
    """
    vals: list[float] = []
    for i, payload in enumerate(payloads):
        if payload is None or i >= len(request.arg_groups):
            continue
        try:
            vals.append(
                parse_payload(payload, request.granularity, request.arg_groups[i])
            )
        except PayloadParseError as e:
            logger.debug(f"Request {request.request_id}: payload {i} skipped: {e}")

    if not vals:
        logger.error(
            f"No successful API hits, no value stored for request ID {request.request_id}"
        )
    return vals


def mean(vals: list[float]) -> float:
    """Arithmetic mean, 0 for an empty list."""
    if not vals:
        return 0.0
    return sum(vals) / len(vals)


def median(vals: list[float]) -> float:
    """Element at index ``n // 2`` of the sorted values, 0 if empty.

    For even lengths this is the upper of the two middle values; they are
    not averaged.
    """
    if not vals:
        return 0.0
    ordered = sorted(vals)
    return ordered[len(ordered) // 2]


def exp_time_weighted_mean(
    samples: list[TimedSample], now: float | None = None
) -> float:
    """Exponentially time-weighted mean of samples.

    Weights relative to a fresh sample::

        new values     1.00
        6 hours old    0.50
        24 hours old   0.05

    The weighted sum is divided by the sample count, not by the weight sum.

    :param samples: Samples to average.
    :param now: Reference Unix time (default: current time).
    :returns: Weighted mean, 0 for no samples.
    """
    if not samples:
        return 0.0

    now = time.time() if now is None else now
    total = 0.0
    for s in samples:
        age = now - s.created
        total += s.value * math.exp(-age / EXP_DECAY_SECONDS)
    return total / len(samples)
