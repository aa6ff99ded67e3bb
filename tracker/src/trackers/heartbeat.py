"""Heartbeat tracker used to check scheduler wiring."""

import logging

from .base import Tracker, register_tracker

logger = logging.getLogger(__name__)

RUNS_KEY = "testRuns"


@register_tracker
class TestTracker(Tracker):
    """Counts its own runs; touches no external system."""

    name = "test"
    __test__ = False  # not a pytest test class

    async def exec(self) -> None:
        runs = self.store.get(RUNS_KEY, 0) + 1
        self.store.put(RUNS_KEY, runs)
        logger.info(f"Test tracker run #{runs}")
