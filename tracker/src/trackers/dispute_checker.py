"""DisputeChecker: Flags mined values that disagree with local data.

Every NewValue event since the last scan is compared with the samples this
process stored around the mined timestamp. Values deviating by more than
``dispute_threshold_percent`` are logged and the newest of them kept under
``suspiciousValues`` for an operator to review.
"""

from __future__ import annotations

import asyncio
import logging

from ..ValueProcessor import mean
from .base import Tracker, TrackerContext, register_tracker

logger = logging.getLogger(__name__)

SUSPICIOUS_VALUES_KEY = "suspiciousValues"

# Only the newest flagged values are kept.
MAX_SUSPICIOUS_VALUES = 100

# Blocks scanned on the first run.
INITIAL_LOOKBACK_BLOCKS = 100


@register_tracker
class DisputeChecker(Tracker):
    """Compares mined values against stored samples.

    :ivar last_block: Last block already scanned, None before the first run.
    """

    name = "disputeChecker"
    requires_node = True

    def __init__(self, context: TrackerContext) -> None:
        super().__init__(context)
        self.last_block: int | None = None

    async def exec(self) -> None:
        current_block = await asyncio.to_thread(
            lambda: self.context.w3.eth.block_number
        )
        if self.last_block is None:
            from_block = max(0, current_block - INITIAL_LOOKBACK_BLOCKS)
        else:
            from_block = self.last_block + 1
        if from_block > current_block:
            return

        events = await asyncio.to_thread(
            self.context.contract.events.NewValue.get_logs,
            from_block=from_block,
            to_block=current_block,
        )
        for event in events:
            self.check_value(
                int(event["args"]["_requestId"]),
                float(event["args"]["_time"]),
                float(event["args"]["_value"]),
            )
        self.last_block = current_block

    def check_value(
        self, request_id: int, mined_time: float, mined_value: float
    ) -> float | None:
        """Compare one mined value with local samples around its timestamp.

        :param request_id: Request the value was mined for.
        :param mined_time: Unix timestamp of the mined value.
        :param mined_value: Mined value (granularity-scaled).
        :returns: Deviation percent, or None when there is nothing to compare.
        """
        if request_id not in self.context.requests:
            return None

        window = self.context.config.dispute_time_window
        samples = self.store.samples_in_window(
            request_id, mined_time + window / 2, window
        )
        if not samples:
            logger.debug(
                f"No local data for request ID {request_id} around {mined_time:.0f}"
            )
            return None

        local = mean([s.value for s in samples])
        if local == 0:
            return None

        deviation = abs(mined_value - local) / abs(local) * 100
        if deviation > self.context.config.dispute_threshold_percent:
            logger.warning(
                f"Suspicious value for request ID {request_id} at {mined_time:.0f}: "
                f"mined {mined_value}, local {local:.2f} ({deviation:.2f}% off)"
            )
            self.store.append(
                SUSPICIOUS_VALUES_KEY,
                {
                    "requestID": request_id,
                    "time": mined_time,
                    "value": mined_value,
                    "local": local,
                    "deviation": deviation,
                },
                limit=MAX_SUSPICIOUS_VALUES,
            )
        return deviation
