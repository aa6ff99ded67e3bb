"""Challenge trackers: on-chain request queue and off-chain data for it.

The oracle contract exposes the request currently being mined and a queue
of the most-tipped requests. ``fetchData`` fetches the value of the current
request when it is not one of the pre-specified requests.
"""

from __future__ import annotations

import asyncio
import logging

from ..PayloadParser import parse_api_spec
from ..PrespecifiedRequest import PrespecifiedRequest, default_request
from .base import Tracker, TrackerContext, register_tracker

logger = logging.getLogger(__name__)

CURRENT_VARIABLES_KEY = "currentVariables"
TOP50_KEY = "top50"


@register_tracker
class CurrentVariablesTracker(Tracker):
    """Stores the challenge and request currently being mined."""

    name = "currentVariables"
    requires_node = True

    async def exec(self) -> None:
        (
            challenge,
            request_id,
            difficulty,
            query_string,
            granularity,
            tip,
        ) = await asyncio.to_thread(
            self.context.contract.functions.getCurrentVariables().call
        )

        self.store.put(
            CURRENT_VARIABLES_KEY,
            {
                "challenge": bytes(challenge).hex(),
                "requestID": int(request_id),
                "difficulty": int(difficulty),
                "queryString": query_string,
                "granularity": int(granularity),
                "tip": int(tip),
            },
        )
        logger.debug(f"Current request ID {request_id} (tip {tip})")


@register_tracker
class Top50Tracker(Tracker):
    """Stores the queue of the most-tipped request ids."""

    name = "top50"
    requires_node = True

    async def exec(self) -> None:
        queue = await asyncio.to_thread(
            self.context.contract.functions.getRequestQ().call
        )
        # Index 0 is unused by the contract
        ids = [int(i) for i in queue if int(i) != 0]
        self.store.put(TOP50_KEY, ids)
        logger.debug(f"Request queue holds {len(ids)} requests")


@register_tracker
class RequestDataTracker(Tracker):
    """Fetches data for the current request if no PSR tracker covers it.

    :ivar requests: Ad-hoc requests built from on-chain query strings.
    """

    name = "fetchData"

    def __init__(self, context: TrackerContext) -> None:
        super().__init__(context)
        self.requests: dict[int, PrespecifiedRequest] = {}

    def _request_for(self, current: dict) -> PrespecifiedRequest | None:
        request_id = current["requestID"]
        cached = self.requests.get(request_id)
        if cached is not None and cached.apis == [current["queryString"]]:
            return cached

        if current["granularity"] <= 0:
            logger.warning(f"Request ID {request_id} has no granularity, skipping")
            return None
        try:
            parse_api_spec(current["queryString"])
        except ValueError as e:
            logger.warning(f"Request ID {request_id} has unusable query string: {e}")
            return None

        request = default_request(
            request_id,
            current["granularity"],
            self.store,
            [current["queryString"]],
        )
        self.requests[request_id] = request
        return request

    async def exec(self) -> None:
        current = self.store.get(CURRENT_VARIABLES_KEY)
        if current is None:
            logger.debug("No current request known yet")
            return

        request_id = current["requestID"]
        if request_id == 0 or request_id in self.context.requests:
            return

        request = self._request_for(current)
        if request is None:
            return

        payload = await self._get_bytes(request.urls[0])
        if payload is None:
            return

        value = request.transform_payloads([payload])
        self.store.commit(request_id, value)
        logger.debug(f"Request ID {request_id}: stored {value}")
