"""PSR trackers: fetch, aggregate and store pre-specified requests.

One PSRTracker exists per configured request. Each cycle it fetches every
API of its request concurrently, hands the payloads to the request's
processor and commits the result to the value store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from ..Config import ConfigurationError
from .base import Tracker, TrackerContext, register_builder

if TYPE_CHECKING:
    from ..PrespecifiedRequest import PrespecifiedRequest

logger = logging.getLogger(__name__)


class PSRTracker(Tracker):
    """Tracker for a single pre-specified request.

    :ivar request: Request this tracker fetches.
    """

    name = "psr"

    def __init__(self, context: TrackerContext, request: PrespecifiedRequest) -> None:
        super().__init__(context)
        self.request = request

    def __repr__(self) -> str:
        return f"PSRTracker(request_id={self.request.request_id})"

    async def fetch_payloads(self) -> list[bytes | None]:
        """Fetch all APIs of the request.

        :returns: One payload per API, None where the fetch failed.
        """
        return list(
            await asyncio.gather(*(self._get_bytes(url) for url in self.request.urls))
        )

    async def exec(self) -> None:
        payloads = await self.fetch_payloads()

        # No source answered; nothing to store
        if all(p is None for p in payloads):
            logger.warning(
                f"No API responded for request ID {self.request.request_id}"
            )
            return

        value = self.request.transform_payloads(payloads)
        self.store.commit(self.request.request_id, value)
        logger.debug(f"Request ID {self.request.request_id}: stored {value}")


@register_builder("psr")
def build_psr_trackers(context: TrackerContext) -> list[Tracker]:
    """Build one PSRTracker per configured request.

    :param context: Shared collaborators holding the requests.
    :returns: Trackers ordered by request id.
    :raises ConfigurationError: If no requests are configured.
    """
    if not context.requests:
        raise ConfigurationError("No pre-specified requests configured for 'psr'")
    return [
        PSRTracker(context, context.requests[request_id])
        for request_id in sorted(context.requests)
    ]
