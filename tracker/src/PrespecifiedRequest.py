"""PrespecifiedRequest: Declaratively configured data requests.

A PSR file lists the requests tracked ahead of time, each with its data
sources and aggregation strategy:

.. code-block:: json

    {"prespecifiedRequests": [
        {"requestID": 1, "transform": "median", "granularity": 1000,
         "apis": ["json(https://api.example.com/ticker).data.price"]}
    ]}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .Config import ConfigurationError
from .PayloadParser import parse_api_spec
from .ValueProcessor import DefaultProcessor, ValueProcessor, parse_processor
from .ValueStore import ValueStore

logger = logging.getLogger(__name__)


@dataclass
class PrespecifiedRequest:
    """A request whose sources and strategy are known in advance.

    :ivar request_id: Unique request id.
    :ivar granularity: Scaling factor applied to parsed payload values.
    :ivar processor: Aggregation strategy for this request.
    :ivar apis: Raw API specs, one per data source.
    :ivar transform: Tag the processor was selected by.
    :ivar urls: URL per data source.
    :ivar arg_groups: JSON path per data source, aligned with ``urls``.
    """

    request_id: int
    granularity: float
    processor: ValueProcessor
    apis: list[str] = field(default_factory=list)
    transform: str = ""
    urls: list[str] = field(init=False)
    arg_groups: list[list[str]] = field(init=False)

    def __post_init__(self) -> None:
        self.urls = []
        self.arg_groups = []
        for api in self.apis:
            url, args = parse_api_spec(api)
            self.urls.append(url)
            self.arg_groups.append(args)

    def transform_payloads(self, payloads: list[bytes | None]) -> float:
        """Apply this request's processor to freshly fetched payloads."""
        return self.processor.transform(self, payloads)

    def value(self) -> tuple[float, bool]:
        """Get this request's reportable value and readiness."""
        return self.processor.value(self)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], store: ValueStore, cycle: float
    ) -> PrespecifiedRequest:
        """Build a request from one PSR file entry.

        :param data: Entry with ``requestID``, ``apis``, ``transform`` and
            ``granularity`` keys.
        :param store: Value store for the request's processor.
        :param cycle: Tracker sleep cycle in seconds.
        :returns: New PrespecifiedRequest.
        :raises ConfigurationError: If the entry is malformed.
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"PSR entry must be an object, got {data!r}")

        try:
            request_id = int(data["requestID"])
        except KeyError as e:
            raise ConfigurationError(f"PSR entry missing requestID: {data}") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid requestID in PSR entry: {data}") from e

        apis = data.get("apis", [])
        if not isinstance(apis, list) or not all(isinstance(a, str) for a in apis):
            raise ConfigurationError(f"PSR {request_id}: apis must be a list of strings")

        tag = data.get("transform", "")
        if not isinstance(tag, str):
            raise ConfigurationError(f"PSR {request_id}: transform must be a string")

        try:
            granularity = float(data.get("granularity", 1))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"PSR {request_id}: invalid granularity") from e
        if granularity <= 0:
            raise ConfigurationError(f"PSR {request_id}: granularity must be positive")

        processor = parse_processor(tag, store, cycle)
        try:
            return cls(
                request_id=request_id,
                granularity=granularity,
                processor=processor,
                apis=apis,
                transform=tag,
            )
        except ValueError as e:
            raise ConfigurationError(f"PSR {request_id}: {e}") from e


def load_requests(
    path: str | Path, store: ValueStore, cycle: float
) -> dict[int, PrespecifiedRequest]:
    """Load all pre-specified requests from a PSR file.

    :param path: Path to the PSR JSON file.
    :param store: Value store shared by all request processors.
    :param cycle: Tracker sleep cycle in seconds.
    :returns: Dict mapping request id to request.
    :raises ConfigurationError: If the file is unreadable, malformed, uses an
        unknown transform or defines a request id twice.
    """
    try:
        with open(path, "r") as file:
            data = json.load(file)
    except OSError as e:
        raise ConfigurationError(f"Cannot read PSR file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Malformed PSR file {path}: {e}") from e

    entries = data.get("prespecifiedRequests") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(
            f"PSR file {path} must contain a 'prespecifiedRequests' list"
        )

    requests: dict[int, PrespecifiedRequest] = {}
    for entry in entries:
        request = PrespecifiedRequest.from_dict(entry, store, cycle)
        if request.request_id in requests:
            raise ConfigurationError(f"Duplicate PSR request ID {request.request_id}")
        requests[request.request_id] = request

    logger.info(f"Loaded {len(requests)} pre-specified requests from {path}")
    return requests


def default_request(
    request_id: int, granularity: float, store: ValueStore, apis: list[str]
) -> PrespecifiedRequest:
    """Build a mean/latest request for data that is not pre-specified."""
    return PrespecifiedRequest(
        request_id=request_id,
        granularity=granularity,
        processor=DefaultProcessor(store),
        apis=apis,
    )
