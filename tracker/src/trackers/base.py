"""Base tracker interface, shared HTTP client and the tracker registry.

Trackers are the jobs an external scheduler runs once per cycle. Each
registered name builds one or more tracker instances from a TrackerContext.

.. code-block:: python

    @register_tracker
    class MyTracker(Tracker):
        name = "mine"

        async def exec(self) -> None:
            payload = await self._get_bytes("https://api.example.com/x")
            ...

    trackers = create_tracker("mine", context)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, ClassVar

import httpx

from ..Config import ConfigurationError, TrackerConfig
from ..ValueStore import ValueStore

if TYPE_CHECKING:
    from web3 import Web3
    from web3.contract import Contract

    from ..PrespecifiedRequest import PrespecifiedRequest

logger = logging.getLogger(__name__)


@dataclass
class TrackerContext:
    """Collaborators shared by all trackers.

    :ivar config: Process configuration.
    :ivar store: Value store trackers write to.
    :ivar requests: Pre-specified requests by id.
    :ivar w3: Node connection, None when running without a node.
    :ivar contract: Oracle master contract, None without a node.
    """

    config: TrackerConfig
    store: ValueStore
    requests: dict[int, PrespecifiedRequest] = field(default_factory=dict)
    w3: Web3 | None = None
    contract: Contract | None = None


class Tracker(ABC):
    """Abstract base class for tracker jobs.

    Subclasses must implement:
        - name: Class variable with the registered tracker name
        - exec(): Async method running one tracker cycle

    :cvar name: Registered tracker name.
    :cvar requires_node: Whether the tracker needs web3 and the contract.
    :ivar context: Shared collaborators.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""
    requires_node: ClassVar[bool] = False

    def __init__(self, context: TrackerContext) -> None:
        """Initialize the tracker.

        :param context: Shared collaborators.
        :raises ConfigurationError: If the tracker needs a node and none is set.
        """
        if self.requires_node and (context.w3 is None or context.contract is None):
            raise ConfigurationError(
                f"Tracker '{self.name}' requires a node connection and contract address"
            )
        self.context = context

    @property
    def store(self) -> ValueStore:
        return self.context.store

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all tracker instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if Tracker._shared_client is None or Tracker._shared_client.is_closed:
            Tracker._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return Tracker._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if Tracker._shared_client is not None and not Tracker._shared_client.is_closed:
            await Tracker._shared_client.aclose()
        Tracker._shared_client = None

    @abstractmethod
    async def exec(self) -> None:
        """Run one tracker cycle."""
        pass

    async def _get_bytes(self, url: str) -> bytes | None:
        """Fetch a URL and return its body.

        :param url: Request URL.
        :returns: Response body, or None on timeout, network error or non-2xx.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(url, timeout=self.context.config.fetch_timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"[{self.name}] Request timeout for {url}: {e}")
            return None
        except httpx.RequestError as e:
            logger.warning(f"[{self.name}] Request failed for {url}: {e}")
            return None

        if not response.is_success:
            logger.warning(
                f"[{self.name}] HTTP {response.status_code} from {url}: "
                f"{response.text[:200]}"
            )
            return None
        return response.content


TrackerBuilder = Callable[[TrackerContext], list[Tracker]]

# Registry of tracker builders (populated by tracker module imports)
TRACKER_REGISTRY: dict[str, TrackerBuilder] = {}


def register_tracker(cls: type[Tracker]) -> type[Tracker]:
    """Decorator registering a tracker class that builds one instance.

    :param cls: Tracker class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the tracker has no name or the name is taken.
    """
    if not cls.name:
        raise ValueError(f"Tracker {cls.__name__} must define a 'name' class variable")
    register_builder(cls.name)(lambda context: [cls(context)])
    return cls


def register_builder(name: str) -> Callable[[TrackerBuilder], TrackerBuilder]:
    """Decorator registering a function that builds a group of trackers.

    :param name: Tracker name the builder answers to.
    :returns: Decorator returning the builder unchanged.
    """

    def decorator(builder: TrackerBuilder) -> TrackerBuilder:
        if name in TRACKER_REGISTRY:
            raise ValueError(f"Tracker name '{name}' registered twice")
        TRACKER_REGISTRY[name] = builder
        return builder

    return decorator


def create_tracker(name: str, context: TrackerContext) -> list[Tracker]:
    """Create the tracker(s) registered under a name.

    Names are case-sensitive.

    :param name: Tracker name (e.g., "gas", "psr").
    :param context: Shared collaborators.
    :returns: Non-empty list of trackers.
    :raises ConfigurationError: If the name is unknown or the trackers
        cannot be built from the context.
    """
    builder = TRACKER_REGISTRY.get(name)
    if builder is None:
        raise ConfigurationError(f"No tracker with the name {name}")
    return builder(context)


def create_trackers(names: list[str], context: TrackerContext) -> list[Tracker]:
    """Create all trackers for a list of names.

    :param names: Tracker names.
    :param context: Shared collaborators.
    :returns: All created trackers, in name order.
    :raises ConfigurationError: On the first unknown or unbuildable name.
    """
    trackers: list[Tracker] = []
    for name in names:
        trackers.extend(create_tracker(name, context))
    return trackers


def get_available_trackers() -> list[str]:
    """Get list of registered tracker names.

    :returns: Sorted list of tracker names.
    """
    return sorted(TRACKER_REGISTRY.keys())
