"""
Tracker jobs run periodically by an external scheduler.

Usage:
    from tracker.src.trackers import create_tracker, get_available_trackers

    # Get list of registered tracker names
    available = get_available_trackers()
    # ['balance', 'currentVariables', 'disputeChecker', 'disputeStatus', 'fetchData', ...]

    # One tracker per name, except "psr" which builds one per request
    trackers = create_tracker("psr", context)
    await trackers[0].exec()
"""

# Import base classes and registry
from .base import (
    TRACKER_REGISTRY,
    Tracker,
    TrackerContext,
    create_tracker,
    create_trackers,
    get_available_trackers,
    register_builder,
    register_tracker,
)

# Import all tracker implementations to trigger registration
from .account import BalanceTracker, DisputeTracker, GasTracker, TributeTracker
from .challenge import CurrentVariablesTracker, RequestDataTracker, Top50Tracker
from .dispute_checker import DisputeChecker
from .heartbeat import TestTracker
from .psr import PSRTracker, build_psr_trackers

__all__ = [
    # Base classes
    "Tracker",
    "TrackerContext",
    # Registry functions
    "register_tracker",
    "register_builder",
    "create_tracker",
    "create_trackers",
    "get_available_trackers",
    "build_psr_trackers",
    "TRACKER_REGISTRY",
    # Tracker implementations
    "BalanceTracker",
    "CurrentVariablesTracker",
    "DisputeChecker",
    "DisputeTracker",
    "GasTracker",
    "PSRTracker",
    "RequestDataTracker",
    "TestTracker",
    "Top50Tracker",
    "TributeTracker",
]
