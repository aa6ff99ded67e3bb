"""
PSR Tracker - Value Aggregation Module

This module turns raw observations from off-chain sources into reportable
request values:
- PayloadParser: Raw API response to numeric sample
- ValueStore: Time-stamped samples and tracker state
- ValueProcessor: Per-request aggregation strategies (mean, median, day average)
- PrespecifiedRequest: Declarative request definitions and PSR file loading
- trackers: Tracker jobs and the name-based tracker factory
"""

from .Config import ConfigurationError, TrackerConfig
from .PayloadParser import PayloadParseError, parse_api_spec, parse_payload
from .PrespecifiedRequest import PrespecifiedRequest, load_requests
from .ValueProcessor import (
    DefaultProcessor,
    MedianProcessor,
    TimeAverageProcessor,
    ValueProcessor,
    parse_processor,
)
from .ValueStore import TimedSample, ValueStore

__all__ = [
    "ConfigurationError",
    "DefaultProcessor",
    "MedianProcessor",
    "PayloadParseError",
    "PrespecifiedRequest",
    "TimeAverageProcessor",
    "TimedSample",
    "TrackerConfig",
    "ValueProcessor",
    "ValueStore",
    "load_requests",
    "parse_api_spec",
    "parse_payload",
    "parse_processor",
]
