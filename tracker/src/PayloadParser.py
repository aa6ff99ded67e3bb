"""PayloadParser: Convert raw API responses into numeric samples.

An API spec names a URL and a path into its JSON response:

    json(https://api.example.com/ticker).data.0.price

The path segments form the argument group used to interpret that source's
payload. The extracted number is scaled by the request granularity.

.. code-block:: python

    >>> url, args = parse_api_spec("json(https://x.io/t).data.price")
    >>> args
    ['data', 'price']
    >>> parse_payload(b'{"data": {"price": "1.5"}}', 1000, args)
    1500.0
"""

from __future__ import annotations

import json
import math
import re
from typing import Any

_API_SPEC_RE = re.compile(r"^json\((?P<url>[^)]+)\)(?P<path>.*)$")


class PayloadParseError(ValueError):
    """Raised when a payload cannot be converted into a sample."""

    pass


def parse_api_spec(api: str) -> tuple[str, list[str]]:
    """Split an API spec into its URL and argument group.

    A bare URL (no ``json(...)`` wrapper) has an empty argument group, so its
    payload must itself be a JSON number.

    :param api: API spec string.
    :returns: Tuple of (url, path segments).
    :raises ValueError: If the spec is empty or the path is malformed.
    """
    api = api.strip()
    if not api:
        raise ValueError("Empty API spec")

    match = _API_SPEC_RE.match(api)
    if match is None:
        return api, []

    url = match.group("url").strip()
    path = match.group("path")
    if not path:
        return url, []
    if not path.startswith("."):
        raise ValueError(f"Invalid API path '{path}' in '{api}'")

    args = path[1:].split(".")
    if any(not a for a in args):
        raise ValueError(f"Empty path segment in '{api}'")
    return url, args


def _walk(data: Any, args: list[str]) -> Any:
    for arg in args:
        if isinstance(data, dict):
            if arg not in data:
                raise PayloadParseError(f"Key '{arg}' not found")
            data = data[arg]
        elif isinstance(data, list):
            try:
                data = data[int(arg)]
            except (ValueError, IndexError) as e:
                raise PayloadParseError(f"Bad list index '{arg}': {e}") from e
        else:
            raise PayloadParseError(f"Cannot index {type(data).__name__} with '{arg}'")
    return data


def parse_payload(payload: bytes, granularity: float, args: list[str]) -> float:
    """Parse a raw payload into a granularity-scaled sample.

    :param payload: Raw response body.
    :param granularity: Scaling factor applied to the extracted value.
    :param args: Path into the decoded JSON document.
    :returns: Extracted value multiplied by granularity.
    :raises PayloadParseError: If decoding, path lookup or conversion fails.
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise PayloadParseError(f"Invalid JSON payload: {e}") from e

    value = _walk(data, args)

    # bool is an int subclass; "true" is not a price
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise PayloadParseError(f"Value {value!r} is not numeric")
    try:
        number = float(value)
    except (ValueError, OverflowError) as e:
        raise PayloadParseError(f"Value {value!r} is not numeric") from e
    scaled = number * granularity
    # NaN and infinities would poison every aggregate they enter
    if not math.isfinite(scaled):
        raise PayloadParseError(f"Value {value!r} is not finite")
    return scaled
