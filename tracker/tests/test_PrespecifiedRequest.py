"""Unit tests for PrespecifiedRequest and PSR file loading."""

import json
from pathlib import Path

import pytest

from tracker.src.Config import ConfigurationError
from tracker.src.PrespecifiedRequest import (
    PrespecifiedRequest,
    default_request,
    load_requests,
)
from tracker.src.ValueProcessor import (
    DefaultProcessor,
    MedianProcessor,
    TimeAverageProcessor,
)
from tracker.src.ValueStore import ValueStore


def write_psr(tmp_path: Path, entries) -> Path:
    path = tmp_path / "psr.json"
    path.write_text(json.dumps({"prespecifiedRequests": entries}))
    return path


class TestPrespecifiedRequest:
    """Test PrespecifiedRequest construction."""

    def test_api_specs_split(self) -> None:
        """urls and arg_groups are aligned with apis."""
        request = PrespecifiedRequest(
            request_id=1,
            granularity=1000,
            processor=DefaultProcessor(ValueStore()),
            apis=["json(https://a.test/t).price", "https://b.test/p"],
        )
        assert request.urls == ["https://a.test/t", "https://b.test/p"]
        assert request.arg_groups == [["price"], []]

    def test_transform_and_value(self) -> None:
        """Request delegates to its processor."""
        store = ValueStore()
        request = default_request(5, 1, store, ["json(https://a.test/t).price"])
        assert request.transform_payloads([b'{"price": 3}']) == 3.0
        assert request.value() == (0.0, False)
        store.commit(5, 3.0)
        assert request.value() == (3.0, True)

    def test_from_dict(self) -> None:
        """PSR entries map to request fields."""
        request = PrespecifiedRequest.from_dict(
            {
                "requestID": "2",
                "transform": "median",
                "granularity": 100,
                "apis": ["json(https://a.test/t).price"],
            },
            ValueStore(),
            60,
        )
        assert request.request_id == 2
        assert request.granularity == 100
        assert request.transform == "median"
        assert isinstance(request.processor, MedianProcessor)

    def test_from_dict_defaults(self) -> None:
        """Missing transform and granularity use defaults."""
        request = PrespecifiedRequest.from_dict({"requestID": 1}, ValueStore(), 60)
        assert request.granularity == 1
        assert type(request.processor) is DefaultProcessor
        assert request.apis == []

    def test_from_dict_missing_id(self) -> None:
        """requestID is required."""
        with pytest.raises(ConfigurationError, match="missing requestID"):
            PrespecifiedRequest.from_dict({"apis": []}, ValueStore(), 60)

    def test_from_dict_bad_apis(self) -> None:
        """apis must be a list of strings."""
        with pytest.raises(ConfigurationError, match="apis must be a list"):
            PrespecifiedRequest.from_dict(
                {"requestID": 1, "apis": "https://a.test"}, ValueStore(), 60
            )

    def test_from_dict_bad_api_spec(self) -> None:
        """Malformed API specs are configuration errors."""
        with pytest.raises(ConfigurationError, match="PSR 1"):
            PrespecifiedRequest.from_dict(
                {"requestID": 1, "apis": ["json(https://a.test)price"]},
                ValueStore(),
                60,
            )

    def test_from_dict_bad_granularity(self) -> None:
        """Granularity must be a positive number."""
        with pytest.raises(ConfigurationError, match="granularity"):
            PrespecifiedRequest.from_dict(
                {"requestID": 1, "granularity": 0}, ValueStore(), 60
            )

    def test_from_dict_unknown_transform(self) -> None:
        """Unknown transform tags fail at load time."""
        with pytest.raises(ConfigurationError, match="bogus"):
            PrespecifiedRequest.from_dict(
                {"requestID": 1, "transform": "bogus"}, ValueStore(), 60
            )


class TestLoadRequests:
    """Test load_requests()."""

    def test_load(self, tmp_path: Path) -> None:
        """All entries are loaded by id with their processors."""
        path = write_psr(
            tmp_path,
            [
                {"requestID": 1, "transform": "median", "apis": ["https://a.test"]},
                {"requestID": 2, "transform": "dayAvg", "apis": ["https://b.test"]},
                {"requestID": 3, "transform": "value", "apis": ["https://c.test"]},
            ],
        )
        store = ValueStore()
        requests = load_requests(path, store, 60)

        assert sorted(requests) == [1, 2, 3]
        assert isinstance(requests[1].processor, MedianProcessor)
        assert isinstance(requests[2].processor, TimeAverageProcessor)
        assert requests[2].processor.cycle == 60
        assert type(requests[3].processor) is DefaultProcessor
        assert requests[3].processor.store is store

    def test_duplicate_id(self, tmp_path: Path) -> None:
        """Duplicate request ids are rejected."""
        path = write_psr(tmp_path, [{"requestID": 1}, {"requestID": 1}])
        with pytest.raises(ConfigurationError, match="Duplicate PSR request ID 1"):
            load_requests(path, ValueStore(), 60)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="Cannot read PSR file"):
            load_requests(tmp_path / "nope.json", ValueStore(), 60)

    def test_malformed_file(self, tmp_path: Path) -> None:
        """Invalid JSON is a configuration error."""
        path = tmp_path / "psr.json"
        path.write_text("{")
        with pytest.raises(ConfigurationError, match="Malformed PSR file"):
            load_requests(path, ValueStore(), 60)

    def test_missing_list(self, tmp_path: Path) -> None:
        """The prespecifiedRequests list is required."""
        path = tmp_path / "psr.json"
        path.write_text(json.dumps({"requests": []}))
        with pytest.raises(ConfigurationError, match="prespecifiedRequests"):
            load_requests(path, ValueStore(), 60)
