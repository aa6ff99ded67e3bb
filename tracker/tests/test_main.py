"""Unit tests for the CLI helpers."""

import asyncio
import json
import logging
from pathlib import Path

import httpx
import pytest

from tracker.main import build_context, report_values, run_loop, run_once
from tracker.src.Config import ConfigurationError, TrackerConfig
from tracker.src.trackers import Tracker, create_tracker


class FailingTracker(Tracker):
    name = "failing"

    async def exec(self) -> None:
        raise RuntimeError("boom")


def write_psr(tmp_path: Path) -> Path:
    path = tmp_path / "psr.json"
    path.write_text(
        json.dumps(
            {
                "prespecifiedRequests": [
                    {"requestID": 1, "transform": "median", "apis": ["https://a.test"]},
                    {"requestID": 2, "transform": "dayAvg", "apis": ["https://b.test"]},
                ]
            }
        )
    )
    return path


class TestBuildContext:
    """Test build_context()."""

    def test_loads_requests(self, tmp_path: Path) -> None:
        """PSRs are loaded with the configured cycle; no node without contract."""
        config = TrackerConfig(psr_file=str(write_psr(tmp_path)), tracker_cycle=60)
        context = build_context(config)
        assert sorted(context.requests) == [1, 2]
        assert context.requests[2].processor.cycle == 60
        assert context.w3 is None
        assert context.contract is None

    def test_missing_psr_file(self, tmp_path: Path) -> None:
        """A psr tracker without PSR file fails."""
        config = TrackerConfig(psr_file=str(tmp_path / "missing.json"))
        with pytest.raises(ConfigurationError, match="Cannot read PSR file"):
            build_context(config)

    def test_psr_file_optional(self, tmp_path: Path) -> None:
        """Without the psr tracker a missing PSR file is fine."""
        config = TrackerConfig(
            trackers=["test"], psr_file=str(tmp_path / "missing.json")
        )
        assert build_context(config).requests == {}

    def test_connects_with_contract(self, tmp_path: Path) -> None:
        """A contract address binds the master contract."""
        config = TrackerConfig(
            trackers=["test"],
            psr_file=str(tmp_path / "missing.json"),
            contract_address="0x0ba45a8b5d5575935b8158a88c631e9f9c95a2e5",
        )
        context = build_context(config)
        assert context.w3 is not None
        assert context.contract is not None


class TestRunOnce:
    """Test run_once() and report_values()."""

    def test_failure_isolated(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failing tracker does not stop the others."""
        config = TrackerConfig(trackers=["test"], psr_file=str(tmp_path / "x.json"))
        context = build_context(config)
        trackers = [FailingTracker(context)] + create_tracker("test", context)

        with caplog.at_level(logging.ERROR):
            asyncio.run(run_once(trackers))

        assert "boom" in caplog.text
        assert context.store.get("testRuns") == 1
        assert Tracker._shared_client is None

    def test_report_values(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Ready and not-ready requests are both reported."""
        config = TrackerConfig(psr_file=str(write_psr(tmp_path)), tracker_cycle=60)
        context = build_context(config)
        context.store.commit(1, 12.5)

        with caplog.at_level(logging.INFO):
            report_values(context.requests)

        assert "Request ID 1: 12.50" in caplog.text
        assert "Request ID 2: not ready" in caplog.text


class TestRunLoop:
    """Test run_loop()."""

    @staticmethod
    def mock_client() -> httpx.AsyncClient:
        answers = {"https://a.test": b"5", "https://b.test": b"100"}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=answers[str(request.url)])

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    def test_day_average_ready_across_passes(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Passes share one store, so a day average reaches its quorum."""
        # 8h cycle: 3 samples expected per day, 2 are enough
        config = TrackerConfig(
            psr_file=str(write_psr(tmp_path)), tracker_cycle=28800
        )
        context = build_context(config)
        trackers = create_tracker("psr", context)

        async def runner() -> None:
            Tracker._shared_client = self.mock_client()
            await run_loop(trackers, context.requests, period=0, passes=2)

        with caplog.at_level(logging.INFO):
            asyncio.run(runner())

        reports = [
            r.getMessage()
            for r in caplog.records
            if r.getMessage().startswith("Request ID 2:")
        ]
        assert len(reports) == 2
        assert "not ready" in reports[0]
        assert "Request ID 2: 100.00" in reports[1]
        assert context.requests[2].value() == (100.0, True)
        assert Tracker._shared_client is None

    def test_failure_does_not_stop_loop(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """A tracker failing every pass does not end the loop."""
        config = TrackerConfig(trackers=["test"], psr_file=str(tmp_path / "x.json"))
        context = build_context(config)
        trackers = [FailingTracker(context)] + create_tracker("test", context)

        with caplog.at_level(logging.ERROR):
            asyncio.run(run_loop(trackers, context.requests, period=0, passes=3))

        assert context.store.get("testRuns") == 3
        assert caplog.text.count("boom") == 3
