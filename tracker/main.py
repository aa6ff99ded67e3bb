#!/usr/bin/env python3
"""PSR Tracker.

Fetches data for pre-specified requests from multiple off-chain sources,
aggregates it with the strategy configured per request and reports the
resulting values.

By default every configured tracker runs once per tracker cycle until
interrupted, so samples accumulate in one in-memory store and day averages
can reach their quorum. ``--once`` runs a single pass and exits.
"""

import argparse
import asyncio
import logging
import os
import sys

from .src.Config import ConfigurationError, TrackerConfig
from .src.ContractUtility import NETWORKS, ContractUtility
from .src.PrespecifiedRequest import PrespecifiedRequest, load_requests
from .src.trackers import (
    Tracker,
    TrackerContext,
    create_trackers,
    get_available_trackers,
)
from .src.ValueStore import ValueStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def build_context(config: TrackerConfig) -> TrackerContext:
    """Build the shared tracker context from configuration.

    Connects to a node only when a contract address is configured.

    :param config: Loaded configuration.
    :returns: Context with store, requests and optional node connection.
    :raises ConfigurationError: If the PSR file is invalid.
    """
    store = ValueStore()

    requests: dict[int, PrespecifiedRequest] = {}
    if "psr" in config.trackers or os.path.exists(config.psr_file):
        requests = load_requests(config.psr_file, store, config.tracker_cycle)

    context = TrackerContext(config=config, store=store, requests=requests)

    if config.contract_address:
        contract_utility = ContractUtility(config.network, config.node_url)
        context.w3 = contract_utility.w3
        context.contract = contract_utility.get_master_contract(
            config.contract_address
        )
        logger.info(f"Connected to {contract_utility.network}")

    return context


async def run_pass(trackers: list[Tracker]) -> None:
    """Run every tracker once, concurrently.

    A failing tracker is logged and does not stop the others.

    :param trackers: Trackers to run.
    """
    results = await asyncio.gather(
        *(t.exec() for t in trackers), return_exceptions=True
    )
    for tracker, result in zip(trackers, results, strict=True):
        if isinstance(result, BaseException):
            logger.error(f"{tracker!r} failed: {result}")


async def run_once(trackers: list[Tracker]) -> None:
    """Run a single pass and close the shared HTTP client."""
    try:
        await run_pass(trackers)
    finally:
        await Tracker.close_shared_client()


async def run_loop(
    trackers: list[Tracker],
    requests: dict[int, PrespecifiedRequest],
    period: float,
    passes: int | None = None,
) -> None:
    """Run passes every ``period`` seconds, reporting values after each.

    :param trackers: Trackers to run.
    :param requests: Requests whose values are reported.
    :param period: Seconds to sleep between passes.
    :param passes: Number of passes to run, None to run until cancelled.
    """
    logger.info(f"Starting tracker loop for {len(trackers)} trackers")
    count = 0
    try:
        while True:
            await run_pass(trackers)
            report_values(requests)
            count += 1
            if passes is not None and count >= passes:
                break
            await asyncio.sleep(period)
    finally:
        # Clean up shared HTTP client
        await Tracker.close_shared_client()


def report_values(requests: dict[int, PrespecifiedRequest]) -> None:
    """Log the reportable value of every pre-specified request."""
    for request_id in sorted(requests):
        request = requests[request_id]
        value, ready = request.value()
        if ready:
            logger.info(
                f"Request ID {request_id}: {value:.2f} ({request.processor!r})"
            )
        else:
            logger.info(f"Request ID {request_id}: not ready ({request.processor!r})")


def main() -> None:
    """Main entry point for the PSR Tracker CLI."""
    available_trackers = get_available_trackers()

    parser = argparse.ArgumentParser(
        description="PSR Tracker: Aggregated values for pre-specified requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Available trackers:
  {', '.join(available_trackers)}

Examples:
  # Fetch and aggregate all requests in psr.json
  python -m tracker.main --psr-file psr.json

  # Single pass, e.g. for a smoke test
  python -m tracker.main --psr-file psr.json --once

  # Track gas price and balance against a node as well
  python -m tracker.main --config config.json --trackers psr,gas,balance

Environment variables (CLI args take precedence):
  NETWORK, RPC_URL, CONTRACT_ADDRESS, PUBLIC_ADDRESS, PRIVATE_KEY,
  TRACKER_CYCLE, TRACKERS, PSR_FILE, FETCH_TIMEOUT,
  DISPUTE_THRESHOLD_PERCENT, DISPUTE_TIME_WINDOW
""",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to a JSON config file",
        default=os.environ.get("CONFIG_FILE"),
    )

    parser.add_argument(
        "--trackers",
        type=str,
        help=f"Comma-separated trackers. Available: {', '.join(available_trackers)}",
    )

    parser.add_argument(
        "--psr-file",
        dest="psr_file",
        type=str,
        help="Path to the pre-specified request definitions",
    )

    parser.add_argument(
        "--network",
        type=str,
        help=f"Network to connect to ({', '.join(NETWORKS)})",
    )

    parser.add_argument(
        "--contract-address",
        dest="contract_address",
        type=str,
        help="Address of the oracle master contract (enables node trackers)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single pass and exit instead of looping every tracker cycle",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = TrackerConfig.load(args.config)
        if args.trackers:
            config.trackers = [t.strip() for t in args.trackers.split(",") if t.strip()]
        if args.psr_file:
            config.psr_file = args.psr_file
        if args.network:
            config.network = args.network
        if args.contract_address:
            config.contract_address = args.contract_address

        if not config.trackers:
            parser.error("At least one tracker must be specified")

        context = build_context(config)
        trackers = create_trackers(config.trackers, context)
    except ConfigurationError as e:
        parser.error(str(e))

    # Log configuration
    logger.info("=" * 60)
    logger.info("PSR Tracker")
    logger.info("=" * 60)
    logger.info(f"Network:           {config.network}")
    logger.info(f"Trackers:          {', '.join(config.trackers)}")
    logger.info(f"PSR File:          {config.psr_file}")
    logger.info(f"Requests:          {len(context.requests)}")
    logger.info(f"Tracker Cycle:     {config.tracker_cycle}s")
    logger.info(f"Fetch Timeout:     {config.fetch_timeout}s")
    logger.info("=" * 60)

    try:
        if args.once:
            asyncio.run(run_once(trackers))
            report_values(context.requests)
        else:
            asyncio.run(run_loop(trackers, context.requests, config.tracker_cycle))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
