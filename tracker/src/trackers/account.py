"""Account trackers: balances, stake status and gas price of the node."""

from __future__ import annotations

import asyncio
import logging

from web3 import Web3

from ..Config import ConfigurationError
from .base import Tracker, TrackerContext, register_tracker

logger = logging.getLogger(__name__)

GAS_KEY = "gas"
BALANCE_KEY = "balance"
TRIBUTE_BALANCE_KEY = "tributeBalance"
DISPUTE_STATUS_KEY = "disputeStatus"

# Staker status codes of the oracle contract.
STAKER_STATUS = {
    0: "not staked",
    1: "staked",
    2: "locked for withdraw",
    3: "in dispute",
}


class AccountTracker(Tracker):
    """Tracker reading state of the configured public address.

    :ivar address: Checksummed public address.
    """

    requires_node = True

    def __init__(self, context: TrackerContext) -> None:
        super().__init__(context)
        if not context.config.public_address:
            raise ConfigurationError(
                f"Tracker '{self.name}' requires a public address or private key"
            )
        try:
            self.address = Web3.to_checksum_address(context.config.public_address)
        except ValueError as e:
            raise ConfigurationError(f"Invalid public address: {e}") from e


@register_tracker
class GasTracker(Tracker):
    """Stores the node's current gas price in wei."""

    name = "gas"
    requires_node = True

    async def exec(self) -> None:
        gas_price = await asyncio.to_thread(lambda: self.context.w3.eth.gas_price)
        self.store.put(GAS_KEY, gas_price)
        logger.debug(f"Gas price: {gas_price} wei")


@register_tracker
class BalanceTracker(AccountTracker):
    """Stores the ETH balance of the public address in wei."""

    name = "balance"

    async def exec(self) -> None:
        balance = await asyncio.to_thread(
            self.context.w3.eth.get_balance, self.address
        )
        self.store.put(BALANCE_KEY, balance)
        logger.debug(f"Balance of {self.address}: {balance} wei")


@register_tracker
class TributeTracker(AccountTracker):
    """Stores the oracle token balance of the public address."""

    name = "tributeBalance"

    async def exec(self) -> None:
        call = self.context.contract.functions.balanceOf(self.address).call
        balance = await asyncio.to_thread(call)
        self.store.put(TRIBUTE_BALANCE_KEY, balance)
        logger.debug(f"Tribute balance of {self.address}: {balance}")


@register_tracker
class DisputeTracker(AccountTracker):
    """Stores the staker status of the public address."""

    name = "disputeStatus"

    async def exec(self) -> None:
        call = self.context.contract.functions.getStakerInfo(self.address).call
        status, start_date = await asyncio.to_thread(call)
        self.store.put(DISPUTE_STATUS_KEY, status)

        label = STAKER_STATUS.get(status, "unknown")
        if status == 3:
            logger.warning(f"{self.address} is {label} (staked since {start_date})")
        else:
            logger.debug(f"Staker status of {self.address}: {status} ({label})")
