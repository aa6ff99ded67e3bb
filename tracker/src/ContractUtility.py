"""ContractUtility: Web3 initialization and contract ABI loading."""

import json
from pathlib import Path

from web3 import Web3
from web3.contract import Contract

NETWORKS = {
    "mainnet": "https://ethereum-rpc.publicnode.com",
    "sepolia": "https://ethereum-sepolia-rpc.publicnode.com",
    "localnet": "http://localhost:8545",
}


class ContractUtility:
    """Utility for the node connection and oracle contract access.

    :ivar network: Node RPC URL.
    :ivar w3: Web3 instance.
    """

    def __init__(self, network_name: str, node_url: str | None = None) -> None:
        """Initialize the contract utility.

        :param network_name: Name of the network to connect to.
        :param node_url: Explicit RPC URL, overrides the network default.
        """
        # Unknown names are taken as RPC URLs
        self.network = node_url or NETWORKS.get(network_name, network_name)
        self.w3 = Web3(Web3.HTTPProvider(self.network))

    def get_master_contract(self, address: str) -> Contract:
        """Bind the oracle master contract at ``address``.

        :param address: Contract address (checksummed or not).
        :returns: Web3 contract instance.
        """
        abi = ContractUtility.get_abi("TellorMaster")
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    @staticmethod
    def get_abi(contract_name: str) -> list:
        """Load a contract ABI from the contracts folder.

        :param contract_name: Name of the contract (e.g., "TellorMaster").
        :returns: ABI list.
        """
        abi_path = (
            Path(__file__).parent.parent / "contracts" / f"{contract_name}.json"
        ).resolve()

        with open(abi_path, "r") as file:
            contract_data = json.load(file)

        return contract_data["abi"]
