"""
Web3 Service module for reading governance state from an Ethereum node.

This module provides a Web3Service class that wraps one connection, caches
contract handles and exposes the few block and log reads the voting tree
code needs.
"""

from typing import Any, Dict, List

from web3 import Web3

from votetree_toolkit.shared.constants import GlobalConstants
from votetree_toolkit.shared.services.resource_manager import (
    resource_manager,
)


class Web3Service:
    """
    A service class for managing a Web3 connection and its contract handles.
    """

    def __init__(
        self,
        chain_id: int,
        rpc_url: str,
    ):
        """
        Initialize the Web3Service.

        Args:
            chain_id (int): The chain ID to use.
            rpc_url (str): The RPC URL to use.
        """
        self.chain_id = chain_id
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self._contract_cache: Dict[Any, Any] = {}

    @classmethod
    def from_chain_id(cls, chain_id: int) -> "Web3Service":
        """Create a service using the configured RPC URL of a chain"""
        return cls(chain_id, GlobalConstants.get_rpc_url(chain_id))

    def get_finalized_block_number(self) -> int:
        """Number of the latest finalized block (never cached)"""
        return self.w3.eth.get_block("finalized")["number"]

    def get_contract(self, address: str, abi_name: str) -> Any:
        """Get a contract instance for a given address and ABI name"""
        key = (address, abi_name)
        if key not in self._contract_cache:
            abi = resource_manager.load_abi(abi_name)
            self._contract_cache[key] = self.w3.eth.contract(
                address=Web3.to_checksum_address(address.lower()), abi=abi
            )
        return self._contract_cache[key]

    def get_logs(self, filter_params: Dict[str, Any]) -> List[Any]:
        """Raw eth_getLogs call"""
        return self.w3.eth.get_logs(filter_params)
