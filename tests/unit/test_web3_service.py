"""
Unit tests for Web3Service and the chain configuration it relies on.
"""

from unittest.mock import patch

import pytest

from votetree_toolkit.shared.constants import (
    ContractRegistry,
    GlobalConstants,
)
from votetree_toolkit.shared.exceptions import ConfigurationException
from votetree_toolkit.shared.services.resource_manager import (
    resource_manager,
)
from votetree_toolkit.shared.services.web3_service import Web3Service


@pytest.fixture
def mock_web3():
    with patch("votetree_toolkit.shared.services.web3_service.Web3") as web3:
        yield web3


class TestWeb3Service:
    def test_from_chain_id(self, mock_web3):
        with patch.dict(
            GlobalConstants.CHAIN_ID_TO_RPC, {1: "http://localhost:8545"}
        ):
            service = Web3Service.from_chain_id(1)

        assert service.chain_id == 1
        mock_web3.HTTPProvider.assert_called_once_with("http://localhost:8545")

    def test_missing_rpc_url(self, mock_web3):
        with patch.dict(GlobalConstants.CHAIN_ID_TO_RPC, {1: None}):
            with pytest.raises(ConfigurationException, match="RPC URL"):
                Web3Service.from_chain_id(1)

    def test_finalized_block_number(self, mock_web3):
        service = Web3Service(1, "http://localhost:8545")
        service.w3.eth.get_block.return_value = {"number": 21000000}

        assert service.get_finalized_block_number() == 21000000
        service.w3.eth.get_block.assert_called_once_with("finalized")

    def test_contracts_are_cached(self, mock_web3):
        service = Web3Service(1, "http://localhost:8545")
        address = ContractRegistry.get_rocket_storage(1)

        first = service.get_contract(address, "rocket_storage")
        second = service.get_contract(address, "rocket_storage")

        assert first is second
        service.w3.eth.contract.assert_called_once()
        abi = service.w3.eth.contract.call_args.kwargs["abi"]
        assert abi[0]["name"] == "getAddress"


class TestConfiguration:
    def test_networks(self):
        assert GlobalConstants.get_network(1) == "mainnet"
        assert GlobalConstants.get_network("17000") == "holesky"

    def test_unsupported_chain(self):
        with pytest.raises(ConfigurationException, match="not supported"):
            GlobalConstants.get_network(10)
        with pytest.raises(ConfigurationException):
            ContractRegistry.get_rocket_storage(10)

    def test_abis_are_packaged(self):
        for name in (
            "rocket_storage",
            "rocket_network_voting",
            "rocket_dao_protocol_verifier",
            "rocket_dao_protocol_proposal",
        ):
            assert resource_manager.load_abi(name)

    def test_resource_paths_stay_inside_resources(self):
        with pytest.raises(ValueError):
            resource_manager.get_resource_path("abi", "../../constants.py")
