"""
Unit tests for GovernanceReader.

The Web3Service and the multicall client are mocked; the tests check which
calls are made, how results are mapped and how RPC failures surface.
"""

from unittest.mock import MagicMock, patch

import pytest
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from votetree_toolkit.contracts.reader import GovernanceReader
from votetree_toolkit.proposals.challenges import ChallengeState
from votetree_toolkit.shared.exceptions import ChainQueryException

VOTING_ADDRESS = "0x1234567890123456789012345678901234567890"
OLD_VERIFIER_ADDRESS = "0xd533a949740bb3306d119cc777fa900ba034cd52"


@pytest.fixture
def mock_storage():
    storage = MagicMock()
    storage.functions.getAddress.return_value.call.return_value = (
        VOTING_ADDRESS
    )
    return storage


@pytest.fixture
def mock_contract():
    return MagicMock()


@pytest.fixture
def mock_web3_service(mock_storage, mock_contract):
    service = MagicMock()
    service.chain_id = 1
    service.w3 = MagicMock()

    def get_contract(address, abi_name):
        if abi_name == "rocket_storage":
            return mock_storage
        return mock_contract

    service.get_contract.side_effect = get_contract
    return service


@pytest.fixture
def reader(mock_web3_service):
    return GovernanceReader(mock_web3_service, batch_size=2, log_interval=100)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("votetree_toolkit.shared.retry.time.sleep"):
        yield


class TestContractAddresses:
    """Tests for RocketStorage lookups."""

    def test_lookup_key(self, reader, mock_storage):
        address = reader.get_contract_address("rocketNetworkVoting")

        assert address == VOTING_ADDRESS
        mock_storage.functions.getAddress.assert_called_once_with(
            keccak(text="contract.addressrocketNetworkVoting")
        )

    def test_lookups_are_cached(self, reader, mock_storage):
        reader.get_contract_address("rocketNetworkVoting")
        reader.get_contract_address("rocketNetworkVoting")

        assert mock_storage.functions.getAddress.call_count == 1


class TestSingleCalls:
    """Tests for plain contract reads."""

    def test_voting_node_count(self, reader, mock_contract):
        call = mock_contract.functions.getNodeCount.return_value.call
        call.return_value = 4

        assert reader.get_voting_node_count(21000000) == 4
        mock_contract.functions.getNodeCount.assert_called_once_with(21000000)
        call.assert_called_once_with(block_identifier=21000000)

    def test_depth_per_round(self, reader, mock_contract):
        call = mock_contract.functions.getDepthPerRound.return_value.call
        call.return_value = 5

        assert reader.get_depth_per_round() == 5

    def test_challenge_state(self, reader, mock_contract):
        call = mock_contract.functions.getChallengeState.return_value.call
        call.return_value = 2

        state = reader.get_challenge_state(7, 3)

        assert state == ChallengeState.RESPONDED
        mock_contract.functions.getChallengeState.assert_called_once_with(7, 3)

    def test_unknown_challenge_state(self, reader, mock_contract):
        call = mock_contract.functions.getChallengeState.return_value.call
        call.return_value = 9

        with pytest.raises(ValueError):
            reader.get_challenge_state(7, 3)

    def test_challenge_period(self, reader, mock_contract):
        call = mock_contract.functions.getChallengePeriod.return_value.call
        call.return_value = 1800

        assert reader.get_challenge_period(7) == 1800
        mock_contract.functions.getChallengePeriod.assert_called_once_with(7)

    def test_proposal_created_time(
        self, reader, mock_web3_service, mock_contract
    ):
        call = mock_contract.functions.getCreated.return_value.call
        call.return_value = 1764806400

        assert reader.get_proposal_created_time(7) == 1764806400
        mock_contract.functions.getCreated.assert_called_once_with(7)
        mock_web3_service.get_contract.assert_any_call(
            VOTING_ADDRESS, "rocket_dao_protocol_proposal"
        )

    def test_finalized_block(self, reader, mock_web3_service):
        mock_web3_service.get_finalized_block_number.return_value = 123

        assert reader.get_finalized_block_number() == 123

    def test_transient_failure_is_retried(self, reader, mock_contract):
        call = mock_contract.functions.getDepthPerRound.return_value.call
        call.side_effect = [ConnectionError("reset"), 5]

        assert reader.get_depth_per_round() == 5
        assert call.call_count == 2

    def test_failure_is_wrapped(self, reader, mock_contract):
        call = mock_contract.functions.getDepthPerRound.return_value.call
        call.side_effect = ValueError("bad response")

        with pytest.raises(ChainQueryException) as exc_info:
            reader.get_depth_per_round()

        assert exc_info.value.query == "getting depth per round"
        assert isinstance(exc_info.value.cause, ValueError)
        assert call.call_count == 1

    def test_exhausted_retries_are_wrapped(self, reader, mock_contract):
        call = mock_contract.functions.getDepthPerRound.return_value.call
        call.side_effect = TimeoutError("slow node")

        with pytest.raises(ChainQueryException):
            reader.get_depth_per_round()

        assert call.call_count == 3


class TestMulticallReads:
    """Tests for the batched multicall reads."""

    def test_node_addresses_in_batches(self, reader, sample_addresses):
        with patch(
            "votetree_toolkit.contracts.reader.W3Multicall"
        ) as mock_multicall_cls:
            mock_multicall_cls.return_value.call.side_effect = [
                [a.lower() for a in sample_addresses[:2]],
                [sample_addresses[2].lower()],
            ]

            addresses = reader.get_node_addresses(3, 21000000)

        assert addresses == sample_addresses[:3]
        assert mock_multicall_cls.return_value.add.call_count == 3
        assert mock_multicall_cls.return_value.call.call_count == 2
        mock_multicall_cls.return_value.call.assert_called_with(21000000)

    def test_voting_info_in_batches(self, reader, sample_addresses):
        a, b, c, _ = sample_addresses
        with patch(
            "votetree_toolkit.contracts.reader.W3Multicall"
        ) as mock_multicall_cls:
            mock_multicall_cls.return_value.call.side_effect = [
                [100, a, 200, a],
                [300, c.lower()],
            ]

            info = reader.get_voting_info(21000000, [a, b, c])

        assert [i.node_address for i in info] == [a, b, c]
        assert [i.voting_power for i in info] == [100, 200, 300]
        assert [i.delegate for i in info] == [a, a, c]
        # Two calls (power and delegate) per node
        assert mock_multicall_cls.return_value.add.call_count == 6

    def test_multicall_failure_is_wrapped(self, reader, sample_addresses):
        with patch(
            "votetree_toolkit.contracts.reader.W3Multicall"
        ) as mock_multicall_cls:
            mock_multicall_cls.return_value.call.side_effect = ValueError(
                "revert"
            )

            with pytest.raises(ChainQueryException, match="voting info"):
                reader.get_voting_info(21000000, sample_addresses)

    def test_no_nodes(self, reader):
        with patch(
            "votetree_toolkit.contracts.reader.W3Multicall"
        ) as mock_multicall_cls:
            assert reader.get_voting_info(21000000, []) == []
            assert reader.get_node_addresses(0) == []

        mock_multicall_cls.return_value.call.assert_not_called()


class TestRootSubmittedEvents:
    """Tests for scanning RootSubmitted logs."""

    def _decoded_event(self):
        return {
            "args": {
                "proposalID": 7,
                "proposer": "0x52f541764e6e90eebc5c21ff570de0e2d63766b6",
                "blockNumber": 21000000,
                "index": 2,
                "root": {"sum": 10, "hash": HexBytes(b"\x01" * 32)},
                "treeNodes": [
                    {"sum": 4, "hash": HexBytes(b"\x02" * 32)},
                    (6, HexBytes(b"\x03" * 32)),
                ],
                "timestamp": 1764806400,
            }
        }

    def test_scan_windows(self, reader, mock_web3_service, mock_contract):
        mock_web3_service.get_logs.side_effect = [["log"], [], []]
        process_log = mock_contract.events.RootSubmitted.return_value.process_log
        process_log.return_value = self._decoded_event()

        events = reader.get_root_submitted_events([7], 0, 250)

        windows = [
            (c.args[0]["fromBlock"], c.args[0]["toBlock"])
            for c in mock_web3_service.get_logs.call_args_list
        ]
        assert windows == [(0, 99), (100, 199), (200, 250)]
        log_filter = mock_web3_service.get_logs.call_args_list[0].args[0]
        assert log_filter["address"] == [VOTING_ADDRESS]
        assert log_filter["topics"][1] == ["0x" + "00" * 31 + "07"]

        assert len(events) == 1
        event = events[0]
        assert event.proposal_id == 7
        assert event.proposer == to_checksum_address(
            "0x52f541764e6e90eebc5c21ff570de0e2d63766b6"
        )
        assert event.index == 2
        assert event.root.sum == 10
        assert [n.sum for n in event.tree_nodes] == [4, 6]
        assert event.tree_nodes[1].hash == HexBytes(b"\x03" * 32)

    def test_nothing_to_scan(self, reader, mock_web3_service):
        assert reader.get_root_submitted_events([], 0, 100) == []
        assert reader.get_root_submitted_events([7], 100, 99) == []
        mock_web3_service.get_logs.assert_not_called()

    def test_previous_verifiers_are_scanned(self, reader, mock_web3_service):
        mock_web3_service.get_logs.return_value = []

        reader.get_root_submitted_events(
            [7, 8],
            0,
            50,
            previous_verifier_addresses=[OLD_VERIFIER_ADDRESS],
        )

        log_filter = mock_web3_service.get_logs.call_args.args[0]
        assert log_filter["address"] == [
            to_checksum_address(OLD_VERIFIER_ADDRESS),
            VOTING_ADDRESS,
        ]
        assert len(log_filter["topics"][1]) == 2
