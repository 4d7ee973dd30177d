"""
Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests.
"""

from typing import List
from unittest.mock import MagicMock

import pytest
from eth_utils import to_checksum_address

from votetree_toolkit.contracts.reader import GovernanceReader
from votetree_toolkit.snapshots.models import NodeVotingInfo, VotingInfoSnapshot

SAMPLE_BLOCK_NUMBER = 21000000


@pytest.fixture
def sample_block_number() -> int:
    """Sample block number for tests."""
    return SAMPLE_BLOCK_NUMBER


@pytest.fixture
def sample_addresses() -> List[str]:
    """Four node addresses, checksummed, in registration order."""
    return [
        to_checksum_address(address)
        for address in (
            "0x7e1444ba99dcdffe8fbdb42c02fb0da4aaace4d5",
            "0x52f541764e6e90eebc5c21ff570de0e2d63766b6",
            "0x000000073d065fc33a3050c2d4a8e82ee5c5c25a",
            "0xd533a949740bb3306d119cc777fa900ba034cd52",
        )
    ]


@pytest.fixture
def sample_voting_info(sample_addresses) -> List[NodeVotingInfo]:
    """
    Voting info with some delegation:

    - node 0 (100) and node 1 (200) vote through node 0
    - node 2 (300) votes for itself
    - node 3 (400) delegates to node 1
    """
    a, b, c, d = sample_addresses
    return [
        NodeVotingInfo(node_address=a, voting_power=100, delegate=a),
        NodeVotingInfo(node_address=b, voting_power=200, delegate=a),
        NodeVotingInfo(node_address=c, voting_power=300, delegate=c),
        NodeVotingInfo(node_address=d, voting_power=400, delegate=b),
    ]


@pytest.fixture
def sample_snapshot(sample_voting_info) -> VotingInfoSnapshot:
    """Snapshot of the sample voting info on mainnet."""
    return VotingInfoSnapshot(
        network="mainnet",
        block_number=SAMPLE_BLOCK_NUMBER,
        info=sample_voting_info,
    )


@pytest.fixture
def mock_reader(sample_addresses, sample_voting_info):
    """GovernanceReader mock serving the sample voting info."""
    reader = MagicMock(spec=GovernanceReader)
    reader.get_finalized_block_number.return_value = SAMPLE_BLOCK_NUMBER
    reader.get_voting_node_count.return_value = len(sample_addresses)
    reader.get_node_addresses.return_value = list(sample_addresses)
    reader.get_voting_info.return_value = list(sample_voting_info)
    reader.get_depth_per_round.return_value = 1
    reader.get_root_submitted_events.return_value = []
    return reader


@pytest.fixture
def voting_path(tmp_path) -> str:
    """Temporary artifact root."""
    path = tmp_path / "voting"
    path.mkdir()
    return str(path)


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires RPC)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow-running")
