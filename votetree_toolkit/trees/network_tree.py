"""
Network-wide voting tree: one leaf per node, carrying the voting power
delegated to that node.
"""

import os
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from votetree_toolkit.shared.constants import VotingConstants
from votetree_toolkit.shared.exceptions import ArtifactCacheException
from votetree_toolkit.shared.logging import get_routine_logger
from votetree_toolkit.snapshots.models import VotingInfoSnapshot
from votetree_toolkit.storage.checksum_manager import (
    ArtifactHandler,
    ChecksumManager,
)
from votetree_toolkit.trees.models import VotingTreeNode
from votetree_toolkit.trees.voting_tree import VotingTree, get_leaf_for_balance

_logger = get_routine_logger(__name__, "Network Tree")

NETWORK_TREE_FILENAME_FORMAT = "network-tree-{block}.json.gz"
_NETWORK_TREE_FILENAME_PATTERN = re.compile(
    r"^network-tree-(\d+)\.json\.gz$"
)

# The network tree is the top of the virtual index space
NETWORK_TREE_ROOT_INDEX = 1


def _parse_network_tree_block(filename: str) -> Optional[int]:
    match = _NETWORK_TREE_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1))


@dataclass
class NetworkVotingTree(VotingTree):
    def get_filename(self) -> str:
        return NETWORK_TREE_FILENAME_FORMAT.format(block=self.block_number)


def get_network_tree_leaves(
    snapshot: VotingInfoSnapshot,
) -> List[VotingTreeNode]:
    """Leaf i holds the summed voting power of every node delegating to i."""
    delegated_power: Dict[str, int] = {}
    for info in snapshot.info:
        delegated_power[info.delegate] = (
            delegated_power.get(info.delegate, 0) + info.voting_power
        )

    return [
        get_leaf_for_balance(delegated_power.get(info.node_address, 0))
        for info in snapshot.info
    ]


class NetworkTreeManager(ArtifactHandler[int, NetworkVotingTree]):
    """Cache-first access to network trees, keyed by block number."""

    def __init__(self, network: str, voting_path: str):
        self.network = network
        self.checksum_manager = ChecksumManager(
            os.path.join(
                voting_path,
                VotingConstants.NETWORK_TREE_FOLDER,
                VotingConstants.CHECKSUM_TABLE_FILENAME,
            ),
            self,
        )

    def create_network_voting_tree(
        self, snapshot: VotingInfoSnapshot, depth_per_round: int
    ) -> NetworkVotingTree:
        _logger.info(
            f"Creating network voting tree for block {snapshot.block_number}"
        )
        return NetworkVotingTree.create_tree_from_leaves(
            snapshot.block_number,
            self.network,
            get_network_tree_leaves(snapshot),
            NETWORK_TREE_ROOT_INDEX,
            depth_per_round,
        )

    def save_to_file(self, tree: NetworkVotingTree) -> None:
        try:
            path = self.checksum_manager.save(tree)
            _logger.info(f"Saved network voting tree to {path}")
        except (OSError, ArtifactCacheException) as e:
            _logger.warning(
                f"Could not save network voting tree for block "
                f"{tree.block_number}: {e}"
            )

    def load_from_disk(self, block_number: int) -> Optional[NetworkVotingTree]:
        try:
            loaded = self.checksum_manager.load(block_number)
        except ArtifactCacheException as e:
            _logger.warning(
                f"Ignoring cached network voting tree for block "
                f"{block_number}: {e}"
            )
            return None

        if loaded is None:
            return None

        tree, filename = loaded
        _logger.info(f"Loaded network voting tree from {filename}")
        return tree

    def sort_key(self, filename: str) -> Tuple[int, ...]:
        block = _parse_network_tree_block(filename)
        return (block if block is not None else -1,)

    def should_load_entry(self, filename: str, context: int) -> bool:
        return _parse_network_tree_block(filename) == context

    def is_data_valid(
        self, data: NetworkVotingTree, filename: str, context: int
    ) -> bool:
        if (
            data.network != self.network
            or data.format_version != VotingConstants.ARTIFACT_FORMAT_VERSION
        ):
            _logger.warning(
                f"Network tree {filename} was built for {data.network} "
                f"(format {data.format_version}), skipping it"
            )
            return False
        return (
            data.block_number == context
            and data.virtual_root_index == NETWORK_TREE_ROOT_INDEX
        )

    def decode(self, payload: Dict[str, Any]) -> NetworkVotingTree:
        return NetworkVotingTree.from_dict(payload)
