"""
Private voting tree of one node: one leaf per node in the snapshot, holding
that node's own voting power when it delegates to the tree's owner.
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

_logger = get_routine_logger(__name__, "Node Tree")

NODE_TREE_FILENAME_FORMAT = "node-tree-{block}-{address}-{index}.json.gz"
_NODE_TREE_FILENAME_PATTERN = re.compile(
    r"^node-tree-(\d+)-(0x[0-9a-fA-F]{40})-(\d+)\.json\.gz$"
)


def _parse_node_tree_filename(filename: str) -> Optional[Tuple[int, int]]:
    """(block, node index) encoded in a node tree filename."""
    match = _NODE_TREE_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1)), int(match.group(3))


@dataclass
class NodeVotingTree(VotingTree):
    address: str = ""
    node_index: int = 0

    def get_filename(self) -> str:
        return NODE_TREE_FILENAME_FORMAT.format(
            block=self.block_number,
            address=self.address,
            index=self.node_index,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["address"] = self.address
        data["node_index"] = self.node_index
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeVotingTree":
        return cls(
            address=data["address"],
            node_index=data["node_index"],
            **cls._base_kwargs(data),
        )


def get_node_tree_leaves(
    snapshot: VotingInfoSnapshot, node_index: int
) -> List[VotingTreeNode]:
    """Leaf j holds node j's voting power if it delegates to ``node_index``."""
    owner = snapshot.info[node_index].node_address
    return [
        get_leaf_for_balance(info.voting_power if info.delegate == owner else 0)
        for info in snapshot.info
    ]


class NodeTreeManager(ArtifactHandler[Tuple[int, int], NodeVotingTree]):
    """Cache-first access to node trees, keyed by (block, node index)."""

    def __init__(self, network: str, voting_path: str):
        self.network = network
        self.checksum_manager = ChecksumManager(
            os.path.join(
                voting_path,
                VotingConstants.NODE_TREE_FOLDER,
                VotingConstants.CHECKSUM_TABLE_FILENAME,
            ),
            self,
        )

    def create_node_voting_tree(
        self,
        snapshot: VotingInfoSnapshot,
        node_index: int,
        tree_index: int,
        depth_per_round: int,
    ) -> NodeVotingTree:
        """
        Build the private tree of a node.

        Args:
            snapshot: Voting info snapshot the tree is derived from
            node_index: Position of the owner in the snapshot
            tree_index: Virtual index of the owner's network-tree leaf, which
                is also the virtual root of this tree
            depth_per_round: Levels revealed per challenge round
        """
        if not 0 <= node_index < len(snapshot.info):
            raise IndexError(
                f"node index {node_index} is outside the snapshot for block "
                f"{snapshot.block_number} ({len(snapshot.info)} nodes)"
            )

        address = snapshot.info[node_index].node_address
        _logger.info(
            f"Creating node voting tree for {address} (index {node_index}) "
            f"at block {snapshot.block_number}"
        )
        return NodeVotingTree.create_tree_from_leaves(
            snapshot.block_number,
            self.network,
            get_node_tree_leaves(snapshot, node_index),
            tree_index,
            depth_per_round,
            address=address,
            node_index=node_index,
        )

    def save_to_file(self, tree: NodeVotingTree) -> None:
        try:
            path = self.checksum_manager.save(tree)
            _logger.info(f"Saved node voting tree to {path}")
        except (OSError, ArtifactCacheException) as e:
            _logger.warning(
                f"Could not save node voting tree for node {tree.node_index} "
                f"at block {tree.block_number}: {e}"
            )

    def load_from_disk(
        self, block_number: int, node_index: int
    ) -> Optional[NodeVotingTree]:
        try:
            loaded = self.checksum_manager.load((block_number, node_index))
        except ArtifactCacheException as e:
            _logger.warning(
                f"Ignoring cached node voting tree for node {node_index} "
                f"at block {block_number}: {e}"
            )
            return None

        if loaded is None:
            return None

        tree, filename = loaded
        _logger.info(f"Loaded node voting tree from {filename}")
        return tree

    def sort_key(self, filename: str) -> Tuple[int, ...]:
        return _parse_node_tree_filename(filename) or (-1, -1)

    def should_load_entry(
        self, filename: str, context: Tuple[int, int]
    ) -> bool:
        return _parse_node_tree_filename(filename) == tuple(context)

    def is_data_valid(
        self, data: NodeVotingTree, filename: str, context: Tuple[int, int]
    ) -> bool:
        if (
            data.network != self.network
            or data.format_version != VotingConstants.ARTIFACT_FORMAT_VERSION
        ):
            _logger.warning(
                f"Node tree {filename} was built for {data.network} "
                f"(format {data.format_version}), skipping it"
            )
            return False
        block_number, node_index = context
        return (
            data.block_number == block_number
            and data.node_index == node_index
        )

    def decode(self, payload: Dict[str, Any]) -> NodeVotingTree:
        return NodeVotingTree.from_dict(payload)
