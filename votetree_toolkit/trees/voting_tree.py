"""
Merkle-sum voting tree.

The tree never changes after it is built, so it is stored as a flat heap
array: the conceptual node with (1-based) local index ``i`` lives at
``nodes[i - 1]``, its children at local indices ``2i`` and ``2i + 1``.

Two coordinate systems are used:

- a *local* index addresses a node within one tree's own array (root = 1);
- a *virtual* index addresses a node in the unified space spanning the
  network tree and every node's private tree. A tree whose root sits at
  virtual index ``r`` maps its level-``k`` node with offset ``o`` to virtual
  index ``r * 2**k + o``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import encode
from eth_utils import keccak
from hexbytes import HexBytes

from votetree_toolkit.shared.constants import VotingConstants
from votetree_toolkit.shared.exceptions import PollardSizeMismatchException
from votetree_toolkit.trees.models import (
    ChallengeArtifacts,
    Pollard,
    VotingTreeNode,
)


def get_hash_for_balance(balance: int) -> HexBytes:
    """Keccak hash of a balance encoded as a uint256."""
    return HexBytes(keccak(encode(["uint256"], [balance])))


def get_leaf_for_balance(balance: int) -> VotingTreeNode:
    """Create a leaf node carrying a balance."""
    return VotingTreeNode(hash=get_hash_for_balance(balance), sum=balance)


def get_parent_node_from_children(
    left_child: VotingTreeNode, right_child: VotingTreeNode
) -> VotingTreeNode:
    """Combine two children: keccak(left.hash, left.sum, right.hash, right.sum)."""
    node_hash = keccak(
        encode(
            ["bytes32", "uint256", "bytes32", "uint256"],
            [
                bytes(left_child.hash),
                left_child.sum,
                bytes(right_child.hash),
                right_child.sum,
            ],
        )
    )
    return VotingTreeNode(
        hash=node_hash, sum=left_child.sum + right_child.sum
    )


def get_total_leaf_nodes(leaf_count: int) -> int:
    """Smallest power of two that can hold ``leaf_count`` leaves."""
    if leaf_count <= 1:
        return 1
    return 1 << (leaf_count - 1).bit_length()


def get_level(local_index: int) -> int:
    """Level of a local index, with the root (index 1) at level 0."""
    return local_index.bit_length() - 1


def get_local_index_from_virtual_index(
    virtual_index: int, virtual_root_index: int
) -> int:
    """
    Translate a virtual index into the local index of the tree rooted at
    ``virtual_root_index``.

    For descendants whose in-level offset is below the root index this is
    ``virtual_index // root + virtual_index % root``; bit arithmetic keeps it
    exact for every descendant of the root.
    """
    if virtual_root_index == 1:
        return virtual_index

    level = virtual_index.bit_length() - virtual_root_index.bit_length()
    if level < 0 or virtual_index >> level != virtual_root_index:
        raise ValueError(
            f"virtual index {virtual_index} is not part of the tree rooted "
            f"at virtual index {virtual_root_index}"
        )
    first_level_index = 1 << level
    offset = virtual_index - (virtual_root_index << level)
    return first_level_index + offset


def get_virtual_index_from_local_index(
    local_index: int, virtual_root_index: int
) -> int:
    """Translate a local index back into the virtual index space."""
    if virtual_root_index == 1:
        return local_index

    level = get_level(local_index)
    first_level_index = 1 << level
    offset = local_index - first_level_index
    return first_level_index * virtual_root_index + offset


def compute_root_from_proof(
    leaf: VotingTreeNode, local_index: int, proof: Sequence[VotingTreeNode]
) -> VotingTreeNode:
    """Replay a Merkle-sum audit path from a node up to the root."""
    node = leaf
    index = local_index
    for sibling in proof:
        if index % 2 == 0:
            node = get_parent_node_from_children(node, sibling)
        else:
            node = get_parent_node_from_children(sibling, node)
        index //= 2
    return node


@dataclass
class VotingTree:
    """A complete binary Merkle-sum tree stored as a heap array."""

    block_number: int
    network: str
    depth: int
    virtual_root_index: int
    depth_per_round: int
    nodes: List[VotingTreeNode] = field(default_factory=list)
    format_version: int = VotingConstants.ARTIFACT_FORMAT_VERSION

    @classmethod
    def create_tree_from_leaves(
        cls,
        block_number: int,
        network: str,
        leaves: Sequence[VotingTreeNode],
        virtual_root_index: int,
        depth_per_round: int,
        **kwargs: Any,
    ) -> "VotingTree":
        """
        Build a tree from its leaves.

        The leaf row is padded with zero-balance leaves up to the next power
        of two, then every parent is derived from its two children, bottom
        row first. Extra keyword arguments are passed to the constructor of
        subclasses (e.g. the owner of a node tree).
        """
        total_leaf_nodes = get_total_leaf_nodes(len(leaves))
        depth = get_level(total_leaf_nodes)

        nodes: List[Optional[VotingTreeNode]] = [None] * (
            total_leaf_nodes * 2 - 1
        )
        leaf_start = total_leaf_nodes - 1
        nodes[leaf_start : leaf_start + len(leaves)] = list(leaves)

        if len(leaves) != total_leaf_nodes:
            zero_leaf = get_leaf_for_balance(0)
            for i in range(leaf_start + len(leaves), len(nodes)):
                nodes[i] = zero_leaf

        # Walking the array backwards fills each row before the one above it
        for i in range(leaf_start - 1, -1, -1):
            nodes[i] = get_parent_node_from_children(
                nodes[i * 2 + 1], nodes[i * 2 + 2]
            )

        return cls(
            block_number=block_number,
            network=network,
            depth=depth,
            virtual_root_index=virtual_root_index,
            depth_per_round=depth_per_round,
            nodes=nodes,
            **kwargs,
        )

    @property
    def root(self) -> VotingTreeNode:
        return self.nodes[0]

    def get_pollard_for_proposal(self) -> Pollard:
        """Pollard under the tree's own root, used for new proposals."""
        return self._generate_pollard(self.virtual_root_index)

    def get_artifacts_for_challenge_response(
        self, challenged_index: int
    ) -> Pollard:
        """Pollard under a challenged node, used to answer a challenge."""
        return self._generate_pollard(challenged_index)

    def check_for_challengeable_artifacts(
        self,
        virtual_root_index: int,
        proposed_pollard: Sequence[VotingTreeNode],
    ) -> Optional[ChallengeArtifacts]:
        """
        Compare a submitted pollard with the local one under the same root.

        Returns the virtual index, node and proof of the first mismatching
        pollard entry, or None if the submission matches. The node and proof
        come from a tree rebuilt out of the proposer's own pollard, since
        that is what the challenge is checked against on chain.

        Raises:
            PollardSizeMismatchException: the pollards differ in length
        """
        local_pollard = self._generate_pollard(virtual_root_index).nodes
        if len(local_pollard) != len(proposed_pollard):
            raise PollardSizeMismatchException(
                len(local_pollard), len(proposed_pollard)
            )

        for i, local_node in enumerate(local_pollard):
            proposed_node = proposed_pollard[i]
            if (
                local_node.hash == proposed_node.hash
                and local_node.sum == proposed_node.sum
            ):
                continue

            # The pollard row is 1-indexed relative to its root, so its first
            # entry has the local index len(pollard)
            local_index = len(local_pollard) + i
            virtual_index = get_virtual_index_from_local_index(
                local_index, virtual_root_index
            )

            proposed_subtree = VotingTree.create_tree_from_leaves(
                self.block_number,
                self.network,
                list(proposed_pollard),
                virtual_root_index,
                self.depth_per_round,
            )
            node, proof = proposed_subtree.get_artifacts_for_challenge(
                virtual_index
            )
            return ChallengeArtifacts(index=virtual_index, node=node, proof=proof)

        return None

    def get_artifacts_for_challenge(
        self, target_index: int
    ) -> Tuple[VotingTreeNode, List[VotingTreeNode]]:
        """Get the node at a virtual index along with its Merkle proof."""
        local_index = self.get_local_index(target_index)
        return self.nodes[local_index - 1], self.generate_merkle_proof(
            local_index
        )

    def generate_merkle_proof(self, local_index: int) -> List[VotingTreeNode]:
        """
        Audit path for the node at ``local_index`` (a local index, not a
        virtual one), ordered from its sibling up to the root's children.
        """
        self._check_local_index(local_index)
        proof = []
        index = local_index
        while index > 1:
            partner_index = index + 1 if index % 2 == 0 else index - 1
            proof.append(self.nodes[partner_index - 1])
            index //= 2
        return proof

    def get_local_index(self, virtual_index: int) -> int:
        return get_local_index_from_virtual_index(
            virtual_index, self.virtual_root_index
        )

    def _generate_pollard(self, virtual_root_index: int) -> Pollard:
        index = self.get_local_index(virtual_root_index)
        self._check_local_index(index)
        root_node = self.nodes[index - 1]

        root_level = get_level(index)
        absolute_depth = min(root_level + self.depth_per_round, self.depth)
        relative_depth = absolute_depth - root_level

        pollard_size = 1 << relative_depth
        first_index = index * pollard_size - 1
        return Pollard(
            root=root_node,
            nodes=self.nodes[first_index : first_index + pollard_size],
        )

    def _check_local_index(self, local_index: int) -> None:
        if not 1 <= local_index <= len(self.nodes):
            raise ValueError(
                f"local index {local_index} is outside the tree "
                f"(1..{len(self.nodes)})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": self.format_version,
            "network": self.network,
            "block_number": self.block_number,
            "depth": self.depth,
            "virtual_root_index": self.virtual_root_index,
            "depth_per_round": self.depth_per_round,
            "nodes": [node.to_dict() for node in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingTree":
        return cls(**cls._base_kwargs(data))

    @staticmethod
    def _base_kwargs(data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "format_version": data["format_version"],
            "network": data["network"],
            "block_number": data["block_number"],
            "depth": data["depth"],
            "virtual_root_index": data["virtual_root_index"],
            "depth_per_round": data["depth_per_round"],
            "nodes": [VotingTreeNode.from_dict(n) for n in data["nodes"]],
        }
