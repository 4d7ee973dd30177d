"""
Type definitions for Merkle-sum voting trees.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from hexbytes import HexBytes


@dataclass(frozen=True)
class VotingTreeNode:
    """One node of a Merkle-sum tree: a 32-byte hash and a subtree sum."""

    hash: HexBytes
    sum: int

    def __post_init__(self):
        # Accept raw bytes or hex strings
        object.__setattr__(self, "hash", HexBytes(self.hash))

    def to_dict(self) -> Dict[str, Any]:
        return {"hash": "0x" + bytes(self.hash).hex(), "sum": self.sum}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingTreeNode":
        return cls(hash=HexBytes(data["hash"]), sum=int(data["sum"]))


@dataclass
class Pollard:
    """A root node plus the row of descendants revealed below it."""

    root: VotingTreeNode
    nodes: List[VotingTreeNode] = field(default_factory=list)


@dataclass
class ChallengeArtifacts:
    """The node to challenge (by virtual index) and its Merkle proof."""

    index: int
    node: VotingTreeNode
    proof: List[VotingTreeNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "node": self.node.to_dict(),
            "proof": [n.to_dict() for n in self.proof],
        }


@dataclass
class VotingArtifacts:
    """Everything a node needs to cast a vote on a proposal."""

    total_delegated_voting_power: int
    node_index: int
    proof: List[VotingTreeNode] = field(default_factory=list)
