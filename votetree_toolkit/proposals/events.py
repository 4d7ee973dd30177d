"""
Decoded RootSubmitted events of the DAO protocol verifier.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List

from eth_utils import to_checksum_address

from votetree_toolkit.trees.models import VotingTreeNode


def _node_from_event_value(value: Any) -> VotingTreeNode:
    # Struct values come back either named or as a plain (sum, hash) tuple
    if isinstance(value, Mapping):
        return VotingTreeNode(hash=value["hash"], sum=int(value["sum"]))
    node_sum, node_hash = value
    return VotingTreeNode(hash=node_hash, sum=int(node_sum))


@dataclass
class RootSubmitted:
    """A proposer's (or challenge responder's) pollard submission."""

    proposal_id: int
    proposer: str
    block_number: int
    index: int
    root: VotingTreeNode
    tree_nodes: List[VotingTreeNode] = field(default_factory=list)
    timestamp: int = 0

    @classmethod
    def from_event(cls, event: Mapping) -> "RootSubmitted":
        """Build from a log processed with the verifier's event ABI."""
        args = event["args"]
        return cls(
            proposal_id=int(args["proposalID"]),
            proposer=to_checksum_address(args["proposer"]),
            block_number=int(args["blockNumber"]),
            index=int(args["index"]),
            root=_node_from_event_value(args["root"]),
            tree_nodes=[_node_from_event_value(n) for n in args["treeNodes"]],
            timestamp=int(args["timestamp"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "proposer": self.proposer,
            "block_number": self.block_number,
            "index": self.index,
            "root": self.root.to_dict(),
            "tree_nodes": [n.to_dict() for n in self.tree_nodes],
            "timestamp": self.timestamp,
        }
