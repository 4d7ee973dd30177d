"""
Data types for voting info snapshots.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_utils import to_checksum_address

from votetree_toolkit.shared.constants import VotingConstants

VOTING_INFO_SNAPSHOT_FILENAME_FORMAT = "vi-{block}.json.gz"


@dataclass
class NodeVotingInfo:
    node_address: str
    voting_power: int
    delegate: str

    def __post_init__(self):
        self.node_address = to_checksum_address(self.node_address)
        self.delegate = to_checksum_address(self.delegate)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_address": self.node_address,
            "voting_power": self.voting_power,
            "delegate": self.delegate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeVotingInfo":
        return cls(
            node_address=data["node_address"],
            voting_power=int(data["voting_power"]),
            delegate=data["delegate"],
        )


@dataclass
class VotingInfoSnapshot:
    """Every registered node's voting power and delegate as of one block."""

    network: str
    block_number: int
    info: List[NodeVotingInfo] = field(default_factory=list)
    format_version: int = VotingConstants.ARTIFACT_FORMAT_VERSION

    def get_filename(self) -> str:
        return VOTING_INFO_SNAPSHOT_FILENAME_FORMAT.format(
            block=self.block_number
        )

    def find_node_index(self, address: str) -> Optional[int]:
        """Position of a node in the snapshot, or None if it isn't there."""
        address = to_checksum_address(address)
        for i, info in enumerate(self.info):
            if info.node_address == address:
                return i
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "format_version": self.format_version,
            "network": self.network,
            "block_number": self.block_number,
            "info": [info.to_dict() for info in self.info],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotingInfoSnapshot":
        return cls(
            format_version=data["format_version"],
            network=data["network"],
            block_number=data["block_number"],
            info=[NodeVotingInfo.from_dict(i) for i in data["info"]],
        )
