"""
Entry point for proposal, voting and challenge artifacts.

The ProposalManager ties the chain reader, the snapshot store and the tree
builders together. Every artifact is cache-first: snapshots and trees are
loaded from the voting path when a valid copy exists and built (then saved)
otherwise.
"""

from typing import List, Optional, Tuple, Union

from votetree_toolkit.contracts.reader import GovernanceReader
from votetree_toolkit.proposals.events import RootSubmitted
from votetree_toolkit.shared.constants import GlobalConstants
from votetree_toolkit.shared.logging import get_logger
from votetree_toolkit.shared.services.web3_service import Web3Service
from votetree_toolkit.snapshots.manager import VotingInfoSnapshotManager
from votetree_toolkit.snapshots.models import VotingInfoSnapshot
from votetree_toolkit.trees.indexing import (
    get_node_index_from_snapshot,
    get_node_index_from_tree_node_index,
    get_tree_node_index_from_node_index,
)
from votetree_toolkit.trees.models import (
    ChallengeArtifacts,
    Pollard,
    VotingArtifacts,
    VotingTreeNode,
)
from votetree_toolkit.trees.network_tree import (
    NetworkTreeManager,
    NetworkVotingTree,
)
from votetree_toolkit.trees.node_tree import NodeTreeManager, NodeVotingTree

_logger = get_logger(__name__)


class ProposalManager:
    """
    Builds the artifacts needed to propose, vote on and dispute proposals.

    Args:
        chain_id: Chain the proposals live on
        reader: Chain reader; built from the configured RPC URL if omitted
        voting_path: Artifact root; defaults to VT_VOTING_PATH
    """

    def __init__(
        self,
        chain_id: int,
        reader: Optional[GovernanceReader] = None,
        voting_path: Optional[str] = None,
    ):
        self.chain_id = chain_id
        self.network = GlobalConstants.get_network(chain_id)
        if reader is None:
            reader = GovernanceReader(Web3Service.from_chain_id(chain_id))
        self.reader = reader
        self.voting_path = voting_path or GlobalConstants.VOTING_PATH

        self.snapshot_manager = VotingInfoSnapshotManager(
            reader, self.network, self.voting_path
        )
        self.network_tree_manager = NetworkTreeManager(
            self.network, self.voting_path
        )
        self.node_tree_manager = NodeTreeManager(
            self.network, self.voting_path
        )
        self._depth_per_round: Optional[int] = None

    def create_latest_finalized_tree(self) -> Tuple[int, NetworkVotingTree]:
        """Network tree of the latest finalized block."""
        block_number = self.reader.get_finalized_block_number()
        _logger.info(f"Latest finalized block is {block_number}")
        return block_number, self.get_network_tree(block_number)

    def create_pollard_for_proposal(self) -> Tuple[int, List[VotingTreeNode]]:
        """Block and pollard to submit with a brand-new proposal."""
        block_number, tree = self.create_latest_finalized_tree()
        return block_number, tree.get_pollard_for_proposal().nodes

    def get_pollard_for_proposal(
        self, block_number: int
    ) -> List[VotingTreeNode]:
        """Proposal pollard for a specific block."""
        tree = self.get_network_tree(block_number)
        return tree.get_pollard_for_proposal().nodes

    def get_voting_info_snapshot(self, block_number: int) -> VotingInfoSnapshot:
        return self.snapshot_manager.get_or_create(block_number)

    def get_network_tree(
        self,
        block_number: int,
        snapshot: Optional[VotingInfoSnapshot] = None,
    ) -> NetworkVotingTree:
        tree = self.network_tree_manager.load_from_disk(block_number)
        if tree is not None:
            return tree

        if snapshot is None:
            snapshot = self.get_voting_info_snapshot(block_number)
        tree = self.network_tree_manager.create_network_voting_tree(
            snapshot, self._get_depth_per_round()
        )
        self.network_tree_manager.save_to_file(tree)
        return tree

    def get_node_tree(
        self,
        block_number: int,
        node_index: int,
        snapshot: Optional[VotingInfoSnapshot] = None,
    ) -> NodeVotingTree:
        tree = self.node_tree_manager.load_from_disk(block_number, node_index)
        if tree is not None:
            return tree

        if snapshot is None:
            snapshot = self.get_voting_info_snapshot(block_number)
        tree = self.node_tree_manager.create_node_voting_tree(
            snapshot,
            node_index,
            get_tree_node_index_from_node_index(snapshot, node_index),
            self._get_depth_per_round(),
        )
        self.node_tree_manager.save_to_file(tree)
        return tree

    def get_artifacts_for_voting(
        self, block_number: int, node_address: str
    ) -> VotingArtifacts:
        """
        Voting power delegated to a node plus the proof of its network leaf.

        Raises:
            UnknownAccountException: the node isn't in the snapshot
        """
        snapshot = self.get_voting_info_snapshot(block_number)
        node_index = get_node_index_from_snapshot(snapshot, node_address)

        node_tree = self.get_node_tree(block_number, node_index, snapshot)
        network_tree = self.get_network_tree(block_number, snapshot)

        leaf_index = network_tree.get_local_index(
            get_tree_node_index_from_node_index(snapshot, node_index)
        )
        return VotingArtifacts(
            total_delegated_voting_power=node_tree.root.sum,
            node_index=node_index,
            proof=network_tree.generate_merkle_proof(leaf_index),
        )

    def get_artifacts_for_challenge_response(
        self, block_number: int, challenged_index: int
    ) -> Pollard:
        """Pollard under a challenged node, to answer the challenge."""
        snapshot = self.get_voting_info_snapshot(block_number)
        tree = self._get_tree_for_index(block_number, challenged_index, snapshot)
        return tree.get_artifacts_for_challenge_response(challenged_index)

    def check_for_challengeable_artifacts(
        self, event: RootSubmitted
    ) -> Optional[ChallengeArtifacts]:
        """
        Compare a submitted pollard against the locally built tree.

        Returns the artifacts for challenging the first wrong node, or None
        if the submission is correct.

        Raises:
            PollardSizeMismatchException: the submission has the wrong size
        """
        snapshot = self.get_voting_info_snapshot(event.block_number)
        tree = self._get_tree_for_index(
            event.block_number, event.index, snapshot
        )
        artifacts = tree.check_for_challengeable_artifacts(
            event.index, event.tree_nodes
        )
        if artifacts is None:
            _logger.info(
                f"Root submitted for proposal {event.proposal_id} at index "
                f"{event.index} matches the local tree"
            )
        else:
            _logger.warning(
                f"Root submitted for proposal {event.proposal_id} at index "
                f"{event.index} is challengeable at index {artifacts.index}"
            )
        return artifacts

    def _get_tree_for_index(
        self,
        block_number: int,
        virtual_index: int,
        snapshot: VotingInfoSnapshot,
    ) -> Union[NetworkVotingTree, NodeVotingTree]:
        node_index = get_node_index_from_tree_node_index(
            snapshot, virtual_index
        )
        # Padding leaves of the network tree have no node tree below them
        if node_index is None or node_index >= len(snapshot.info):
            return self.get_network_tree(block_number, snapshot)
        return self.get_node_tree(block_number, node_index, snapshot)

    def _get_depth_per_round(self) -> int:
        if self._depth_per_round is None:
            self._depth_per_round = self.reader.get_depth_per_round()
        return self._depth_per_round
