from votetree_toolkit.snapshots.manager import VotingInfoSnapshotManager
from votetree_toolkit.snapshots.models import NodeVotingInfo, VotingInfoSnapshot

__all__ = ["VotingInfoSnapshotManager", "NodeVotingInfo", "VotingInfoSnapshot"]
