from votetree_toolkit.proposals.challenges import (
    ChallengeState,
    DisputeStatus,
    ProposalDispute,
)
from votetree_toolkit.proposals.events import RootSubmitted
from votetree_toolkit.proposals.manager import ProposalManager
from votetree_toolkit.proposals.monitor import ChallengeMonitor

__all__ = [
    "ProposalManager",
    "ChallengeMonitor",
    "RootSubmitted",
    "ChallengeState",
    "DisputeStatus",
    "ProposalDispute",
]
