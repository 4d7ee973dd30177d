"""
Dispute state of a proposal and the outcome of walking it.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Optional

from votetree_toolkit.trees.models import ChallengeArtifacts


class ChallengeState(IntEnum):
    """State of a challenge against one tree index, as stored by the verifier."""

    UNCHALLENGED = 0
    CHALLENGED = 1
    RESPONDED = 2
    PAID = 3


class DisputeStatus(Enum):
    """What a challenger can do about a proposal right now."""

    VALID = "valid"  # Matches the local trees, nothing to challenge
    CHALLENGE = "challenge"  # An unchallenged index is ready to challenge
    WAITING = "waiting"  # Challenged, proposer still has time to respond
    DEFEATABLE = "defeatable"  # Challenge window passed without a response


@dataclass
class ProposalDispute:
    """Next step for one proposal's dispute."""

    proposal_id: int
    status: DisputeStatus
    index: Optional[int] = None
    block_number: Optional[int] = None
    artifacts: Optional[ChallengeArtifacts] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "status": self.status.value,
            "index": self.index,
            "block_number": self.block_number,
            "artifacts": (
                self.artifacts.to_dict() if self.artifacts is not None else None
            ),
        }
