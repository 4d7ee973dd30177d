"""Voting Tree Toolkit - Merkle-sum voting trees for on-chain governance disputes."""

__version__ = "1.0.0"

from .proposals import ChallengeMonitor, ProposalManager
from .trees import VotingTree

__all__ = ["ChallengeMonitor", "ProposalManager", "VotingTree"]
