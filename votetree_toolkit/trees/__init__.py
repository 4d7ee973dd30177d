"""Merkle-sum voting trees and their index spaces."""

from .models import ChallengeArtifacts, Pollard, VotingArtifacts, VotingTreeNode
from .network_tree import NetworkTreeManager, NetworkVotingTree
from .node_tree import NodeTreeManager, NodeVotingTree
from .voting_tree import VotingTree

__all__ = [
    "VotingTree",
    "VotingTreeNode",
    "Pollard",
    "ChallengeArtifacts",
    "VotingArtifacts",
    "NetworkVotingTree",
    "NetworkTreeManager",
    "NodeVotingTree",
    "NodeTreeManager",
]
