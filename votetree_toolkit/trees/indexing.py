"""
Mapping between node (account) indices in a snapshot and virtual tree indices.

Leaf ``i`` of the network tree sits at index ``total_leaf_nodes + i``, and
that leaf is also the root of node ``i``'s private tree. Every index below
the network leaves is an internal network-tree node; every index at or past
``2 * total_leaf_nodes`` is a descendant of exactly one network leaf.
"""

from typing import Optional

from votetree_toolkit.shared.exceptions import UnknownAccountException
from votetree_toolkit.snapshots.models import VotingInfoSnapshot
from votetree_toolkit.trees.voting_tree import get_total_leaf_nodes


def get_total_leaf_nodes_for_network_tree(snapshot: VotingInfoSnapshot) -> int:
    return get_total_leaf_nodes(len(snapshot.info))


def get_tree_node_index_from_node_index(
    snapshot: VotingInfoSnapshot, node_index: int
) -> int:
    """Virtual index of a node's leaf in the network tree."""
    return get_total_leaf_nodes_for_network_tree(snapshot) + node_index


def get_node_index_from_tree_node_index(
    snapshot: VotingInfoSnapshot, tree_node_index: int
) -> Optional[int]:
    """
    Find which node's private tree a virtual index belongs to.

    Returns None for internal network-tree nodes. Network leaves resolve to
    the node whose private tree they root.
    """
    total_leaf_nodes = get_total_leaf_nodes_for_network_tree(snapshot)
    if tree_node_index < total_leaf_nodes:
        return None

    index = tree_node_index
    while index >= total_leaf_nodes * 2:
        index //= 2
    return index - total_leaf_nodes


def get_node_index_from_snapshot(
    snapshot: VotingInfoSnapshot, address: str
) -> int:
    """Position of a node in the snapshot; fails for unregistered nodes."""
    node_index = snapshot.find_node_index(address)
    if node_index is None:
        raise UnknownAccountException(address, snapshot.block_number)
    return node_index
