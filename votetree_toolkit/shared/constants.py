"""All constants for the project"""

import os

from dotenv import load_dotenv

from votetree_toolkit.shared.exceptions import ConfigurationException

load_dotenv()


class GlobalConstants:
    """Global class constants for the project"""

    CHAIN_ID_TO_RPC = {
        1: os.getenv("ETHEREUM_MAINNET_RPC_URL") or None,
        17000: os.getenv("HOLESKY_RPC_URL") or None,
    }

    CHAIN_ID_TO_NETWORK = {
        1: "mainnet",
        17000: "holesky",
    }

    # Root of every on-disk artifact (snapshots, network trees, node trees)
    VOTING_PATH = os.getenv("VT_VOTING_PATH") or os.path.join(
        "data", "voting"
    )

    @staticmethod
    def get_rpc_url(chain_id: int) -> str:
        """Get RPC URL for specified chain"""
        chain_id = int(chain_id)
        if chain_id not in GlobalConstants.CHAIN_ID_TO_RPC:
            raise ConfigurationException(f"Chain ID {chain_id} not supported")

        rpc_url = GlobalConstants.CHAIN_ID_TO_RPC[chain_id]
        if not rpc_url:
            raise ConfigurationException(
                f"RPC URL not set for chain {chain_id}"
            )

        return rpc_url

    @staticmethod
    def get_network(chain_id: int) -> str:
        """Get the network name used to tag artifacts for a chain"""
        chain_id = int(chain_id)
        if chain_id not in GlobalConstants.CHAIN_ID_TO_NETWORK:
            raise ConfigurationException(f"Chain ID {chain_id} not supported")
        return GlobalConstants.CHAIN_ID_TO_NETWORK[chain_id]


class ContractRegistry:
    """
    Protocol contract locations.

    Only RocketStorage is pinned; every other contract address is looked up
    from it at runtime under "contract.address" + name.
    """

    ROCKET_STORAGE = {
        1: "0x1d8f8f00cfa6758d7bE78336684788Fb0ee0Fa46",
        17000: "0x594Fb75D3dc2DFa0150Ad03F99F97817747dd4E1",
    }

    NETWORK_VOTING = "rocketNetworkVoting"
    NODE_MANAGER = "rocketNodeManager"
    DAO_PROTOCOL_VERIFIER = "rocketDAOProtocolVerifier"
    DAO_PROTOCOL_PROPOSAL = "rocketDAOProtocolProposal"

    @staticmethod
    def get_rocket_storage(chain_id: int) -> str:
        """Get the RocketStorage address for a chain"""
        chain_id = int(chain_id)
        address = ContractRegistry.ROCKET_STORAGE.get(chain_id)
        if not address:
            raise ConfigurationException(
                f"No RocketStorage address for chain {chain_id}"
            )
        return address


class VotingConstants:
    """Constants for snapshot, tree and event processing"""

    # Accounts per multicall when building a voting info snapshot
    NODE_INFO_BATCH_COUNT = 500

    # Block window per eth_getLogs request when scanning for events
    EVENT_LOG_INTERVAL = 10000

    # Bumped whenever the on-disk layout of snapshots or trees changes
    ARTIFACT_FORMAT_VERSION = 1

    CHECKSUM_TABLE_FILENAME = "checksums.sha384"

    SNAPSHOT_FOLDER = "vi-info"
    NETWORK_TREE_FOLDER = "network-trees"
    NODE_TREE_FOLDER = "node-trees"
