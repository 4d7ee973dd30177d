"""
Read-only access to the governance contracts the voting trees are built from.

Every read is retried on transient RPC failures; once retries are exhausted
the failure is raised as a ChainQueryException naming the query.
"""

from typing import Dict, List, Optional, Sequence

from eth_utils import keccak, to_checksum_address
from w3multicall.multicall import W3Multicall

from votetree_toolkit.proposals.challenges import ChallengeState
from votetree_toolkit.proposals.events import RootSubmitted
from votetree_toolkit.shared.constants import ContractRegistry, VotingConstants
from votetree_toolkit.shared.exceptions import ChainQueryException
from votetree_toolkit.shared.logging import get_logger
from votetree_toolkit.shared.retry import (
    LOG_SCAN_RETRY_CONFIG,
    RPC_RETRY_CONFIG,
    RetryConfig,
)
from votetree_toolkit.shared.services.web3_service import Web3Service
from votetree_toolkit.snapshots.models import NodeVotingInfo

_logger = get_logger(__name__)

ROOT_SUBMITTED_EVENT_SIGNATURE = (
    "RootSubmitted(uint256,address,uint32,uint256,(uint256,bytes32),"
    "(uint256,bytes32)[],uint256)"
)


def _uint256_topic(value: int) -> str:
    return "0x" + int(value).to_bytes(32, "big").hex()


class GovernanceReader:
    """
    Chain reads used to snapshot voting power and watch proposal roots.

    Args:
        web3_service: Connection to the chain
        batch_size: Nodes per multicall when reading addresses and voting info
        log_interval: Blocks per eth_getLogs request
    """

    def __init__(
        self,
        web3_service: Web3Service,
        batch_size: int = VotingConstants.NODE_INFO_BATCH_COUNT,
        log_interval: int = VotingConstants.EVENT_LOG_INTERVAL,
    ):
        self.web3_service = web3_service
        self.batch_size = batch_size
        self.log_interval = log_interval
        self._contract_addresses: Dict[str, str] = {}

    def _call(
        self,
        operation,
        *args,
        query: str,
        retry_config: RetryConfig = RPC_RETRY_CONFIG,
        **kwargs,
    ):
        try:
            return retry_config.run(
                operation, *args, operation_name=query, **kwargs
            )
        except Exception as e:
            raise ChainQueryException(query, e) from e

    def get_contract_address(self, name: str) -> str:
        """Resolve a protocol contract through the RocketStorage registry."""
        if name not in self._contract_addresses:
            storage = self.web3_service.get_contract(
                ContractRegistry.get_rocket_storage(
                    self.web3_service.chain_id
                ),
                "rocket_storage",
            )
            key = keccak(text=f"contract.address{name}")
            address = self._call(
                storage.functions.getAddress(key).call,
                query=f"getting address of {name}",
            )
            self._contract_addresses[name] = to_checksum_address(address)
        return self._contract_addresses[name]

    def get_finalized_block_number(self) -> int:
        return self._call(
            self.web3_service.get_finalized_block_number,
            query="getting latest finalized block",
        )

    def get_voting_node_count(self, block_number: int) -> int:
        """Number of nodes that could vote at a block."""
        voting = self.web3_service.get_contract(
            self.get_contract_address(ContractRegistry.NETWORK_VOTING),
            "rocket_network_voting",
        )
        return self._call(
            voting.functions.getNodeCount(block_number).call,
            block_identifier=block_number,
            query=f"getting voting node count at block {block_number}",
        )

    def get_node_addresses(
        self, count: int, block_number: Optional[int] = None
    ) -> List[str]:
        """
        Addresses of the first ``count`` registered nodes, in registration
        order. Nodes only ever get appended, so reading at a later block
        returns the same prefix.
        """
        node_manager = self.get_contract_address(
            ContractRegistry.NODE_MANAGER
        )
        w3 = self.web3_service.w3
        block = block_number if block_number is not None else "latest"

        addresses: List[str] = []
        for start in range(0, count, self.batch_size):
            end = min(start + self.batch_size, count)
            multicall = W3Multicall(w3)
            for i in range(start, end):
                multicall.add(
                    W3Multicall.Call(
                        node_manager, "getNodeAt(uint256)(address)", [i]
                    )
                )
            results = self._call(
                multicall.call,
                block,
                query=f"getting node addresses {start}-{end - 1}",
            )
            addresses.extend(to_checksum_address(a) for a in results)

        return addresses

    def get_voting_info(
        self, block_number: int, addresses: Sequence[str]
    ) -> List[NodeVotingInfo]:
        """Voting power and delegate of each node, as of a block."""
        voting = self.get_contract_address(ContractRegistry.NETWORK_VOTING)
        w3 = self.web3_service.w3

        info: List[NodeVotingInfo] = []
        for start in range(0, len(addresses), self.batch_size):
            batch = addresses[start : start + self.batch_size]
            multicall = W3Multicall(w3)
            for address in batch:
                address = to_checksum_address(address)
                multicall.add(
                    W3Multicall.Call(
                        voting,
                        "getVotingPower(address,uint32)(uint256)",
                        [address, block_number],
                    )
                )
                multicall.add(
                    W3Multicall.Call(
                        voting,
                        "getDelegate(address,uint32)(address)",
                        [address, block_number],
                    )
                )

            results = self._call(
                multicall.call,
                block_number,
                query=(
                    f"getting voting info for nodes {start}-"
                    f"{start + len(batch) - 1} at block {block_number}"
                ),
            )
            for j, address in enumerate(batch):
                info.append(
                    NodeVotingInfo(
                        node_address=address,
                        voting_power=int(results[2 * j]),
                        delegate=results[2 * j + 1],
                    )
                )

            _logger.debug(
                f"Read voting info for {len(info)}/{len(addresses)} nodes"
            )

        return info

    def get_depth_per_round(self) -> int:
        """Tree levels revealed per challenge round."""
        return self._call(
            self._get_verifier().functions.getDepthPerRound().call,
            query="getting depth per round",
        )

    def get_challenge_state(
        self, proposal_id: int, index: int
    ) -> ChallengeState:
        """State of the challenge against a tree index of a proposal."""
        state = self._call(
            self._get_verifier()
            .functions.getChallengeState(proposal_id, index)
            .call,
            query=(
                f"getting challenge state of proposal {proposal_id}, "
                f"index {index}"
            ),
        )
        return ChallengeState(state)

    def get_challenge_period(self, proposal_id: int) -> int:
        """Seconds a proposal stays open to challenges once created."""
        return self._call(
            self._get_verifier().functions.getChallengePeriod(proposal_id).call,
            query=f"getting challenge period of proposal {proposal_id}",
        )

    def get_proposal_created_time(self, proposal_id: int) -> int:
        """Unix time a proposal was created at."""
        proposals = self.web3_service.get_contract(
            self.get_contract_address(ContractRegistry.DAO_PROTOCOL_PROPOSAL),
            "rocket_dao_protocol_proposal",
        )
        return self._call(
            proposals.functions.getCreated(proposal_id).call,
            query=f"getting creation time of proposal {proposal_id}",
        )

    def get_root_submitted_events(
        self,
        proposal_ids: Sequence[int],
        start_block: int,
        end_block: int,
        previous_verifier_addresses: Optional[Sequence[str]] = None,
    ) -> List[RootSubmitted]:
        """
        RootSubmitted events of the given proposals in [start_block,
        end_block], scanned ``log_interval`` blocks at a time.

        Logs from earlier verifier deployments are included when their
        addresses are given, so submissions made before an upgrade are
        still found.
        """
        if not proposal_ids or end_block < start_block:
            return []

        verifier = self._get_verifier()
        addresses = [
            to_checksum_address(a) for a in previous_verifier_addresses or []
        ]
        addresses.append(
            self.get_contract_address(ContractRegistry.DAO_PROTOCOL_VERIFIER)
        )
        event_topic = "0x" + keccak(text=ROOT_SUBMITTED_EVENT_SIGNATURE).hex()
        id_topics = [_uint256_topic(pid) for pid in proposal_ids]

        events: List[RootSubmitted] = []
        window_start = start_block
        while window_start <= end_block:
            window_end = min(window_start + self.log_interval - 1, end_block)
            logs = self._call(
                self.web3_service.get_logs,
                {
                    "address": addresses,
                    "fromBlock": window_start,
                    "toBlock": window_end,
                    "topics": [event_topic, id_topics],
                },
                query=(
                    f"scanning RootSubmitted logs in blocks "
                    f"{window_start}-{window_end}"
                ),
                retry_config=LOG_SCAN_RETRY_CONFIG,
            )
            for log in logs:
                decoded = verifier.events.RootSubmitted().process_log(log)
                events.append(RootSubmitted.from_event(decoded))
            window_start = window_end + 1

        _logger.info(
            f"Found {len(events)} RootSubmitted events in blocks "
            f"{start_block}-{end_block}"
        )
        return events

    def _get_verifier(self):
        return self.web3_service.get_contract(
            self.get_contract_address(ContractRegistry.DAO_PROTOCOL_VERIFIER),
            "rocket_dao_protocol_verifier",
        )
