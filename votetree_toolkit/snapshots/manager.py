"""
Builds voting info snapshots from chain state and caches them on disk.
"""

import os
import re
from typing import Any, Dict, Optional, Tuple

from votetree_toolkit.shared.constants import VotingConstants
from votetree_toolkit.shared.exceptions import ArtifactCacheException
from votetree_toolkit.shared.logging import get_routine_logger
from votetree_toolkit.snapshots.models import VotingInfoSnapshot
from votetree_toolkit.storage.checksum_manager import (
    ArtifactHandler,
    ChecksumManager,
)

_logger = get_routine_logger(__name__, "Voting Info Snapshot")

_SNAPSHOT_FILENAME_PATTERN = re.compile(r"^vi-(\d+)\.json\.gz$")


def _parse_snapshot_block(filename: str) -> Optional[int]:
    match = _SNAPSHOT_FILENAME_PATTERN.match(filename)
    if not match:
        return None
    return int(match.group(1))


class VotingInfoSnapshotManager(ArtifactHandler[int, VotingInfoSnapshot]):
    """
    Cache-first access to voting info snapshots, keyed by block number.

    Args:
        reader: Chain reader (see GovernanceReader)
        network: Network name stored in, and required of, every snapshot
        voting_path: Root folder of the voting artifacts
    """

    def __init__(self, reader, network: str, voting_path: str):
        self.reader = reader
        self.network = network
        self.checksum_manager = ChecksumManager(
            os.path.join(
                voting_path,
                VotingConstants.SNAPSHOT_FOLDER,
                VotingConstants.CHECKSUM_TABLE_FILENAME,
            ),
            self,
        )

    def get_or_create(self, block_number: int) -> VotingInfoSnapshot:
        """Load the snapshot for a block, building it on a cache miss."""
        snapshot = self.load_from_disk(block_number)
        if snapshot is not None:
            return snapshot

        snapshot = self.create_voting_info_snapshot(block_number)
        self.save_to_file(snapshot)
        return snapshot

    def create_voting_info_snapshot(
        self, block_number: int
    ) -> VotingInfoSnapshot:
        """
        Read every voting node's power and delegate as of a block.

        Raises:
            ChainQueryException: a chain read failed
        """
        _logger.info(f"Creating voting info snapshot for block {block_number}")

        node_count = self.reader.get_voting_node_count(block_number)
        addresses = self.reader.get_node_addresses(node_count, block_number)
        info = self.reader.get_voting_info(block_number, addresses)

        _logger.info(
            f"Snapshot for block {block_number} has {len(info)} nodes"
        )
        return VotingInfoSnapshot(
            network=self.network, block_number=block_number, info=info
        )

    def save_to_file(self, snapshot: VotingInfoSnapshot) -> None:
        """Persist a snapshot; failures are logged and otherwise ignored."""
        try:
            path = self.checksum_manager.save(snapshot)
            _logger.info(f"Saved voting info snapshot to {path}")
        except (OSError, ArtifactCacheException) as e:
            _logger.warning(
                f"Could not save voting info snapshot for block "
                f"{snapshot.block_number}: {e}"
            )

    def load_from_disk(self, block_number: int) -> Optional[VotingInfoSnapshot]:
        """Cached snapshot for a block, or None on any kind of miss."""
        try:
            loaded = self.checksum_manager.load(block_number)
        except ArtifactCacheException as e:
            _logger.warning(
                f"Ignoring cached voting info snapshot for block "
                f"{block_number}: {e}"
            )
            return None

        if loaded is None:
            return None

        snapshot, filename = loaded
        _logger.info(f"Loaded voting info snapshot from {filename}")
        return snapshot

    # Checksum table hooks

    def sort_key(self, filename: str) -> Tuple[int, ...]:
        block = _parse_snapshot_block(filename)
        return (block if block is not None else -1,)

    def should_load_entry(self, filename: str, context: int) -> bool:
        return _parse_snapshot_block(filename) == context

    def is_data_valid(
        self, data: VotingInfoSnapshot, filename: str, context: int
    ) -> bool:
        if data.network != self.network:
            _logger.warning(
                f"Snapshot {filename} is for network {data.network}, "
                f"expected {self.network}"
            )
            return False
        if data.format_version != VotingConstants.ARTIFACT_FORMAT_VERSION:
            _logger.warning(
                f"Snapshot {filename} has format version "
                f"{data.format_version}, expected "
                f"{VotingConstants.ARTIFACT_FORMAT_VERSION}"
            )
            return False
        return data.block_number == context

    def decode(self, payload: Dict[str, Any]) -> VotingInfoSnapshot:
        return VotingInfoSnapshot.from_dict(payload)
