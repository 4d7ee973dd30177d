"""
Unit tests for the checksum-indexed artifact store.
"""

import gzip
import hashlib
import json
import re

import pytest

from votetree_toolkit.shared.exceptions import ArtifactCacheException
from votetree_toolkit.snapshots.models import VotingInfoSnapshot
from votetree_toolkit.storage.checksum_manager import (
    ArtifactHandler,
    ChecksumManager,
    serialize_artifact,
)


class SnapshotHandler(ArtifactHandler):
    """Minimal handler keyed on block number."""

    def __init__(self, network="mainnet"):
        self.network = network

    def sort_key(self, filename):
        return (int(re.match(r"vi-(\d+)", filename).group(1)),)

    def should_load_entry(self, filename, context):
        return filename == f"vi-{context}.json.gz"

    def is_data_valid(self, data, filename, context):
        return data.network == self.network

    def decode(self, payload):
        return VotingInfoSnapshot.from_dict(payload)


def _snapshot(block_number, info=None, network="mainnet"):
    return VotingInfoSnapshot(
        network=network, block_number=block_number, info=info or []
    )


@pytest.fixture
def manager(tmp_path):
    return ChecksumManager(
        tmp_path / "vi-info" / "checksums.sha384", SnapshotHandler()
    )


class TestSave:
    """Tests for ChecksumManager.save."""

    def test_writes_file_and_checksum(self, manager, sample_snapshot):
        path = manager.save(sample_snapshot)

        assert path.name == "vi-21000000.json.gz"
        content = path.read_bytes()
        table = manager.checksum_filename.read_text()
        assert table == (
            f"{hashlib.sha384(content).hexdigest()}  vi-21000000.json.gz"
        )

    def test_file_is_gzipped_json(self, manager, sample_snapshot):
        path = manager.save(sample_snapshot)

        payload = json.loads(gzip.decompress(path.read_bytes()))

        assert payload == sample_snapshot.to_dict()

    def test_encoding_is_deterministic(self, sample_snapshot):
        assert serialize_artifact(sample_snapshot) == serialize_artifact(
            sample_snapshot
        )

    def test_resave_replaces_entry(self, manager, sample_snapshot):
        manager.save(sample_snapshot)
        manager.save(sample_snapshot)

        lines = manager.checksum_filename.read_text().splitlines()
        assert len(lines) == 1

    def test_table_is_sorted(self, manager):
        for block in (300, 100, 200):
            manager.save(_snapshot(block))

        lines = manager.checksum_filename.read_text().splitlines()
        assert [line.split("  ")[1] for line in lines] == [
            "vi-100.json.gz",
            "vi-200.json.gz",
            "vi-300.json.gz",
        ]

    def test_malformed_lines_are_dropped(self, manager):
        manager.checksum_filename.write_text("garbage\n")

        manager.save(_snapshot(100))

        lines = manager.checksum_filename.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].endswith("  vi-100.json.gz")

    def test_no_temp_files_left(self, manager, sample_snapshot):
        manager.save(sample_snapshot)

        leftovers = [
            p.name for p in manager.data_folder.iterdir() if p.suffix == ".tmp"
        ]
        assert leftovers == []


class TestLoad:
    """Tests for ChecksumManager.load."""

    def test_round_trip(self, manager, sample_snapshot):
        manager.save(sample_snapshot)

        loaded, filename = manager.load(21000000)

        assert loaded == sample_snapshot
        assert filename == "vi-21000000.json.gz"

    def test_no_table(self, manager):
        assert manager.load(21000000) is None

    def test_no_matching_entry(self, manager):
        manager.save(_snapshot(100))

        assert manager.load(200) is None

    def test_invalid_data_is_skipped(self, manager):
        manager.save(_snapshot(100, network="holesky"))

        assert manager.load(100) is None

    def test_corrupt_file(self, manager, sample_snapshot):
        """A file that no longer matches its checksum is rejected."""
        path = manager.save(sample_snapshot)
        path.write_bytes(path.read_bytes() + b"\x00")

        with pytest.raises(ArtifactCacheException, match="checksum mismatch"):
            manager.load(21000000)

    def test_missing_file(self, manager, sample_snapshot):
        path = manager.save(sample_snapshot)
        path.unlink()

        with pytest.raises(ArtifactCacheException, match="error reading"):
            manager.load(21000000)

    def test_undecodable_file(self, manager, sample_snapshot):
        """A file with a valid checksum but bad content is rejected."""
        path = manager.save(sample_snapshot)
        content = b"not gzip"
        path.write_bytes(content)
        manager.checksum_filename.write_text(
            f"{hashlib.sha384(content).hexdigest()}  {path.name}"
        )

        with pytest.raises(ArtifactCacheException, match="error decoding"):
            manager.load(21000000)
