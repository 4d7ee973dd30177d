"""Checksum-indexed storage of voting artifacts."""

from .checksum_manager import ArtifactHandler, ChecksumManager

__all__ = ["ArtifactHandler", "ChecksumManager"]
