"""Abstract interface for the Debian archive."""

from abc import ABC, abstractmethod
from pathlib import Path

from debgopath.core.types import ChecksummedArtifact, ReleaseMetadata


class Archive(ABC):
    """Abstract interface for fetching release metadata and artifacts.

    The production implementation talks HTTP to a mirror; the fake serves
    bytes from memory. Both verify content hashes, so callers never see an
    artifact that does not match the index.
    """

    @abstractmethod
    def resolve_release(self, name: str) -> ReleaseMetadata:
        """Fetch the metadata of a release (e.g. "unstable").

        Raises:
            ReleaseResolutionError: If the release cannot be fetched or parsed
        """
        ...

    @abstractmethod
    def fetch_to_temp(self, artifact: ChecksummedArtifact) -> Path:
        """Download an artifact into a new temporary file and return its path.

        The caller owns the file and must remove it. Transient failures are
        retried a bounded number of times before an error is raised.

        Args:
            artifact: Artifact whose filename is relative to the archive root

        Raises:
            ArtifactFetchError: If the download fails or the hash does not match
        """
        ...
