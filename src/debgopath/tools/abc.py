"""Abstract interface for the external tools used to assemble a package."""

from abc import ABC, abstractmethod
from pathlib import Path

# Permissions as produced by "apt source": readable and traversable by everyone,
# writable by the owner only.
PERMISSION_POLICY = "u+r+w+X,g+r-w+X,o+r-w+X"


class SourceTools(ABC):
    """Abstract interface for archive extraction, patching and permission fixes.

    Real implementations shell out to tar(1), quilt(1) and chmod(1). Fake
    implementations work on temporary directories without subprocesses.
    All methods raise RuntimeError with the command line and working
    directory when the tool fails.
    """

    @abstractmethod
    def list_archive_members(self, archive_path: Path) -> list[str]:
        """Return the member paths of a tar archive, in archive order."""
        ...

    @abstractmethod
    def extract_archive(self, archive_path: Path, dest: Path, strip_components: int) -> None:
        """Extract a tar archive into dest, which must exist.

        Args:
            archive_path: Compressed or plain tar archive
            dest: Directory to extract into
            strip_components: Number of leading path components removed from members
        """
        ...

    @abstractmethod
    def apply_patch_series(self, source_dir: Path, patches_dir: Path) -> None:
        """Apply every patch listed in patches_dir/series, in order, to source_dir."""
        ...

    @abstractmethod
    def normalize_permissions(self, path: Path) -> None:
        """Recursively apply PERMISSION_POLICY to path."""
        ...
