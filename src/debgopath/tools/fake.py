"""Fake source tools for testing without tar, quilt or chmod binaries.

Archives are read with the tarfile module so assembler tests operate on real
temporary directories; patching and permission changes are only recorded.
"""

import tarfile
import threading
from pathlib import Path

from debgopath.tools.abc import SourceTools


def _open_tarball(archive_path: Path) -> tarfile.TarFile:
    try:
        return tarfile.open(archive_path)
    except tarfile.TarError as e:
        raise RuntimeError(f"Failed to read archive {archive_path.name}: {e}") from e


class FakeSourceTools(SourceTools):
    """Fake tools recording patch and permission calls.

    Attributes exposed for assertions:
        extract_calls: (archive_path, dest, strip_components) tuples
        patch_calls: (source_dir, patches_dir) tuples
        permission_calls: paths passed to normalize_permissions

    Example:
        tools = FakeSourceTools(failing_patch_dirs={"foo"})  # last import path component
        assembler = PackageAssembler(FakeArchive(files=...), tools)
    """

    def __init__(
        self,
        *,
        failing_patch_dirs: set[str] | None = None,
        failing_permission_dirs: set[str] | None = None,
    ) -> None:
        """Create FakeSourceTools.

        Args:
            failing_patch_dirs: Source directory names for which patching fails
            failing_permission_dirs: Directory names for which chmod fails
        """
        self._failing_patch_dirs = failing_patch_dirs or set()
        self._failing_permission_dirs = failing_permission_dirs or set()
        self._lock = threading.Lock()
        self.extract_calls: list[tuple[Path, Path, int]] = []
        self.patch_calls: list[tuple[Path, Path]] = []
        self.permission_calls: list[Path] = []

    def list_archive_members(self, archive_path: Path) -> list[str]:
        # tar(1) lists directories with a trailing slash.
        with _open_tarball(archive_path) as tf:
            return [f"{m.name}/" if m.isdir() else m.name for m in tf.getmembers()]

    def extract_archive(self, archive_path: Path, dest: Path, strip_components: int) -> None:
        if not dest.is_dir():
            raise FileNotFoundError(f"Extraction target not found: {dest}")
        with self._lock:
            self.extract_calls.append((archive_path, dest, strip_components))

        with _open_tarball(archive_path) as tf:
            members: list[tarfile.TarInfo] = []
            for member in tf.getmembers():
                parts = [part for part in member.name.split("/") if part]
                if len(parts) <= strip_components:
                    continue
                member.name = "/".join(parts[strip_components:])
                members.append(member)
            tf.extractall(dest, members=members, filter="data")

    def apply_patch_series(self, source_dir: Path, patches_dir: Path) -> None:
        with self._lock:
            self.patch_calls.append((source_dir, patches_dir))
        if source_dir.name in self._failing_patch_dirs:
            raise RuntimeError(
                f"Failed to apply patch series in {source_dir}"
                "\nCommand: quilt push -a"
                "\nExit code: 1"
            )

    def normalize_permissions(self, path: Path) -> None:
        with self._lock:
            self.permission_calls.append(path)
        if path.name in self._failing_permission_dirs:
            raise RuntimeError(f"Failed to normalize permissions of {path}\nExit code: 1")
