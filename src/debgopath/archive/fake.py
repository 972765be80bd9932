"""In-memory fake implementation of Archive for testing."""

import hashlib
import tempfile
import threading
from pathlib import Path, PurePosixPath

from debgopath.archive.abc import Archive
from debgopath.core.errors import ArtifactFetchError, ReleaseResolutionError
from debgopath.core.types import ChecksummedArtifact, ReleaseMetadata


class FakeArchive(Archive):
    """In-memory fake implementation for testing.

    Artifacts are served from a dict of archive-relative filename -> bytes and
    verified against the requested hash like the real client does. Downloaded
    temporary files are tracked so tests can assert they were cleaned up.

    All state is provided via constructor using keyword arguments.
    This class has NO public setup methods.
    """

    def __init__(
        self,
        *,
        releases: dict[str, ReleaseMetadata] | None = None,
        files: dict[str, bytes] | None = None,
        fetch_failures: dict[str, str] | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        """Create FakeArchive with pre-configured content.

        Args:
            releases: Mapping of release name -> metadata returned by resolve_release
            files: Mapping of archive-relative filename -> content
            fetch_failures: Mapping of filename -> error message raised on fetch
            temp_dir: Directory for downloaded files (system default when None)
        """
        self._releases = releases or {}
        self._files = files or {}
        self._fetch_failures = fetch_failures or {}
        self._temp_dir = temp_dir
        self._lock = threading.Lock()
        self._resolved_releases: list[str] = []
        self._fetched: list[str] = []
        self._temp_files: list[Path] = []

    @property
    def resolved_releases(self) -> list[str]:
        """Release names passed to resolve_release, for test assertions."""
        return list(self._resolved_releases)

    @property
    def fetched(self) -> list[str]:
        """Filenames passed to fetch_to_temp, in call order."""
        with self._lock:
            return list(self._fetched)

    @property
    def temp_files(self) -> list[Path]:
        """Every temporary file handed out by fetch_to_temp."""
        with self._lock:
            return list(self._temp_files)

    def resolve_release(self, name: str) -> ReleaseMetadata:
        self._resolved_releases.append(name)
        if name not in self._releases:
            raise ReleaseResolutionError(f"release {name}: HTTP 404")
        return self._releases[name]

    def fetch_to_temp(self, artifact: ChecksummedArtifact) -> Path:
        with self._lock:
            self._fetched.append(artifact.filename)

        if artifact.filename in self._fetch_failures:
            raise ArtifactFetchError(artifact.filename, self._fetch_failures[artifact.filename])
        if artifact.filename not in self._files:
            raise ArtifactFetchError(artifact.filename, "HTTP 404")

        content = self._files[artifact.filename]
        actual = hashlib.new(artifact.hash_algorithm, content).hexdigest()
        if actual != artifact.content_hash:
            raise ArtifactFetchError(
                artifact.filename,
                f"{artifact.hash_algorithm} mismatch: got {actual}, want {artifact.content_hash}",
            )

        basename = PurePosixPath(artifact.filename).name
        with tempfile.NamedTemporaryFile(
            prefix="debgopath-", suffix=f"-{basename}", dir=self._temp_dir, delete=False
        ) as f:
            f.write(content)
        path = Path(f.name)
        with self._lock:
            self._temp_files.append(path)
        return path
