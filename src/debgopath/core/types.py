"""Data types shared by the index loader, the assembler and the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from debgopath.core.errors import AssemblyError


@dataclass(frozen=True)
class ChecksummedArtifact:
    """A file in the archive together with the hash it must match.

    `filename` is relative to the archive root once it has been joined with a
    source package's directory (e.g. "pool/main/g/golang-foo/golang-foo_1.0.orig.tar.gz").
    """

    filename: str
    content_hash: str
    size: int
    hash_algorithm: str = "sha256"

    def with_directory(self, directory: str) -> "ChecksummedArtifact":
        """Return a copy whose filename is joined with the given archive directory."""
        if not directory:
            return self
        return ChecksummedArtifact(
            filename=f"{directory.rstrip('/')}/{self.filename}",
            content_hash=self.content_hash,
            size=self.size,
            hash_algorithm=self.hash_algorithm,
        )


@dataclass(frozen=True)
class SourcePackageRecord:
    """One versioned source package entry from the archive's Sources index."""

    package_name: str
    version: str
    directory_path: str
    build_dependencies: tuple[str, ...]
    import_path_hint: str
    is_extra_source_only: bool
    checksummed_artifacts: tuple[ChecksummedArtifact, ...]


@dataclass(frozen=True)
class ReleaseMetadata:
    """Point-in-time snapshot of an archive release.

    `index_files` maps the path relative to the release directory
    (e.g. "main/source/Sources.gz") to the artifact that can be fetched.
    """

    release_name: str
    last_modified: datetime
    index_files: dict[str, ChecksummedArtifact] = field(default_factory=dict)

    @property
    def timestamp(self) -> str:
        """UNIX seconds of the last modification, used to name snapshots."""
        return str(int(self.last_modified.timestamp()))


class AssemblyStatus(str, Enum):
    """Outcome of assembling one source package."""

    ASSEMBLED = "assembled"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class AssemblyResult:
    """Per-package outcome collected by the orchestrator.

    SKIPPED results carry a soft error (missing artifact, missing import path,
    destination collision); FAILED results carry the hard error that prevents
    publication.
    """

    package_name: str
    status: AssemblyStatus
    import_path: str | None = None
    error: AssemblyError | None = None

    @property
    def is_hard_failure(self) -> bool:
        return self.status == AssemblyStatus.FAILED


class RunState(str, Enum):
    """States of a workspace build run."""

    IDLE = "idle"
    FETCHING = "fetching"
    ASSEMBLING = "assembling"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class BuildOutcome:
    """Result of a successful run.

    `reused` is True when a snapshot for the release timestamp already existed
    and no assembly work was performed.
    """

    timestamp: str
    snapshot_path: Path
    reused: bool
    results: tuple[AssemblyResult, ...] = ()
    duration_seconds: float = 0.0

    def count(self, status: AssemblyStatus) -> int:
        return sum(1 for result in self.results if result.status == status)
