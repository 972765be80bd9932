"""Turning one source package into a populated import path directory.

For each package the .orig tarball is unpacked at <staging>/<import path>,
the .debian tarball below it, then patches, debhelper links and clean lists
are applied and the hashes of both inputs are recorded so downstream tools
can tell when a package changed.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

from debgopath.archive.abc import Archive
from debgopath.core.debhelper import clean_files, create_links
from debgopath.core.errors import ArtifactFetchError, AssemblyError, MissingArtifactError
from debgopath.core.patches import apply_patches
from debgopath.core.rewrite_table import SOURCE_ROOT_PREFIX
from debgopath.core.types import ChecksummedArtifact, SourcePackageRecord
from debgopath.tools.abc import SourceTools

logger = logging.getLogger(__name__)

T = TypeVar("T")

ORIGINAL_TARBALL_MARKER = ".orig.tar."
PACKAGING_TARBALL_MARKER = ".debian.tar."
SIGNATURE_SUFFIX = ".asc"
MANIFEST_NAME = ".hashes"


@dataclass(frozen=True)
class SelectedArtifacts:
    """The two tarballs a package is assembled from, with archive-relative names."""

    original: ChecksummedArtifact
    packaging: ChecksummedArtifact


def select_artifacts(record: SourcePackageRecord) -> SelectedArtifacts:
    """Pick the .orig and .debian tarballs of a record, ignoring signatures.

    Raises:
        MissingArtifactError: If either tarball is absent (e.g. native packages)
    """
    original: ChecksummedArtifact | None = None
    packaging: ChecksummedArtifact | None = None
    for artifact in record.checksummed_artifacts:
        if artifact.filename.endswith(SIGNATURE_SUFFIX):
            continue
        if ORIGINAL_TARBALL_MARKER in artifact.filename:
            original = original or artifact
        elif PACKAGING_TARBALL_MARKER in artifact.filename:
            packaging = packaging or artifact

    if original is None:
        raise MissingArtifactError(
            record.package_name, "selecting artifacts", f"missing {ORIGINAL_TARBALL_MARKER} file"
        )
    if packaging is None:
        raise MissingArtifactError(
            record.package_name, "selecting artifacts", f"missing {PACKAGING_TARBALL_MARKER} file"
        )
    return SelectedArtifacts(
        original=original.with_directory(record.directory_path),
        packaging=packaging.with_directory(record.directory_path),
    )


def strip_components_for(members: Iterable[str]) -> int:
    """Number of leading components to strip when extracting an archive.

    Tarballs normally wrap their content in one directory, which is stripped.
    Some upstream tarballs (e.g. golang-github-nwidger-jsoncolor) place files
    at the top level; as soon as one member has no directory, nothing is
    stripped.
    """
    for member in members:
        if "/" not in member:
            return 0
    return 1


def write_manifest(packaging_dir: Path, artifacts: SelectedArtifacts) -> Path:
    """Write <packaging>/.hashes with one "<filename>=<hash>" line per input."""
    manifest = packaging_dir / MANIFEST_NAME
    lines = [
        f"{artifacts.original.filename}={artifacts.original.content_hash}",
        f"{artifacts.packaging.filename}={artifacts.packaging.content_hash}",
    ]
    manifest.write_text("\n".join(lines) + "\n", encoding="utf-8")
    manifest.chmod(0o644)
    return manifest


class PackageAssembler:
    """Assembles single source packages into a shared staging directory.

    Instances hold no per-package state and are shared by all worker threads;
    each package writes only below its own import path.
    """

    def __init__(
        self,
        archive: Archive,
        tools: SourceTools,
        *,
        packaging_dir_name: str = "packaging",
        source_root_prefix: str = SOURCE_ROOT_PREFIX,
    ) -> None:
        self._archive = archive
        self._tools = tools
        self._packaging_dir_name = packaging_dir_name
        self._source_root_prefix = source_root_prefix

    def assemble(self, record: SourcePackageRecord, import_path: str, staging_root: Path) -> Path:
        """Assemble record at staging_root/import_path.

        Returns:
            The destination directory

        Raises:
            MissingArtifactError: Soft failure, the package should be skipped
            AssemblyError: Hard failure naming the package and the failing step
        """
        name = record.package_name
        artifacts = select_artifacts(record)
        dest = staging_root / import_path
        packaging_dir = dest / self._packaging_dir_name

        with ExitStack() as stack:
            original = stack.enter_context(self._fetched(name, artifacts.original))
            packaging = stack.enter_context(self._fetched(name, artifacts.packaging))
            self._step(name, "unpacking orig tarball", lambda: self._unpack(original, dest))
            self._step(
                name, "unpacking debian tarball", lambda: self._unpack(packaging, packaging_dir)
            )

        patched = self._step(
            name, "applying patches", lambda: apply_patches(self._tools, dest, packaging_dir)
        )
        links = self._step(
            name,
            "creating links",
            lambda: create_links(staging_root, packaging_dir, self._source_root_prefix),
        )
        removed = self._step(name, "cleaning files", lambda: clean_files(dest, packaging_dir))

        # golang-github-svent-go-nbreader, for one, ships a debian tarball
        # without world-readable bits.
        self._step(name, "normalizing permissions", lambda: self._tools.normalize_permissions(dest))
        self._step(name, "writing hashes", lambda: write_manifest(packaging_dir, artifacts))

        logger.debug(
            "src:%s: assembled %s (patched=%s, links=%d, removed=%d)",
            name,
            import_path,
            patched,
            links,
            removed,
        )
        return dest

    @contextmanager
    def _fetched(self, package_name: str, artifact: ChecksummedArtifact) -> Iterator[Path]:
        """Download artifact for the duration of the block, then remove it."""
        try:
            path = self._archive.fetch_to_temp(artifact)
        except ArtifactFetchError as e:
            raise AssemblyError(package_name, "downloading", str(e)) from e
        try:
            yield path
        finally:
            path.unlink(missing_ok=True)

    def _unpack(self, archive_path: Path, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        members = self._tools.list_archive_members(archive_path)
        self._tools.extract_archive(archive_path, dest, strip_components_for(members))

    def _step(self, package_name: str, step: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except (OSError, RuntimeError) as e:
            raise AssemblyError(package_name, step, str(e)) from e
