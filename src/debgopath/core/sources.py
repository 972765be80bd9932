"""Loading the archive's Sources index into Go-relevant source package records."""

import gzip
import logging
import lzma
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from debian.deb822 import Sources
from debian.debian_support import Version
from debgopath.archive.abc import Archive
from debgopath.core.errors import IndexDecodeError, ReleaseResolutionError
from debgopath.core.rewrite_table import RewriteTable
from debgopath.core.types import ChecksummedArtifact, ReleaseMetadata, SourcePackageRecord

logger = logging.getLogger(__name__)

# Keeping only the fields we use keeps memory down on the ~30k paragraphs of
# an unstable Sources file.
_FIELDS = [
    "Package",
    "Version",
    "Directory",
    "Build-Depends",
    "Go-Import-Path",
    "Extra-Source-Only",
    "Checksums-Sha256",
    "Files",
]

# (field, hash column, hashlib algorithm), strongest first.
_CHECKSUM_FIELDS = (
    ("Checksums-Sha256", "sha256", "sha256"),
    ("Files", "md5sum", "md5"),
)


def decode_sources(stream: IO[str] | Iterable[str]) -> list[SourcePackageRecord]:
    """Decode every paragraph of a Sources index.

    Raises:
        IndexDecodeError: If any paragraph is malformed. No partial result is
            returned in that case.
    """
    records: list[SourcePackageRecord] = []
    try:
        # apt_pkg would read the compressed bytes behind a gzip/xz stream's fileno.
        for paragraph in Sources.iter_paragraphs(stream, fields=_FIELDS, use_apt_pkg=False):
            records.append(_record_from_paragraph(paragraph))
    except UnicodeDecodeError as e:
        raise IndexDecodeError(f"Sources index is not valid UTF-8: {e}") from e
    return records


def _record_from_paragraph(paragraph: Sources) -> SourcePackageRecord:
    name = paragraph.get("Package")
    if not name:
        raise IndexDecodeError(f"paragraph without Package field: {dict(paragraph)!r}")
    version = paragraph.get("Version")
    if not version:
        raise IndexDecodeError(f"src:{name}: missing Version field")
    try:
        Version(version)
    except ValueError as e:
        raise IndexDecodeError(f"src:{name}: invalid version {version!r}: {e}") from e

    try:
        artifacts = _checksummed_artifacts(paragraph)
    except (KeyError, ValueError) as e:
        raise IndexDecodeError(f"src:{name}: malformed checksum line: {e}") from e

    return SourcePackageRecord(
        package_name=name,
        version=version,
        directory_path=paragraph.get("Directory", ""),
        build_dependencies=_build_dependency_names(paragraph),
        import_path_hint=paragraph.get("Go-Import-Path", "").strip(),
        is_extra_source_only=paragraph.get("Extra-Source-Only", "").strip().lower() == "yes",
        checksummed_artifacts=artifacts,
    )


def _build_dependency_names(paragraph: Sources) -> tuple[str, ...]:
    """Package names of every alternative in Build-Depends, in field order."""
    return tuple(
        relation["name"]
        for alternatives in paragraph.relations["build-depends"]
        for relation in alternatives
        if relation["name"]
    )


def _checksummed_artifacts(paragraph: Sources) -> tuple[ChecksummedArtifact, ...]:
    for field, column, algorithm in _CHECKSUM_FIELDS:
        entries = paragraph.get(field)
        if not entries:
            continue
        # A single-line value is parsed into one mapping instead of a list.
        if hasattr(entries, "keys"):
            entries = [entries]
        return tuple(
            ChecksummedArtifact(
                filename=entry["name"],
                content_hash=entry[column],
                size=int(entry["size"]),
                hash_algorithm=algorithm,
            )
            for entry in entries
        )
    return ()


def depends_on_toolchain(record: SourcePackageRecord, table: RewriteTable) -> bool:
    """Whether the record is Go code: it has an import path or build-depends on Go."""
    if record.import_path_hint:
        return True
    return any(dep in table.toolchain_dependencies for dep in record.build_dependencies)


def load_sources(
    stream: IO[str] | Iterable[str], table: RewriteTable
) -> list[SourcePackageRecord]:
    """Decode a Sources index and keep the newest Go source package per name.

    Extra-Source-Only entries (kept in the archive for Built-Using, see
    https://bugs.debian.org/814156), ignored and excluded packages are dropped
    before versions are compared, using Debian version ordering.

    Returns:
        Records sorted by package name, at most one per name
    """
    newest: dict[str, SourcePackageRecord] = {}
    for record in decode_sources(stream):
        if record.is_extra_source_only:
            continue
        if record.package_name in table.excluded:
            logger.debug(
                "Excluding src:%s: %s", record.package_name, table.excluded[record.package_name]
            )
            continue
        if record.package_name in table.ignored:
            continue
        if not depends_on_toolchain(record, table):
            continue
        current = newest.get(record.package_name)
        if current is None or Version(record.version) > Version(current.version):
            newest[record.package_name] = record
    return sorted(newest.values(), key=lambda record: record.package_name)


def open_index(path: Path) -> IO[str]:
    """Open a possibly compressed index file as text, based on its suffix."""
    if path.name.endswith(".gz"):
        return gzip.open(path, "rt", encoding="utf-8")
    if path.name.endswith(".xz"):
        return lzma.open(path, "rt", encoding="utf-8")
    return path.open(encoding="utf-8")


def download_sources(
    archive: Archive,
    release: ReleaseMetadata,
    index_path: str,
    table: RewriteTable,
) -> list[SourcePackageRecord]:
    """Fetch the release's Sources index and load it.

    Raises:
        ReleaseResolutionError: If the release does not offer index_path
        ArtifactFetchError: If the index cannot be downloaded
        IndexDecodeError: If the index is malformed
    """
    artifact = release.index_files.get(index_path)
    if artifact is None:
        raise ReleaseResolutionError(f"{index_path} not found in release {release.release_name}")

    local = archive.fetch_to_temp(artifact)
    try:
        with open_index(local) as stream:
            return load_sources(stream, table)
    except (OSError, EOFError, lzma.LZMAError) as e:
        raise IndexDecodeError(f"{artifact.filename}: {e}") from e
    finally:
        local.unlink(missing_ok=True)
