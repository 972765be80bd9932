"""Interpreting debhelper link and clean declarations.

dh_link and dh_clean would normally act on the installed package; we replay
the Go-relevant parts directly on the workspace tree.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def declaration_files(packaging_dir: Path, kind: str) -> list[Path]:
    """Return the files named `kind` or `<package>.<kind>`, sorted by name."""
    return sorted(
        path
        for path in packaging_dir.iterdir()
        if path.is_file() and (path.name == kind or path.name.endswith(kind))
    )


def _relative_to_source_root(path: str, source_root_prefix: str) -> str:
    if path.startswith(source_root_prefix):
        path = path[len(source_root_prefix) :]
    return path.lstrip("/")


def _is_within(path: Path, root: Path) -> bool:
    """Whether path stays below root, after resolving ".." and symlinked parents."""
    if not Path(os.path.normpath(path)).is_relative_to(os.path.normpath(root)):
        return False
    return path.parent.resolve().is_relative_to(root.resolve())


def create_links(staging_root: Path, packaging_dir: Path, source_root_prefix: str) -> int:
    """Create the symlinks declared in *links files below staging_root.

    A line "usr/share/gocode/src/a/b usr/share/gocode/src/c/d" becomes a
    relative symlink staging_root/c/d -> staging_root/a/b. Lines whose first
    path is outside the Go source root are not relevant to the workspace.

    Returns:
        Number of links created

    Raises:
        OSError: On any filesystem error other than an already existing link
    """
    created = 0
    for declaration in declaration_files(packaging_dir, "links"):
        for line in declaration.read_text(encoding="utf-8", errors="replace").splitlines():
            line = line.strip()
            if not line.startswith(source_root_prefix):
                continue
            parts = line.split()
            if len(parts) != 2:
                logger.warning(
                    "Skipping link line %r in %s: unexpected number of parts: got %d, want 2",
                    line,
                    declaration.name,
                    len(parts),
                )
                continue
            source = staging_root / _relative_to_source_root(parts[0], source_root_prefix)
            target = staging_root / _relative_to_source_root(parts[1], source_root_prefix)
            if not (_is_within(source, staging_root) and _is_within(target, staging_root)):
                logger.warning(
                    "Skipping link line %r in %s: path outside the workspace",
                    line,
                    declaration.name,
                )
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            relative = os.path.relpath(source, target.parent)
            try:
                target.symlink_to(relative)
            except FileExistsError:
                logger.debug("Link %s already exists", target)
                continue
            created += 1
    return created


def clean_files(dest: Path, packaging_dir: Path) -> int:
    """Delete the paths listed in *clean files from dest.

    Returns:
        Number of paths removed

    Raises:
        OSError: On any error other than the path not existing
    """
    removed = 0
    for declaration in declaration_files(packaging_dir, "clean"):
        for line in declaration.read_text(encoding="utf-8", errors="replace").splitlines():
            entry = line.strip().lstrip("/")
            if not entry:
                continue
            path = dest / entry
            if not _is_within(path, dest):
                logger.warning(
                    "Skipping clean entry %r in %s: path outside %s", entry, declaration.name, dest
                )
                continue
            try:
                if path.is_dir() and not path.is_symlink():
                    path.rmdir()
                else:
                    path.unlink()
            except FileNotFoundError:
                continue
            removed += 1
    return removed
