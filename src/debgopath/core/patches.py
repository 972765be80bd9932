"""Applying a package's quilt patch series."""

import logging
from pathlib import Path

from debgopath.tools.abc import SourceTools

logger = logging.getLogger(__name__)


def series_has_patches(series: str) -> bool:
    """Whether a quilt series file lists at least one patch.

    quilt exits with an error on a series file without patches, so empty and
    comment-only series must not be handed to it.
    """
    for line in series.splitlines():
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        return True
    return False


def apply_patches(tools: SourceTools, source_dir: Path, packaging_dir: Path) -> bool:
    """Apply packaging_dir/patches/series to source_dir.

    Returns:
        True if the patch tool was invoked, False if there was nothing to apply

    Raises:
        RuntimeError: If the patch tool fails (message names command and directory)
    """
    patches_dir = packaging_dir / "patches"
    series_path = patches_dir / "series"
    if not series_path.is_file():
        return False
    if not series_has_patches(series_path.read_text(encoding="utf-8", errors="replace")):
        logger.debug("Series file %s lists no patches", series_path)
        return False
    tools.apply_patch_series(source_dir, patches_dir)
    return True
