"""Real source tools using subprocess to call tar, quilt and chmod."""

import os
from pathlib import Path

from debgopath.core.subprocess import run_subprocess_with_context
from debgopath.tools.abc import PERMISSION_POLICY, SourceTools


class RealSourceTools(SourceTools):
    """Production implementation calling the system tools.

    Let subprocess failures bubble as RuntimeError: the assembler wraps them
    with the package name and step.
    """

    def list_archive_members(self, archive_path: Path) -> list[str]:
        result = run_subprocess_with_context(
            ["tar", "tf", str(archive_path)],
            operation_context=f"list members of {archive_path.name}",
        )
        return [line for line in result.stdout.splitlines() if line]

    def extract_archive(self, archive_path: Path, dest: Path, strip_components: int) -> None:
        if not dest.is_dir():
            raise FileNotFoundError(f"Extraction target not found: {dest}")
        run_subprocess_with_context(
            [
                "tar",
                "xf",
                str(archive_path),
                "-C",
                str(dest),
                f"--strip-components={strip_components}",
            ],
            operation_context=f"extract {archive_path.name} into {dest}",
        )

    def apply_patch_series(self, source_dir: Path, patches_dir: Path) -> None:
        env = dict(os.environ)
        env["QUILT_PATCHES"] = str(patches_dir.resolve())
        run_subprocess_with_context(
            ["quilt", "push", "-a"],
            operation_context=f"apply patch series in {source_dir}",
            cwd=source_dir,
            env=env,
        )

    def normalize_permissions(self, path: Path) -> None:
        run_subprocess_with_context(
            ["chmod", "-R", "--", PERMISSION_POLICY, str(path)],
            operation_context=f"normalize permissions of {path}",
        )
