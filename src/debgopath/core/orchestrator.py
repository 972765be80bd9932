"""Building a workspace snapshot from the archive.

Each run resolves the release, and if no snapshot exists for its
last-modified timestamp, assembles every Go source package into a private
staging directory which is renamed to <prefix><timestamp> once all packages
succeeded. Runs are therefore safe to start from a minutely cronjob. Runs
against the same target directory must not overlap; wrap the command in
flock(1) or a systemd service.
"""

import logging
import shutil
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath

from debgopath.core.assembler import PackageAssembler
from debgopath.core.context import GopathContext
from debgopath.core.errors import AssemblyError, UnplaceablePackageError, WorkspaceBuildError
from debgopath.core.rewrite_table import RewriteTable, resolve_import_path
from debgopath.core.sources import download_sources
from debgopath.core.types import (
    AssemblyResult,
    AssemblyStatus,
    BuildOutcome,
    RunState,
    SourcePackageRecord,
)

logger = logging.getLogger(__name__)

PlannedPackage = tuple[SourcePackageRecord, str]


def plan_destinations(
    records: list[SourcePackageRecord], table: RewriteTable
) -> tuple[list[PlannedPackage], list[AssemblyResult]]:
    """Resolve the import path of every record and reject unplaceable ones.

    Records without an import path, with a path escaping the workspace, or
    whose path was already claimed by an earlier record (in the given order)
    are returned as SKIPPED results instead of being planned.

    Returns:
        (planned (record, import path) pairs, skipped results)
    """
    planned: list[PlannedPackage] = []
    skipped: list[AssemblyResult] = []
    owners: dict[str, str] = {}
    for record in records:
        name = record.package_name
        import_path = resolve_import_path(record, table)
        error: UnplaceablePackageError | None = None
        if not import_path:
            logger.warning("package src:%s is missing Go-Import-Path", name)
            error = UnplaceablePackageError(name, "resolving import path", "no import path")
        elif PurePosixPath(import_path).is_absolute() or ".." in PurePosixPath(import_path).parts:
            error = UnplaceablePackageError(
                name, "resolving import path", f"invalid import path {import_path!r}"
            )
        elif import_path in owners:
            error = UnplaceablePackageError(
                name,
                "resolving import path",
                f"import path {import_path} is already provided by src:{owners[import_path]}",
            )

        if error is not None:
            if import_path:
                logger.error("%s", error)
            skipped.append(
                AssemblyResult(
                    package_name=name,
                    status=AssemblyStatus.SKIPPED,
                    import_path=import_path or None,
                    error=error,
                )
            )
            continue
        owners[import_path] = name
        planned.append((record, import_path))
    return planned, skipped


class WorkspaceBuilder:
    """Drives one run: Idle -> Fetching -> Assembling -> Publishing -> Done.

    Any exception moves the run to Failed and propagates to the caller.
    Per-package failures do not cancel other packages: every package is
    assembled, outcomes are collected and the first hard failure (in package
    name order) fails the run after the pool has drained.
    """

    def __init__(self, ctx: GopathContext) -> None:
        self._ctx = ctx
        self._config = ctx.config
        self._assembler = PackageAssembler(
            ctx.archive,
            ctx.tools,
            packaging_dir_name=ctx.config.packaging_dir,
        )
        self._state = RunState.IDLE

    @property
    def state(self) -> RunState:
        return self._state

    def build(self) -> BuildOutcome:
        """Build (or reuse) the snapshot for the current release.

        Raises:
            ReleaseResolutionError: If the release cannot be resolved
            IndexDecodeError: If the Sources index is malformed
            ArtifactFetchError: If the Sources index cannot be downloaded
            WorkspaceBuildError: If any package failed hard; nothing is published
        """
        try:
            return self._build()
        except BaseException:
            self._transition(RunState.FAILED)
            raise

    def _build(self) -> BuildOutcome:
        started = self._ctx.time.monotonic()
        self._transition(RunState.FETCHING)
        release = self._ctx.archive.resolve_release(self._config.release)
        timestamp = release.timestamp
        snapshot = self._config.snapshot_path(timestamp)
        if snapshot.exists():
            logger.info("%s is up to date", snapshot)
            self._transition(RunState.DONE)
            return BuildOutcome(timestamp=timestamp, snapshot_path=snapshot, reused=True)

        records = download_sources(
            self._ctx.archive, release, self._config.index_path, self._config.rewrite_table
        )
        logger.info(
            "loaded %d source packages in %.1fs",
            len(records),
            self._ctx.time.monotonic() - started,
        )
        planned, skipped = plan_destinations(records, self._config.rewrite_table)

        self._config.target_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(
            tempfile.mkdtemp(
                prefix=f"{self._config.snapshot_prefix}tmp-", dir=self._config.target_dir
            )
        )
        staging.chmod(0o755)
        try:
            self._transition(RunState.ASSEMBLING)
            results = skipped + self._assemble_all(planned, staging)
            failures = [
                result.error for result in results if result.is_hard_failure and result.error
            ]
            if failures:
                raise WorkspaceBuildError(failures[0], len(failures))

            self._transition(RunState.PUBLISHING)
            staging.rename(snapshot)
        finally:
            if staging.exists():
                self._discard(staging)

        duration = self._ctx.time.monotonic() - started
        logger.info("published %s (%d packages) in %.1fs", snapshot, len(planned), duration)
        self._transition(RunState.DONE)
        return BuildOutcome(
            timestamp=timestamp,
            snapshot_path=snapshot,
            reused=False,
            results=tuple(sorted(results, key=lambda result: result.package_name)),
            duration_seconds=duration,
        )

    def _assemble_all(self, planned: list[PlannedPackage], staging: Path) -> list[AssemblyResult]:
        with ThreadPoolExecutor(
            max_workers=self._config.parallel, thread_name_prefix="assemble"
        ) as pool:
            return list(
                pool.map(lambda item: self._assemble_one(item[0], item[1], staging), planned)
            )

    def _assemble_one(
        self, record: SourcePackageRecord, import_path: str, staging: Path
    ) -> AssemblyResult:
        name = record.package_name
        try:
            self._assembler.assemble(record, import_path, staging)
        except AssemblyError as e:
            logger.error("%s", e)
            status = AssemblyStatus.SKIPPED if e.soft else AssemblyStatus.FAILED
            return AssemblyResult(
                package_name=name, status=status, import_path=import_path, error=e
            )
        except Exception as e:
            logger.exception("src:%s: unexpected error", name)
            error = AssemblyError(name, "assembling", f"{type(e).__name__}: {e}")
            error.__cause__ = e
            return AssemblyResult(
                package_name=name,
                status=AssemblyStatus.FAILED,
                import_path=import_path,
                error=error,
            )
        return AssemblyResult(
            package_name=name, status=AssemblyStatus.ASSEMBLED, import_path=import_path
        )

    def _discard(self, staging: Path) -> None:
        try:
            shutil.rmtree(staging)
        except OSError as e:
            logger.warning("could not remove staging directory %s: %s", staging, e)

    def _transition(self, state: RunState) -> None:
        logger.debug("run state: %s -> %s", self._state.value, state.value)
        self._state = state
