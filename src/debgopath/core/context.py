"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from debgopath.archive.abc import Archive
from debgopath.archive.real import HttpArchive
from debgopath.core.config import GopathConfig
from debgopath.time.abc import Time
from debgopath.time.real import RealTime
from debgopath.tools.abc import SourceTools
from debgopath.tools.real import RealSourceTools


@dataclass(frozen=True)
class GopathContext:
    """Immutable context holding all dependencies for a workspace build.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    archive: Archive
    tools: SourceTools
    time: Time
    config: GopathConfig

    @staticmethod
    def for_test(
        archive: Archive | None = None,
        tools: SourceTools | None = None,
        time: Time | None = None,
        config: GopathConfig | None = None,
        target_dir: Path | None = None,
    ) -> "GopathContext":
        """Create test context with fake implementations for anything not given.

        Args:
            archive: Optional Archive. If None, creates an empty FakeArchive.
            tools: Optional SourceTools. If None, creates FakeSourceTools.
            time: Optional Time. If None, creates FakeTime.
            config: Optional GopathConfig. If None, uses defaults.
            target_dir: Optional directory snapshots are written to; overrides config.

        Example:
            >>> ctx = GopathContext.for_test(archive=FakeArchive(files=...), target_dir=tmp_path)
        """
        from debgopath.archive.fake import FakeArchive
        from debgopath.time.fake import FakeTime
        from debgopath.tools.fake import FakeSourceTools

        config = config or GopathConfig()
        if target_dir is not None:
            config = config.with_overrides(target_dir=target_dir)
        return GopathContext(
            archive=archive or FakeArchive(),
            tools=tools or FakeSourceTools(),
            time=time or FakeTime(),
            config=config,
        )


def create_context(config: GopathConfig) -> GopathContext:
    """Create production context with real implementations.

    The HTTP client is owned by the returned context's archive; call
    close_context() when done.
    """
    time = RealTime()
    archive = HttpArchive(
        config.mirror,
        time=time,
        max_transient_retries=config.max_transient_retries,
        retry_base_delay=config.retry_base_delay,
        keyring=config.keyring,
        timeout=config.http_timeout,
    )
    return GopathContext(archive=archive, tools=RealSourceTools(), time=time, config=config)


def close_context(ctx: GopathContext) -> None:
    if isinstance(ctx.archive, HttpArchive):
        ctx.archive.close()
