"""Tests for GopathContext."""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from debgopath.archive.fake import FakeArchive
from debgopath.archive.real import HttpArchive
from debgopath.core.config import GopathConfig
from debgopath.core.context import GopathContext, close_context, create_context
from debgopath.time.fake import FakeTime
from debgopath.time.real import RealTime
from debgopath.tools.fake import FakeSourceTools
from debgopath.tools.real import RealSourceTools


def test_for_test_defaults_to_fakes(tmp_path: Path) -> None:
    ctx = GopathContext.for_test(target_dir=tmp_path)

    assert isinstance(ctx.archive, FakeArchive)
    assert isinstance(ctx.tools, FakeSourceTools)
    assert isinstance(ctx.time, FakeTime)
    assert ctx.config.target_dir == tmp_path


def test_context_is_frozen() -> None:
    ctx = GopathContext.for_test()

    with pytest.raises(FrozenInstanceError):
        ctx.config = GopathConfig()  # type: ignore[misc]


def test_create_context_uses_real_implementations() -> None:
    config = GopathConfig(mirror="http://deb.debian.org/debian/")

    ctx = create_context(config)
    try:
        assert isinstance(ctx.archive, HttpArchive)
        assert isinstance(ctx.tools, RealSourceTools)
        assert isinstance(ctx.time, RealTime)
        assert ctx.archive.url_for("dists/unstable/InRelease") == (
            "http://deb.debian.org/debian/dists/unstable/InRelease"
        )
    finally:
        close_context(ctx)
