"""Tests for FakeArchive test infrastructure."""

import pytest

from debgopath.archive.fake import FakeArchive
from debgopath.core.errors import ArtifactFetchError, ReleaseResolutionError
from debgopath.core.types import ChecksummedArtifact
from tests.test_utils.archive_helpers import release_with_index, sha256_hex


def _artifact(filename: str, content: bytes) -> ChecksummedArtifact:
    return ChecksummedArtifact(
        filename=filename, content_hash=sha256_hex(content), size=len(content)
    )


def test_resolve_release_records_calls() -> None:
    release = release_with_index(b"index")
    archive = FakeArchive(releases={"unstable": release})

    assert archive.resolve_release("unstable") is release
    with pytest.raises(ReleaseResolutionError):
        archive.resolve_release("experimental")

    assert archive.resolved_releases == ["unstable", "experimental"]


def test_fetch_to_temp_serves_content_and_tracks_files() -> None:
    archive = FakeArchive(files={"pool/a.tar.gz": b"content"})

    path = archive.fetch_to_temp(_artifact("pool/a.tar.gz", b"content"))

    assert path.read_bytes() == b"content"
    assert path.name.endswith("-a.tar.gz")
    assert archive.fetched == ["pool/a.tar.gz"]
    assert archive.temp_files == [path]
    path.unlink()


def test_fetch_to_temp_errors() -> None:
    archive = FakeArchive(
        files={"pool/a.tar.gz": b"content"},
        fetch_failures={"pool/b.tar.gz": "HTTP 503"},
    )

    with pytest.raises(ArtifactFetchError, match="HTTP 404"):
        archive.fetch_to_temp(_artifact("pool/missing.tar.gz", b""))
    with pytest.raises(ArtifactFetchError, match="HTTP 503"):
        archive.fetch_to_temp(_artifact("pool/b.tar.gz", b""))
    with pytest.raises(ArtifactFetchError, match="mismatch"):
        archive.fetch_to_temp(_artifact("pool/a.tar.gz", b"other"))

    assert archive.temp_files == []
