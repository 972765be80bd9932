"""Tests for HttpArchive against an httpx.MockTransport."""

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest

from debgopath.archive.real import HttpArchive
from debgopath.core.errors import ArtifactFetchError, ReleaseResolutionError
from debgopath.core.types import ChecksummedArtifact
from debgopath.time.fake import FakeTime
from tests.test_utils.archive_helpers import RELEASE_TIMESTAMP, sha256_hex

MIRROR = "http://localhost:3142/deb.debian.org/debian"
LAST_MODIFIED = "Wed, 07 Feb 2018 10:40:00 GMT"

IN_RELEASE = """\
-----BEGIN PGP SIGNED MESSAGE-----
Hash: SHA256

Origin: Debian
Suite: unstable
Date: Tue, 06 Feb 2018 08:00:00 UTC
MD5Sum:
 0123456789abcdef0123456789abcdef 100 main/source/Sources.gz
SHA256:
 aaaa 100 main/source/Sources.gz
 bbbb 80 main/source/Sources.xz
-----BEGIN PGP SIGNATURE-----

iQIzBAEBCAAdFiEE
-----END PGP SIGNATURE-----
"""

Handler = Callable[[httpx.Request], httpx.Response]


def _archive(handler: Handler, time: FakeTime | None = None, **kwargs) -> HttpArchive:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpArchive(MIRROR, time=time or FakeTime(), client=client, **kwargs)


def _artifact(
    content: bytes, filename: str = "pool/main/g/golang-foo/foo.orig.tar.gz"
) -> ChecksummedArtifact:
    return ChecksummedArtifact(
        filename=filename, content_hash=sha256_hex(content), size=len(content)
    )


@pytest.fixture
def isolated_tempdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    return tmp_path


def test_resolve_release_reads_index_files_and_last_modified(
    caplog: pytest.LogCaptureFixture,
) -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text=IN_RELEASE, headers={"Last-Modified": LAST_MODIFIED})

    with caplog.at_level(logging.WARNING):
        release = _archive(handler).resolve_release("unstable")

    assert requested == [f"{MIRROR}/dists/unstable/InRelease"]
    assert release.release_name == "unstable"
    assert release.timestamp == str(RELEASE_TIMESTAMP)
    sources = release.index_files["main/source/Sources.gz"]
    assert sources.filename == "dists/unstable/main/source/Sources.gz"
    assert sources.content_hash == "aaaa"
    assert sources.hash_algorithm == "sha256"
    assert set(release.index_files) == {"main/source/Sources.gz", "main/source/Sources.xz"}
    assert "not verifying the signature" in caplog.text


def test_resolve_release_falls_back_to_date_field() -> None:
    archive = _archive(lambda request: httpx.Response(200, text=IN_RELEASE))

    release = archive.resolve_release("unstable")

    assert release.timestamp == str(RELEASE_TIMESTAMP - 26 * 3600 - 40 * 60)


def test_resolve_release_falls_back_to_md5() -> None:
    text = IN_RELEASE.replace(" aaaa 100 main/source/Sources.gz\n", "").replace(
        "SHA256:\n bbbb 80 main/source/Sources.xz\n", ""
    )
    archive = _archive(lambda request: httpx.Response(200, text=text))

    release = archive.resolve_release("unstable")

    sources = release.index_files["main/source/Sources.gz"]
    assert sources.hash_algorithm == "md5"
    assert sources.content_hash == "0123456789abcdef0123456789abcdef"


def test_resolve_release_not_found_is_not_retried() -> None:
    time = FakeTime()
    archive = _archive(lambda request: httpx.Response(404), time=time)

    with pytest.raises(ReleaseResolutionError, match="release nosuch"):
        archive.resolve_release("nosuch")

    assert time.sleep_calls == []


def test_resolve_release_retries_server_errors() -> None:
    responses = [httpx.Response(503), httpx.Response(502), httpx.Response(200, text=IN_RELEASE)]
    time = FakeTime()
    archive = _archive(lambda request: responses.pop(0), time=time)

    release = archive.resolve_release("unstable")

    assert "main/source/Sources.gz" in release.index_files
    assert time.sleep_calls == [1.0, 2.0]


def test_resolve_release_gives_up_after_max_retries() -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(503)

    time = FakeTime()
    archive = _archive(handler, time=time, max_transient_retries=3)

    with pytest.raises(ReleaseResolutionError, match="HTTP 503"):
        archive.resolve_release("unstable")

    assert len(calls) == 4
    assert time.sleep_calls == [1.0, 2.0, 4.0]


def test_resolve_release_without_retries_tries_once() -> None:
    time = FakeTime()
    archive = _archive(lambda request: httpx.Response(503), time=time, max_transient_retries=0)

    with pytest.raises(ReleaseResolutionError, match="HTTP 503"):
        archive.resolve_release("unstable")

    assert time.sleep_calls == []


def test_resolve_release_rejects_garbage() -> None:
    archive = _archive(lambda request: httpx.Response(200, text="<html>proxy error</html>\n"))

    with pytest.raises(ReleaseResolutionError, match="release unstable"):
        archive.resolve_release("unstable")


def test_resolve_release_verifies_signature_with_keyring(tmp_path: Path) -> None:
    keyring = tmp_path / "debian-archive-keyring.gpg"
    archive = _archive(lambda request: httpx.Response(200, text=IN_RELEASE), keyring=keyring)

    with patch("debgopath.archive.real.run_subprocess_with_context") as mock_run:
        archive.resolve_release("unstable")

    cmd = mock_run.call_args.args[0]
    assert cmd[:3] == ["gpgv", "--keyring", str(keyring)]
    assert cmd[3].endswith("-InRelease")
    assert not Path(cmd[3]).exists()


def test_resolve_release_bad_signature(tmp_path: Path) -> None:
    archive = _archive(
        lambda request: httpx.Response(200, text=IN_RELEASE), keyring=tmp_path / "keyring.gpg"
    )

    with patch("debgopath.archive.real.run_subprocess_with_context") as mock_run:
        mock_run.side_effect = RuntimeError("Failed to verify the signature\nExit code: 1")
        with pytest.raises(ReleaseResolutionError, match="Failed to verify"):
            archive.resolve_release("unstable")


def test_fetch_to_temp_writes_verified_content(isolated_tempdir: Path) -> None:
    content = b"tarball bytes" * 1000
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        return httpx.Response(200, content=content)

    path = _archive(handler).fetch_to_temp(_artifact(content))

    assert requested == ["/deb.debian.org/debian/pool/main/g/golang-foo/foo.orig.tar.gz"]
    assert path.read_bytes() == content
    assert path.name.endswith("-foo.orig.tar.gz")
    assert path.parent == isolated_tempdir


def test_fetch_to_temp_hash_mismatch_removes_file(isolated_tempdir: Path) -> None:
    archive = _archive(lambda request: httpx.Response(200, content=b"tampered"))

    with pytest.raises(ArtifactFetchError, match="sha256 mismatch") as exc_info:
        archive.fetch_to_temp(_artifact(b"original"))

    assert exc_info.value.filename == "pool/main/g/golang-foo/foo.orig.tar.gz"
    assert list(isolated_tempdir.iterdir()) == []


def test_fetch_to_temp_not_found(isolated_tempdir: Path) -> None:
    time = FakeTime()
    archive = _archive(lambda request: httpx.Response(404), time=time)

    with pytest.raises(ArtifactFetchError, match=r"download\(pool/.*\): HTTP 404"):
        archive.fetch_to_temp(_artifact(b"x"))

    assert time.sleep_calls == []
    assert list(isolated_tempdir.iterdir()) == []


def test_fetch_to_temp_retries_connection_errors(isolated_tempdir: Path) -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=b"payload")

    time = FakeTime()
    path = _archive(handler, time=time).fetch_to_temp(_artifact(b"payload"))

    assert path.read_bytes() == b"payload"
    assert time.sleep_calls == [1.0]
    assert list(isolated_tempdir.iterdir()) == [path]


def test_fetch_to_temp_gives_up(isolated_tempdir: Path) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(500)

    archive = _archive(handler, max_transient_retries=3)

    with pytest.raises(ArtifactFetchError, match="giving up after 3 retries"):
        archive.fetch_to_temp(_artifact(b"x"))

    assert len(calls) == 4

    assert list(isolated_tempdir.iterdir()) == []
