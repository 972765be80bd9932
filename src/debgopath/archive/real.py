"""HTTP implementation of the Debian archive client.

Talks to a Debian mirror (usually through apt-cacher-ng, which cuts down
bandwidth massively across runs). Downloads are streamed into temporary files
while hashing, so large .orig tarballs never sit in memory.
"""

import hashlib
import logging
import os
import tempfile
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path, PurePosixPath

import httpx
from debian.deb822 import Release
from debgopath.archive.abc import Archive
from debgopath.core.errors import ArtifactFetchError, ReleaseResolutionError
from debgopath.core.retry import retry_transient
from debgopath.core.subprocess import run_subprocess_with_context
from debgopath.core.types import ChecksummedArtifact, ReleaseMetadata
from debgopath.time.abc import Time

logger = logging.getLogger(__name__)

# (Release field, hash column, hashlib algorithm), strongest first.
_RELEASE_CHECKSUM_FIELDS = (("SHA256", "sha256", "sha256"), ("MD5Sum", "md5sum", "md5"))


class TransientHTTPStatus(Exception):
    """A 5xx answer from the mirror; worth retrying."""

    def __init__(self, url: str, status_code: int) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} for {url}")


_TRANSIENT_ERRORS: tuple[type[Exception], ...] = (httpx.TransportError, TransientHTTPStatus)


class HttpArchive(Archive):
    """Archive client backed by an httpx.Client.

    Example:
        archive = HttpArchive("http://deb.debian.org/debian", time=RealTime())
        release = archive.resolve_release("unstable")
        path = archive.fetch_to_temp(release.index_files["main/source/Sources.gz"])
    """

    def __init__(
        self,
        mirror: str,
        *,
        time: Time,
        client: httpx.Client | None = None,
        max_transient_retries: int = 3,
        retry_base_delay: float = 1.0,
        keyring: Path | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._mirror = mirror.rstrip("/")
        self._time = time
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._max_transient_retries = max_transient_retries
        self._retry_base_delay = retry_base_delay
        self._keyring = keyring

    def close(self) -> None:
        self._client.close()

    def url_for(self, path: str) -> str:
        return f"{self._mirror}/{path.lstrip('/')}"

    def resolve_release(self, name: str) -> ReleaseMetadata:
        path = f"dists/{name}/InRelease"
        url = self.url_for(path)
        try:
            response = retry_transient(
                lambda: self._get(url),
                time=self._time,
                max_attempts=self._max_transient_retries + 1,
                retry_on=_TRANSIENT_ERRORS,
                base_delay=self._retry_base_delay,
                description=f"fetch {path}",
            )
        except (*_TRANSIENT_ERRORS, httpx.HTTPStatusError) as e:
            raise ReleaseResolutionError(f"release {name}: {e}") from e

        if self._keyring is not None:
            self._verify_signature(name, response.content)
        else:
            logger.warning("No keyring configured: not verifying the signature of %s", path)

        # Release strips the clearsign armor; the signature was checked above.
        release = Release(response.text)
        index_files = self._index_files(name, release)
        last_modified = self._last_modified(name, response, release)
        logger.debug(
            "Resolved release %s: last modified %s, %d index files",
            name,
            last_modified.isoformat(),
            len(index_files),
        )
        return ReleaseMetadata(
            release_name=name,
            last_modified=last_modified,
            index_files=index_files,
        )

    def fetch_to_temp(self, artifact: ChecksummedArtifact) -> Path:
        try:
            return retry_transient(
                lambda: self._download(artifact),
                time=self._time,
                max_attempts=self._max_transient_retries + 1,
                retry_on=_TRANSIENT_ERRORS,
                base_delay=self._retry_base_delay,
                description=f"download {artifact.filename}",
            )
        except _TRANSIENT_ERRORS as e:
            raise ArtifactFetchError(
                artifact.filename,
                f"giving up after {self._max_transient_retries} retries: {e}",
            ) from e

    def _get(self, url: str) -> httpx.Response:
        response = self._client.get(url)
        if response.status_code >= 500:
            raise TransientHTTPStatus(url, response.status_code)
        response.raise_for_status()
        return response

    def _download(self, artifact: ChecksummedArtifact) -> Path:
        url = self.url_for(artifact.filename)
        digest = hashlib.new(artifact.hash_algorithm)
        # Keep the basename so callers can tell the compression from the suffix.
        basename = PurePosixPath(artifact.filename).name
        fd, name = tempfile.mkstemp(prefix="debgopath-", suffix=f"-{basename}")
        path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f, self._client.stream("GET", url) as response:
                if response.status_code >= 500:
                    raise TransientHTTPStatus(url, response.status_code)
                if response.status_code >= 400:
                    raise ArtifactFetchError(artifact.filename, f"HTTP {response.status_code}")
                for chunk in response.iter_bytes():
                    digest.update(chunk)
                    f.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise

        actual = digest.hexdigest()
        if actual != artifact.content_hash:
            path.unlink(missing_ok=True)
            raise ArtifactFetchError(
                artifact.filename,
                f"{artifact.hash_algorithm} mismatch: got {actual}, want {artifact.content_hash}",
            )
        return path

    def _verify_signature(self, name: str, content: bytes) -> None:
        fd, tmp = tempfile.mkstemp(prefix="debgopath-", suffix="-InRelease")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            run_subprocess_with_context(
                ["gpgv", "--keyring", str(self._keyring), tmp],
                operation_context=f"verify the InRelease signature of {name}",
            )
        except RuntimeError as e:
            raise ReleaseResolutionError(str(e)) from e
        finally:
            Path(tmp).unlink(missing_ok=True)

    def _last_modified(
        self, name: str, response: httpx.Response, release: Release
    ) -> datetime:
        header = response.headers.get("Last-Modified") or release.get("Date")
        if not header:
            raise ReleaseResolutionError(f"release {name}: no Last-Modified header and no Date")
        try:
            return parsedate_to_datetime(header)
        except (TypeError, ValueError) as e:
            raise ReleaseResolutionError(f"release {name}: invalid date {header!r}") from e

    def _index_files(self, name: str, release: Release) -> dict[str, ChecksummedArtifact]:
        for field_name, column, algorithm in _RELEASE_CHECKSUM_FIELDS:
            entries = release.get(field_name)
            if not entries:
                continue
            if hasattr(entries, "keys"):
                entries = [entries]
            try:
                return {
                    entry["name"]: ChecksummedArtifact(
                        filename=f"dists/{name}/{entry['name']}",
                        content_hash=entry[column],
                        size=int(entry["size"]),
                        hash_algorithm=algorithm,
                    )
                    for entry in entries
                }
            except (KeyError, ValueError) as e:
                raise ReleaseResolutionError(
                    f"release {name}: malformed {field_name} line: {e}"
                ) from e
        raise ReleaseResolutionError(f"release {name}: no checksummed index files")
