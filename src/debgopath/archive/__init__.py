"""Debian archive client subpackage.

Resolves releases and downloads checksummed artifacts, with support for
testing via an in-memory fake.
"""

from debgopath.archive.abc import Archive
from debgopath.archive.fake import FakeArchive
from debgopath.archive.real import HttpArchive

__all__ = ["Archive", "FakeArchive", "HttpArchive"]
