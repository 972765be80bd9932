"""External source tools (tar, quilt, chmod) behind a narrow interface."""

from debgopath.tools.abc import SourceTools
from debgopath.tools.fake import FakeSourceTools
from debgopath.tools.real import RealSourceTools

__all__ = ["FakeSourceTools", "RealSourceTools", "SourceTools"]
