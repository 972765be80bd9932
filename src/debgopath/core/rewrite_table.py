"""Static corrections for Debian source packages with bad or missing Go metadata.

The tables are plain data passed into the loader and the import path
resolution, so tests and configuration files can substitute their own.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from debgopath.core.types import SourcePackageRecord

SOURCE_ROOT_PREFIX = "usr/share/gocode/src"


@dataclass(frozen=True)
class RewriteTable:
    """Package-name keyed corrections and exclusions.

    Attributes:
        rewrites: source package -> Go import path, overriding Go-Import-Path.
            Each entry should go away once the fix is uploaded to Debian.
        ignored: packages that are never processed (compilers, non go-gettable code).
        excluded: packages dropped to avoid destination collisions, with the reason.
        toolchain_dependencies: build dependencies marking a package as Go code.
    """

    rewrites: Mapping[str, str] = field(default_factory=dict)
    ignored: frozenset[str] = frozenset()
    excluded: Mapping[str, str] = field(default_factory=dict)
    toolchain_dependencies: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "rewrites", MappingProxyType(dict(self.rewrites)))
        object.__setattr__(self, "excluded", MappingProxyType(dict(self.excluded)))

    def is_dropped(self, package_name: str) -> bool:
        return package_name in self.ignored or package_name in self.excluded

    def merged(
        self,
        *,
        rewrites: Mapping[str, str] | None = None,
        ignored: frozenset[str] | None = None,
        excluded: Mapping[str, str] | None = None,
        toolchain_dependencies: frozenset[str] | None = None,
    ) -> "RewriteTable":
        """Return a table extended by the given entries.

        Rewrites and exclusions are merged over the existing ones, ignored
        packages are unioned, toolchain dependencies replace the existing set.
        """
        return replace(
            self,
            rewrites={**self.rewrites, **(rewrites or {})},
            ignored=self.ignored | (ignored or frozenset()),
            excluded={**self.excluded, **(excluded or {})},
            toolchain_dependencies=(
                toolchain_dependencies
                if toolchain_dependencies is not None
                else self.toolchain_dependencies
            ),
        )


DEFAULT_REWRITE_TABLE = RewriteTable(
    rewrites={
        "gitlab-workhorse": "gitlab.com/gitlab-org/gitlab-workhorse",  # bugs.debian.org/890056
        "pluginhook": "github.com/progrium/pluginhook",  # bugs.debian.org/890057
        "golang-github-gosexy-gettext": "github.com/gosexy/gettext",  # bugs.debian.org/890058
        "mongo-tools": "github.com/mongodb/mongo-tools",  # bugs.debian.org/890059
        "golang-github-mvo5-goconfigparser": "github.com/mvo5/goconfigparser",
    },
    ignored=frozenset(
        {
            "kxd",  # not go-gettable, only depends on the standard library
            "golang-1.6",
            "golang-1.7",
            "golang-1.8",
            "golang-1.9",
            "golang-1.10",
        }
    ),
    excluded={
        "golang-github-dnephin-cobra": "same import path as golang-github-spf13-cobra",
        "docker-containerd": "duplicate packaging of src:containerd",
    },
    toolchain_dependencies=frozenset(
        {
            "golang-go",
            "golang-any",
            "golang",  # incorrect, but used by e.g. golang-gocapability-dev
        }
    ),
)


def resolve_import_path(record: SourcePackageRecord, table: RewriteTable) -> str:
    """Return the primary Go import path the package is placed under.

    Packages providing several import paths list them comma separated; only
    the first one is used. Returns "" when the package declares none.
    """
    import_path = table.rewrites.get(record.package_name, record.import_path_hint)
    return import_path.split(",")[0].strip()
