"""Tests for the rewrite table and import path resolution."""

import pytest

from debgopath.core.rewrite_table import DEFAULT_REWRITE_TABLE, RewriteTable, resolve_import_path
from debgopath.core.types import SourcePackageRecord


def _record(name: str, hint: str = "") -> SourcePackageRecord:
    return SourcePackageRecord(
        package_name=name,
        version="1.0-1",
        directory_path=f"pool/main/{name[0]}/{name}",
        build_dependencies=("golang-go",),
        import_path_hint=hint,
        is_extra_source_only=False,
        checksummed_artifacts=(),
    )


def test_rewrite_overrides_hint() -> None:
    record = _record("mongo-tools", hint="github.com/wrong/path")

    assert resolve_import_path(record, DEFAULT_REWRITE_TABLE) == "github.com/mongodb/mongo-tools"


def test_hint_used_without_rewrite() -> None:
    record = _record("golang-foo", hint="github.com/example/foo")

    assert resolve_import_path(record, DEFAULT_REWRITE_TABLE) == "github.com/example/foo"


def test_first_of_comma_separated_paths() -> None:
    record = _record("golang-foo", hint="github.com/example/foo, example.org/foo")

    assert resolve_import_path(record, RewriteTable()) == "github.com/example/foo"


def test_missing_import_path_is_empty() -> None:
    assert resolve_import_path(_record("golang-foo"), RewriteTable()) == ""


def test_default_table_drops_compilers_and_collisions() -> None:
    assert DEFAULT_REWRITE_TABLE.is_dropped("golang-1.8")
    assert DEFAULT_REWRITE_TABLE.is_dropped("kxd")
    assert DEFAULT_REWRITE_TABLE.is_dropped("golang-github-dnephin-cobra")
    assert not DEFAULT_REWRITE_TABLE.is_dropped("golang-github-spf13-cobra")


def test_merged_extends_and_replaces() -> None:
    table = DEFAULT_REWRITE_TABLE.merged(
        rewrites={"golang-foo": "example.org/foo"},
        ignored=frozenset({"golang-1.11"}),
        toolchain_dependencies=frozenset({"golang-1.11-go"}),
    )

    assert table.rewrites["golang-foo"] == "example.org/foo"
    assert table.rewrites["pluginhook"] == "github.com/progrium/pluginhook"
    assert table.ignored == DEFAULT_REWRITE_TABLE.ignored | {"golang-1.11"}
    assert table.toolchain_dependencies == frozenset({"golang-1.11-go"})
    assert table.excluded == DEFAULT_REWRITE_TABLE.excluded
    assert "golang-foo" not in DEFAULT_REWRITE_TABLE.rewrites


def test_tables_are_read_only() -> None:
    with pytest.raises(TypeError):
        DEFAULT_REWRITE_TABLE.rewrites["golang-foo"] = "example.org/foo"  # type: ignore[index]
